import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("FEEDLINE_LOG_LEVEL", "DEBUG")

from schemas.feed import Entry, Feed  # noqa: E402
from schemas.view import Viewport  # noqa: E402
from services.feed_store import FeedStore  # noqa: E402
from services.reader_app import ReaderApp  # noqa: E402

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_entry(entry_id: str, *, hours: Optional[int] = 0, read: bool = False, lines: int = 1, **extra) -> Entry:
    published = None if hours is None else BASE_TIME + timedelta(hours=hours)
    return Entry(
        id=entry_id,
        title=extra.pop("title", f"Entry {entry_id}"),
        authors=extra.pop("authors", ["Test Person"]),
        content=extra.pop("content", "Test content."),
        content_line_count=lines,
        link=extra.pop("link", f"https://example.com/{entry_id}"),
        published=published,
        read=read,
        **extra,
    )


def make_feed(feed_id: str, entries: Optional[List[Entry]] = None, *, title: Optional[str] = None, expanded: bool = False) -> Feed:
    feed = Feed(
        id=feed_id,
        title=title or f"Feed {feed_id}",
        link=f"https://example.com/{feed_id}.xml",
        entries=list(entries or []),
        expanded=expanded,
    )
    feed.sort_entries()
    return feed


class RecordingTasks:
    """Stand-in for TaskLauncher that records what the reader asked for."""

    def __init__(self) -> None:
        self.added: List[str] = []
        self.fetched: List[tuple] = []
        self.synced: List[List[Feed]] = []

    def add_feed(self, source_url: str) -> None:
        self.added.append(source_url)

    def fetch_entry_content(self, feed_index, entry_index, link, width, *, entry_id=None) -> None:
        self.fetched.append((feed_index, entry_index, link, width, entry_id))

    def sync(self, feeds) -> None:
        self.synced.append([feed.model_copy(deep=True) for feed in feeds])


@pytest.fixture()
def store(tmp_path: Path) -> Generator[FeedStore, None, None]:
    yield FeedStore.open(f"sqlite+pysqlite:///{tmp_path / 'feedline.db'}")


@pytest.fixture()
def tasks() -> RecordingTasks:
    return RecordingTasks()


@pytest.fixture()
def opened_links() -> List[str]:
    return []


@pytest.fixture()
def app(store: FeedStore, tasks: RecordingTasks, opened_links: List[str]) -> ReaderApp:
    def opener(link: str) -> bool:
        opened_links.append(link)
        return True

    reader = ReaderApp(store, tasks, opener=opener)
    # Content area of an 80x32 terminal.
    reader.last_viewport = Viewport(x=1, y=1, width=78, height=30)
    return reader


def install_feeds(app: ReaderApp, feeds: List[Feed]) -> None:
    """Give the reader ``feeds`` and mirror them into its store."""
    app.feeds = feeds
    app.store.save_all(feeds)
