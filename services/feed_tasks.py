"""Background operations and the channel that carries their results to the reader."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Sequence

from ingest.feed_client import FeedClient
from ingest.feed_sync import sync_feeds
from schemas.events import EntryContentFetched, FeedAdded, OperationEvent, SyncCompleted
from schemas.feed import Feed
from services.reader_errors import ReaderError

logger = logging.getLogger(__name__)

Spawner = Callable[[str, Callable[[], None]], None]


class EventChannel:
    """Many-producer, single-consumer queue of operation events."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[OperationEvent]" = queue.Queue()

    def send(self, event: OperationEvent) -> None:
        self._queue.put(event)

    def try_receive(self) -> Optional[OperationEvent]:
        """Return the next event without blocking, or ``None`` when the channel is empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def receive(self, timeout: Optional[float] = None) -> OperationEvent:
        """Block until an event arrives; raises ``queue.Empty`` after ``timeout`` seconds."""
        return self._queue.get(timeout=timeout)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def run_add_feed(client: FeedClient, source_url: str) -> FeedAdded:
    try:
        feed = client.fetch_feed(source_url)
    except ReaderError as exc:
        return FeedAdded(source_url=source_url, error=f"Failed to add feed: {_describe(exc)}")
    except Exception as exc:  # pragma: no cover - task must always report back
        logger.error("Unexpected error while adding %s: %s", source_url, exc, exc_info=True)
        return FeedAdded(source_url=source_url, error=f"Failed to add feed: {_describe(exc)}")
    return FeedAdded(source_url=source_url, feed=feed)


def run_fetch_content(
    client: FeedClient,
    feed_index: int,
    entry_index: int,
    link: str,
    width: Optional[int],
    entry_id: Optional[str] = None,
) -> EntryContentFetched:
    address = {"feed_index": feed_index, "entry_index": entry_index, "entry_id": entry_id}
    try:
        content = client.fetch_page_text(link, width)
    except ReaderError as exc:
        return EntryContentFetched(**address, error=f"Failed to load full content: {_describe(exc)}")
    except Exception as exc:  # pragma: no cover - task must always report back
        logger.error("Unexpected error while fetching %s: %s", link, exc, exc_info=True)
        return EntryContentFetched(**address, error=f"Failed to load full content: {_describe(exc)}")
    return EntryContentFetched(**address, content=content)


def run_sync(client: FeedClient, feeds: Sequence[Feed]) -> SyncCompleted:
    try:
        synced = sync_feeds(feeds, client)
    except ReaderError as exc:
        logger.warning("Sync aborted: %s", exc)
        return SyncCompleted(error=_describe(exc))
    except Exception as exc:  # pragma: no cover - task must always report back
        logger.error("Unexpected error during sync: %s", exc, exc_info=True)
        return SyncCompleted(error=_describe(exc))
    return SyncCompleted(feeds=tuple(synced))


def spawn_thread(name: str, target: Callable[[], None]) -> None:
    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()


class TaskLauncher:
    """Start one background task per operation; each sends exactly one event.

    Tasks receive copies of what they need and never hold a reference to
    reader state. There is no cancellation.
    """

    def __init__(self, channel: EventChannel, client: FeedClient, *, spawn: Spawner = spawn_thread) -> None:
        self._channel = channel
        self._client = client
        self._spawn = spawn

    def add_feed(self, source_url: str) -> None:
        logger.info("Adding feed %s.", source_url)
        self._spawn("add-feed", lambda: self._channel.send(run_add_feed(self._client, source_url)))

    def fetch_entry_content(
        self,
        feed_index: int,
        entry_index: int,
        link: str,
        width: Optional[int],
        *,
        entry_id: Optional[str] = None,
    ) -> None:
        logger.info("Fetching full content from %s.", link)
        self._spawn(
            "fetch-content",
            lambda: self._channel.send(
                run_fetch_content(self._client, feed_index, entry_index, link, width, entry_id)
            ),
        )

    def sync(self, feeds: Sequence[Feed]) -> None:
        snapshot = [feed.model_copy(deep=True) for feed in feeds]
        logger.info("Starting sync of %d feed(s).", len(snapshot))
        self._spawn("sync", lambda: self._channel.send(run_sync(self._client, snapshot)))


__all__ = [
    "EventChannel",
    "TaskLauncher",
    "run_add_feed",
    "run_fetch_content",
    "run_sync",
    "spawn_thread",
]
