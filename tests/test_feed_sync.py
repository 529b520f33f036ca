from __future__ import annotations

from typing import Dict, List

import pytest

from conftest import make_entry, make_feed
from ingest.feed_sync import merge_new_entries, sync_feeds
from schemas.feed import Entry
from services.reader_errors import NetworkError


class StubSource:
    def __init__(self, responses: Dict[str, List[Entry]], failing: tuple = ()) -> None:
        self.responses = responses
        self.failing = failing
        self.requested: List[str] = []

    def fetch_entries(self, url: str) -> List[Entry]:
        self.requested.append(url)
        if url in self.failing:
            raise NetworkError(f"connection refused: {url}")
        return [entry.model_copy(deep=True) for entry in self.responses.get(url, [])]


def test_merge_adds_only_strictly_newer_entries() -> None:
    feed = make_feed("f", [make_entry("t2", hours=2, read=True), make_entry("t1", hours=1)])
    fetched = [
        make_entry("t3", hours=3, read=True),
        make_entry("t2", hours=2, title="Edited upstream"),
        make_entry("t1", hours=1),
    ]

    added = merge_new_entries(feed, fetched)

    assert added == 1
    assert [entry.id for entry in feed.entries] == ["t3", "t2", "t1"]
    assert feed.entries[0].read is False
    assert feed.entries[1].title == "Entry t2"
    assert feed.entries[1].read is True


def test_merge_is_idempotent() -> None:
    feed = make_feed("f", [make_entry("t1", hours=1)])
    fetched = [make_entry("t2", hours=2), make_entry("t1", hours=1)]

    merge_new_entries(feed, fetched)
    merge_new_entries(feed, fetched)

    assert [entry.id for entry in feed.entries] == ["t2", "t1"]


def test_merge_into_empty_feed_skips_undated_entries() -> None:
    feed = make_feed("f")

    added = merge_new_entries(feed, [make_entry("undated", hours=None), make_entry("dated", hours=-100)])

    assert added == 1
    assert [entry.id for entry in feed.entries] == ["dated"]


def test_sync_returns_copies_and_leaves_input_alone() -> None:
    feeds = [make_feed("a", [make_entry("a1", hours=1)]), make_feed("b", [make_entry("b1", hours=1)])]
    source = StubSource({feeds[0].link: [make_entry("a2", hours=5)]})

    synced = sync_feeds(feeds, source)

    assert source.requested == [feeds[0].link, feeds[1].link]
    assert [entry.id for entry in synced[0].entries] == ["a2", "a1"]
    assert [entry.id for entry in feeds[0].entries] == ["a1"]
    assert synced[0] is not feeds[0]


def test_sync_aborts_on_first_failure() -> None:
    feeds = [make_feed("a", [make_entry("a1")]), make_feed("b"), make_feed("c")]
    source = StubSource({feeds[0].link: [make_entry("a2", hours=4)]}, failing=(feeds[1].link,))

    with pytest.raises(NetworkError):
        sync_feeds(feeds, source)

    assert source.requested == [feeds[0].link, feeds[1].link]
    assert [entry.id for entry in feeds[0].entries] == ["a1"]
