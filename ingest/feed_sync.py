"""Refresh subscribed feeds by merging newly published entries."""

from __future__ import annotations

from typing import Iterable, List, Protocol, Sequence

from core.logging import get_logger
from schemas.feed import Entry, Feed

logger = get_logger(__name__)


class EntrySource(Protocol):
    def fetch_entries(self, url: str) -> List[Entry]: ...


def merge_new_entries(feed: Feed, fetched: Iterable[Entry]) -> int:
    """Append fetched entries strictly newer than the feed's newest entry.

    Entries at or before the threshold are ignored even if the source edited
    them, so local read state and fetched full content are never overwritten.
    Returns the number of entries added.
    """

    newest_known = feed.newest_published
    added = 0
    for entry in fetched:
        if entry.published_or_earliest > newest_known:
            feed.entries.append(entry.model_copy(update={"read": False}))
            added += 1
    feed.sort_entries()
    return added


def sync_feeds(feeds: Sequence[Feed], source: EntrySource) -> List[Feed]:
    """Return refreshed copies of ``feeds``.

    The input list is never mutated. The first fetch or parse failure
    propagates and aborts the whole cycle.
    """

    synced = [feed.model_copy(deep=True) for feed in feeds]
    total_added = 0
    for feed in synced:
        fetched = source.fetch_entries(feed.link)
        added = merge_new_entries(feed, fetched)
        if added:
            logger.info("Sync added %d entries to %s.", added, feed.id)
        total_added += added
    logger.info("Sync finished for %d feed(s); %d new entries.", len(synced), total_added)
    return synced


__all__ = ["EntrySource", "merge_new_entries", "sync_feeds"]
