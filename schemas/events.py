"""Immutable results sent by background tasks back to the reader."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from schemas.feed import Feed


@dataclass(frozen=True, slots=True)
class FeedAdded:
    """Outcome of fetching a feed the user asked to subscribe to."""

    source_url: str
    feed: Optional[Feed] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.feed is not None


@dataclass(frozen=True, slots=True)
class EntryContentFetched:
    """Outcome of downloading the full page behind an entry."""

    feed_index: int
    entry_index: int
    content: Optional[str] = None
    error: Optional[str] = None
    entry_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


@dataclass(frozen=True, slots=True)
class SyncCompleted:
    """Outcome of a full sync cycle; ``feeds`` are folded into the reader's list on success."""

    feeds: Optional[Tuple[Feed, ...]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.feeds is not None


OperationEvent = Union[FeedAdded, EntryContentFetched, SyncCompleted]

__all__ = ["EntryContentFetched", "FeedAdded", "OperationEvent", "SyncCompleted"]
