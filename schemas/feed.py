"""Pydantic models for feeds and their entries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise ``value`` to an aware UTC datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Entry(BaseModel):
    """A single item published by a feed, e.g. an article."""

    id: str = Field(..., description="Identifier, stable within the owning feed")
    title: str = Field("Untitled", description="Entry headline")
    authors: List[str] = Field(default_factory=list, description="Author names")
    content: str = Field("", description="Plain text content, already rendered from markup")
    content_line_count: int = Field(0, ge=0, description="Wrapped line count at the last rendered width")
    link: str = Field("", description="Entry URL")
    published: Optional[datetime] = Field(None, description="Publication time in UTC")
    read: bool = Field(False, description="Whether the entry has been opened")

    @field_validator("published")
    @classmethod
    def _normalise_published(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def published_or_earliest(self) -> datetime:
        return self.published or EARLIEST


class Feed(BaseModel):
    """A subscribed web feed and its entries, newest first."""

    id: str = Field(..., description="Identifier assigned by the feed source")
    title: str = Field("Untitled", description="Feed title")
    link: str = Field("", description="URL the feed is fetched from")
    entries: List[Entry] = Field(default_factory=list, description="Entries sorted by published descending")
    expanded: bool = Field(False, description="Whether entries are listed under the feed row")

    def sort_entries(self) -> None:
        """Restore newest-first ordering; ties keep their current relative order."""
        self.entries.sort(key=lambda entry: entry.published_or_earliest, reverse=True)

    @property
    def newest_published(self) -> datetime:
        if not self.entries:
            return EARLIEST
        return self.entries[0].published_or_earliest

    @property
    def unread_count(self) -> int:
        return sum(1 for entry in self.entries if not entry.read)


def sort_feeds(feeds: List[Feed]) -> None:
    """Order feeds by title ascending, in place."""
    feeds.sort(key=lambda feed: feed.title)


__all__ = ["EARLIEST", "Entry", "Feed", "as_utc", "sort_feeds"]
