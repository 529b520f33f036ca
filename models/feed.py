"""SQLAlchemy models backing the local feed store."""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, Text

from database import Base


class FeedRecord(Base):
    """Durable copy of a subscribed feed."""

    __tablename__ = "feeds"

    id = Column(String, primary_key=True, comment="Identifier assigned by the feed source")
    title = Column(Text, nullable=False)
    link = Column(Text, nullable=False, comment="URL the feed is fetched from")
    expanded = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<FeedRecord(id={self.id!r}, title={self.title!r})>"


class EntryRecord(Base):
    """Durable copy of a feed entry."""

    __tablename__ = "entries"

    # Entry ids are only unique within their feed.
    feed_id = Column(String, ForeignKey("feeds.id", ondelete="CASCADE"), primary_key=True, index=True)
    id = Column(String, primary_key=True)
    title = Column(Text, nullable=False)
    authors = Column(JSON, nullable=False, default=list, comment="JSON array of author names")
    content = Column(Text, nullable=False, default="")
    content_line_count = Column(Integer, nullable=False, default=0)
    link = Column(Text, nullable=False, default="")
    published = Column(String, nullable=True, index=True, comment="ISO-8601 UTC timestamp")
    read = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<EntryRecord(id={self.id!r}, feed_id={self.feed_id!r})>"
