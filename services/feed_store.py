"""Persistence helpers for subscribed feeds and their entries."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import create_reader_engine, create_session_factory
from models.feed import EntryRecord, FeedRecord
from schemas.feed import EARLIEST, Entry, Feed, as_utc
from services.reader_errors import PersistenceError

logger = logging.getLogger(__name__)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    normalised = as_utc(value)
    if normalised is None:
        return None
    # Fixed width, years zero-padded, so lexical order of the stored text is chronological.
    return normalised.isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring unreadable timestamp %r in store.", value)
        return None
    return as_utc(parsed)


def _entry_record(feed_id: str, entry: Entry) -> EntryRecord:
    return EntryRecord(
        id=entry.id,
        feed_id=feed_id,
        title=entry.title,
        authors=list(entry.authors),
        content=entry.content,
        content_line_count=entry.content_line_count,
        link=entry.link,
        published=format_timestamp(entry.published),
        read=entry.read,
    )


def _entry_from_record(record: EntryRecord) -> Entry:
    authors = record.authors if isinstance(record.authors, list) else []
    return Entry(
        id=record.id,
        title=record.title,
        authors=[str(author) for author in authors],
        content=record.content or "",
        content_line_count=max(0, record.content_line_count or 0),
        link=record.link or "",
        published=parse_timestamp(record.published),
        read=bool(record.read),
    )


class FeedStore:
    """Durable mirror of the reader's feed list, keyed by feed and entry ids.

    Every public method raises :class:`PersistenceError` on failure; callers
    decide whether that is fatal.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @classmethod
    def open(cls, database_url: str) -> "FeedStore":
        try:
            engine = create_reader_engine(database_url)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to open feed store: {exc}") from exc
        return cls(create_session_factory(engine))

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("Feed store %s failed: %s", action, exc)
            raise PersistenceError(f"Failed to {action}: {exc}") from exc
        finally:
            session.close()

    def save_feed(self, feed: Feed) -> None:
        """Upsert ``feed`` and all of its entries in one transaction."""
        with self._transaction("save feed") as session:
            session.merge(FeedRecord(id=feed.id, title=feed.title, link=feed.link, expanded=feed.expanded))
            # No relationship() orders the inserts, so the feed row must exist before its entries.
            session.flush()
            for entry in feed.entries:
                session.merge(_entry_record(feed.id, entry))
        logger.debug("Saved feed %s with %d entries.", feed.id, len(feed.entries))

    def save_entry(self, feed_id: str, entry: Entry) -> None:
        with self._transaction("save entry") as session:
            session.merge(_entry_record(feed_id, entry))

    def save_all(self, feeds: Sequence[Feed]) -> None:
        """Save feeds one at a time; a failure leaves earlier feeds committed."""
        for feed in feeds:
            self.save_feed(feed)

    def load_all(self) -> List[Feed]:
        """Return feeds by title ascending, each with entries newest first."""
        with self._transaction("load feeds") as session:
            feed_records = session.scalars(select(FeedRecord).order_by(FeedRecord.title.asc())).all()
            feeds: List[Feed] = []
            for record in feed_records:
                entry_records = session.scalars(
                    select(EntryRecord)
                    .where(EntryRecord.feed_id == record.id)
                    .order_by(EntryRecord.published.desc())
                ).all()
                feed = Feed(
                    id=record.id,
                    title=record.title,
                    link=record.link,
                    expanded=bool(record.expanded),
                    entries=[_entry_from_record(entry) for entry in entry_records],
                )
                feed.sort_entries()
                feeds.append(feed)
        logger.info("Loaded %d feed(s) from store.", len(feeds))
        return feeds

    def delete_feed(self, feed_id: str) -> int:
        """Delete a feed; its entries go with it through the foreign key cascade."""
        with self._transaction("delete feed") as session:
            result = session.execute(delete(FeedRecord).where(FeedRecord.id == feed_id))
        return result.rowcount or 0

    def expire_unread_older_than(self, cutoff: datetime) -> int:
        """Remove unread entries published before ``cutoff``; returns the number removed."""
        threshold = format_timestamp(cutoff)
        with self._transaction("expire entries") as session:
            result = session.execute(
                delete(EntryRecord).where(
                    EntryRecord.published.is_not(None),
                    EntryRecord.published < threshold,
                    EntryRecord.read.is_(False),
                )
            )
        removed = result.rowcount or 0
        if removed:
            logger.info("Expired %d unread entries published before %s.", removed, threshold)
        return removed


def expire_cutoff(max_age: timedelta, *, now: Optional[datetime] = None) -> datetime:
    """Return the expiry cutoff for entries older than ``max_age``.

    Negative ages count as zero; an age reaching past the earliest
    representable time expires nothing.
    """
    reference = now or datetime.now(timezone.utc)
    try:
        return reference - max(max_age, timedelta(0))
    except OverflowError:
        logger.warning("Expiry age %s reaches before the earliest date; nothing will expire.", max_age)
        return EARLIEST


__all__ = ["FeedStore", "expire_cutoff", "format_timestamp", "parse_timestamp"]
