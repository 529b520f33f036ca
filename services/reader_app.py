"""Interaction state machine for the terminal feed reader.

The reader owns navigation state (cursor, view, popup), turns key events into
transitions, launches background operations and applies their results. It is
the only writer of its own fields: background tasks talk to it exclusively
through :class:`schemas.events` values drained by the host loop.

Key handling is two-level. When a popup is active it receives every key;
otherwise the key goes to the handler of the current view.
"""

from __future__ import annotations

import logging
import webbrowser
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from schemas.events import EntryContentFetched, FeedAdded, OperationEvent, SyncCompleted
from schemas.feed import Entry, Feed, sort_feeds
from schemas.view import (
    EntryRow,
    EntryView,
    FeedListView,
    FeedRow,
    KeyEvent,
    PopupState,
    Row,
    ViewState,
    Viewport,
    build_rows,
    clamp_cursor,
)
from services.feed_store import FeedStore, expire_cutoff
from services.feed_tasks import TaskLauncher
from services.reader_errors import DuplicateFeedError, OpenHandlerError, PersistenceError

logger = logging.getLogger(__name__)

SPINNER_CHARS = ("/", "-", "\\", "|")
_QUIT_KEYS = ("Esc", "q")

Opener = Callable[[str], bool]


def _is_key(key: KeyEvent, *codes: str) -> bool:
    return not key.ctrl and key.code in codes


def _is_ctrl(key: KeyEvent, code: str) -> bool:
    return key.ctrl and key.code == code


class ReaderApp:
    """Navigation state plus the transitions driven by keys and operation events."""

    def __init__(
        self,
        store: FeedStore,
        tasks: TaskLauncher,
        feeds: Optional[Sequence[Feed]] = None,
        *,
        opener: Opener = webbrowser.open,
    ) -> None:
        self.store = store
        self.tasks = tasks
        self.opener = opener
        self.feeds: List[Feed] = list(feeds or [])
        self.view: ViewState = FeedListView()
        self.popup = PopupState.NONE
        self.cursor = 0
        self.input_buffer = ""
        self.input_cursor = 0
        self.last_key: Optional[KeyEvent] = None
        self.syncing = False
        self.last_viewport = Viewport()
        self.entry_scroll = 0
        self.error_message: Optional[str] = None
        self._pending_errors: List[str] = []
        self.spinner_index = 0

    @classmethod
    def start(
        cls,
        store: FeedStore,
        tasks: TaskLauncher,
        *,
        max_ttl: timedelta,
        now: Optional[datetime] = None,
        opener: Opener = webbrowser.open,
    ) -> "ReaderApp":
        """Expire stale unread entries, then load the store.

        An expiry failure is only logged; a load failure propagates because the
        reader cannot run without a readable store.
        """
        try:
            store.expire_unread_older_than(expire_cutoff(max_ttl, now=now or datetime.now(timezone.utc)))
        except PersistenceError as exc:
            logger.warning("Skipping expiry of old entries: %s", exc)
        return cls(store, tasks, store.load_all(), opener=opener)

    # ------------------------------------------------------------------
    # Queries used by the renderer
    # ------------------------------------------------------------------
    def rows(self) -> List[Row]:
        return build_rows(self.feeds)

    @property
    def spinner_char(self) -> str:
        return SPINNER_CHARS[self.spinner_index]

    def entry_at(self, feed_index: int, entry_index: int) -> Optional[Entry]:
        if not 0 <= feed_index < len(self.feeds):
            return None
        entries = self.feeds[feed_index].entries
        if not 0 <= entry_index < len(entries):
            return None
        return entries[entry_index]

    def current_entry(self) -> Optional[Entry]:
        if isinstance(self.view, EntryView):
            return self.entry_at(self.view.feed_index, self.view.entry_index)
        return None

    def feed_under_cursor(self, rows: Optional[Sequence[Row]] = None) -> Optional[Feed]:
        rows = self.rows() if rows is None else rows
        if not rows:
            return None
        row = rows[clamp_cursor(self.cursor, len(rows))]
        return self.feeds[row.feed_index]

    def max_entry_scroll(self, entry: Entry) -> int:
        return max(0, entry.content_line_count - self.last_viewport.height)

    def _half_page(self) -> int:
        return max(1, (self.last_viewport.height - 2) // 2)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------
    def show_error(self, message: str) -> None:
        if self.syncing:
            # The sync popup stays up until SyncCompleted; report afterwards.
            logger.warning("Deferring error until sync completes: %s", message)
            self._pending_errors.append(message)
            return
        logger.warning("Reporting error to user: %s", message)
        self.error_message = message
        self.popup = PopupState.ERROR_MESSAGE

    def _persist(self, action: Callable[..., object], *args: object) -> bool:
        try:
            action(*args)
        except PersistenceError as exc:
            self.show_error(str(exc))
            return False
        return True

    def on_tick(self) -> None:
        """Advance the busy indicator while a sync is running."""
        if self.syncing:
            self.spinner_index = (self.spinner_index + 1) % len(SPINNER_CHARS)

    # ------------------------------------------------------------------
    # Keyboard input
    # ------------------------------------------------------------------
    def handle_key(self, key: KeyEvent, rows: Optional[Sequence[Row]] = None) -> bool:
        """Apply ``key`` to the current state; returns ``True`` when the reader should quit.

        ``rows`` is the row list the key was pressed against. It is recomputed
        from the feeds when omitted.
        """
        rows = list(self.rows() if rows is None else rows)
        handler = {
            PopupState.ADD_FEED_INPUT: self._handle_add_feed_popup,
            PopupState.CONFIRM_DELETE_FEED: self._handle_confirm_delete_popup,
            PopupState.ERROR_MESSAGE: self._handle_error_popup,
            PopupState.ENTRY_HELP: self._handle_help_popup,
            PopupState.FEED_LIST_HELP: self._handle_help_popup,
            PopupState.SYNC_IN_PROGRESS: self._handle_sync_popup,
        }.get(self.popup)
        if handler is not None:
            return handler(key, rows)
        if isinstance(self.view, EntryView):
            return self._handle_entry_view(key, self.view)
        return self._handle_feed_list(key, rows)

    def _handle_add_feed_popup(self, key: KeyEvent, rows: List[Row]) -> bool:
        if _is_key(key, *_QUIT_KEYS):
            self._clear_input()
            self.popup = PopupState.NONE
        elif _is_key(key, "Enter"):
            source_url = self.input_buffer.strip()
            self._clear_input()
            self.popup = PopupState.NONE
            if source_url:
                self.tasks.add_feed(source_url)
        elif _is_key(key, "Backspace"):
            self._delete_char()
        elif _is_key(key, "Left"):
            self.input_cursor = max(0, self.input_cursor - 1)
        elif _is_key(key, "Right"):
            self.input_cursor = min(len(self.input_buffer), self.input_cursor + 1)
        elif key.is_char() and not key.ctrl:
            self._insert_char(key.code)
        return False

    # Python strings index by code point, so the character position doubles
    # as the storage position for multi-byte input.
    def _insert_char(self, char: str) -> None:
        index = clamp_cursor(self.input_cursor, len(self.input_buffer) + 1)
        self.input_buffer = self.input_buffer[:index] + char + self.input_buffer[index:]
        self.input_cursor = index + 1

    def _delete_char(self) -> None:
        index = min(self.input_cursor, len(self.input_buffer))
        if index == 0:
            return
        self.input_buffer = self.input_buffer[: index - 1] + self.input_buffer[index:]
        self.input_cursor = index - 1

    def _clear_input(self) -> None:
        self.input_buffer = ""
        self.input_cursor = 0

    def _handle_confirm_delete_popup(self, key: KeyEvent, rows: List[Row]) -> bool:
        if _is_key(key, "Esc", "q", "n"):
            self.popup = PopupState.NONE
        elif _is_key(key, "y"):
            self.popup = PopupState.NONE
            if rows:
                row = rows[clamp_cursor(self.cursor, len(rows))]
                self._delete_feed(row.feed_index, rows)
        return False

    def _delete_feed(self, feed_index: int, rows: Sequence[Row]) -> None:
        feed = self.feeds[feed_index]
        former_position = rows.index(FeedRow(feed_index)) if FeedRow(feed_index) in rows else 0
        self._persist(self.store.delete_feed, feed.id)
        # Memory stays authoritative even when the store refused the delete.
        del self.feeds[feed_index]
        self.cursor = clamp_cursor(former_position, len(self.rows()))
        logger.info("Deleted feed %s.", feed.id)

    def _handle_error_popup(self, key: KeyEvent, rows: List[Row]) -> bool:
        if _is_key(key, "Esc", "q", "Enter"):
            self.error_message = None
            self.popup = PopupState.NONE
        return False

    def _handle_help_popup(self, key: KeyEvent, rows: List[Row]) -> bool:
        if _is_key(key, *_QUIT_KEYS):
            self.popup = PopupState.NONE
        return False

    def _handle_sync_popup(self, key: KeyEvent, rows: List[Row]) -> bool:
        # Cleared only by SyncCompleted.
        return False

    def _handle_feed_list(self, key: KeyEvent, rows: List[Row]) -> bool:
        self.cursor = clamp_cursor(self.cursor, len(rows))
        previous_key, self.last_key = self.last_key, key

        if _is_key(key, *_QUIT_KEYS):
            return True
        if _is_key(key, "Down", "j"):
            self.cursor = clamp_cursor(self.cursor + 1, len(rows))
        elif _is_key(key, "Up", "k"):
            self.cursor = clamp_cursor(self.cursor - 1, len(rows))
        elif _is_key(key, "g"):
            if previous_key == key:
                self.cursor = 0
                self.last_key = None
        elif _is_key(key, "G", "End"):
            self.cursor = clamp_cursor(len(rows) - 1, len(rows))
        elif _is_ctrl(key, "u"):
            self.cursor = clamp_cursor(self.cursor - self._half_page(), len(rows))
        elif _is_ctrl(key, "d"):
            self.cursor = clamp_cursor(self.cursor + self._half_page(), len(rows))
        elif _is_key(key, "Enter"):
            if rows:
                self._open_row(rows[self.cursor])
        elif _is_key(key, "c"):
            if rows:
                self._collapse_row(rows[self.cursor])
        elif _is_key(key, "a"):
            self.popup = PopupState.ADD_FEED_INPUT
        elif _is_key(key, "d"):
            if rows:
                self.popup = PopupState.CONFIRM_DELETE_FEED
        elif _is_key(key, "h"):
            self.popup = PopupState.FEED_LIST_HELP
        elif _is_key(key, "s"):
            self._start_sync()
        return False

    def _open_row(self, row: Row) -> None:
        if isinstance(row, FeedRow):
            feed = self.feeds[row.feed_index]
            feed.expanded = not feed.expanded
            self._persist(self.store.save_feed, feed)
            return
        feed = self.feeds[row.feed_index]
        entry = feed.entries[row.entry_index]
        entry.read = True
        self.entry_scroll = 0
        self._persist(self.store.save_entry, feed.id, entry)
        self.view = EntryView(row.feed_index, row.entry_index)

    def _collapse_row(self, row: Row) -> None:
        feed = self.feeds[row.feed_index]
        feed.expanded = False
        if isinstance(row, EntryRow):
            self.cursor = max(0, self.cursor - row.entry_index - 1)
        self._persist(self.store.save_feed, feed)

    def _start_sync(self) -> None:
        if self.syncing:
            return
        self.syncing = True
        self.spinner_index = 0
        self.popup = PopupState.SYNC_IN_PROGRESS
        self.tasks.sync(self.feeds)

    def _handle_entry_view(self, key: KeyEvent, view: EntryView) -> bool:
        entry = self.entry_at(view.feed_index, view.entry_index)
        if entry is None:
            logger.debug("Entry view %s no longer exists; returning to feed list.", view)
            self.view = FeedListView()
            return False
        previous_key, self.last_key = self.last_key, key
        max_scroll = self.max_entry_scroll(entry)

        if _is_key(key, *_QUIT_KEYS):
            self.view = FeedListView()
        elif _is_key(key, "Down", "j"):
            self.entry_scroll = min(self.entry_scroll + 1, max_scroll)
        elif _is_key(key, "Up", "k"):
            self.entry_scroll = max(0, self.entry_scroll - 1)
        elif _is_key(key, "g"):
            if previous_key == key:
                self.entry_scroll = 0
                self.last_key = None
        elif _is_key(key, "G", "End"):
            self.entry_scroll = max_scroll
        elif _is_ctrl(key, "u"):
            self.entry_scroll = max(0, self.entry_scroll - self._half_page())
        elif _is_ctrl(key, "d"):
            self.entry_scroll = min(self.entry_scroll + self._half_page(), max_scroll)
        elif _is_key(key, "o"):
            self._open_link(entry.link)
        elif _is_key(key, "f"):
            width = self.last_viewport.width - 2 if self.last_viewport.width > 2 else None
            self.tasks.fetch_entry_content(
                view.feed_index, view.entry_index, entry.link, width, entry_id=entry.id
            )
        elif _is_key(key, "h"):
            self.popup = PopupState.ENTRY_HELP
        return False

    def _open_link(self, link: str) -> None:
        if not link:
            raise OpenHandlerError("entry has no link to open")
        try:
            opened = self.opener(link)
        except webbrowser.Error as exc:
            raise OpenHandlerError(f"failed to open {link}: {exc}") from exc
        if opened is False:
            raise OpenHandlerError(f"no handler available to open {link}")

    # ------------------------------------------------------------------
    # Background operation results
    # ------------------------------------------------------------------
    def handle_operation_event(self, event: OperationEvent) -> None:
        if isinstance(event, FeedAdded):
            self._apply_feed_added(event)
        elif isinstance(event, EntryContentFetched):
            self._apply_entry_content(event)
        elif isinstance(event, SyncCompleted):
            self._apply_sync(event)
        else:
            logger.error("Ignoring unknown operation event %r.", event)

    def _apply_feed_added(self, event: FeedAdded) -> None:
        if not event.ok:
            self.show_error(event.error or "Failed to add feed")
            return
        feed = event.feed.model_copy(deep=True)
        try:
            self._ensure_not_subscribed(feed)
        except DuplicateFeedError as exc:
            self.show_error(str(exc))
            return
        feed.link = event.source_url
        self._persist(self.store.save_feed, feed)
        with self._view_anchor():
            self.feeds.append(feed)
            sort_feeds(self.feeds)
        logger.info("Added feed %s (%d entries).", feed.id, len(feed.entries))

    def _ensure_not_subscribed(self, feed: Feed) -> None:
        if any(existing.id == feed.id for existing in self.feeds):
            raise DuplicateFeedError(f"failed to add {feed.title}: feed already exists")

    def _apply_entry_content(self, event: EntryContentFetched) -> None:
        if not event.ok:
            self.show_error(event.error or "Failed to load full content")
            return
        entry = self.entry_at(event.feed_index, event.entry_index)
        if entry is None or (event.entry_id is not None and entry.id != event.entry_id):
            logger.info(
                "Dropping fetched content for moved or missing entry (%d, %d).", event.feed_index, event.entry_index
            )
            return
        if self.popup is not PopupState.ERROR_MESSAGE:
            self.error_message = None
        entry.content = event.content
        self._persist(self.store.save_entry, self.feeds[event.feed_index].id, entry)

    def _apply_sync(self, event: SyncCompleted) -> None:
        self.syncing = False
        self.popup = PopupState.NONE
        pending, self._pending_errors = self._pending_errors, []
        if event.ok:
            with self._view_anchor():
                self.feeds = self._merge_synced(event.feeds)
            self._persist(self.store.save_all, self.feeds)
            self.cursor = clamp_cursor(self.cursor, len(self.rows()))
        else:
            pending.insert(0, f"Sync failed: {event.error}")
        if pending:
            self.show_error("; ".join(pending))

    def _merge_synced(self, synced: Sequence[Feed]) -> List[Feed]:
        """Fold sync results into the current list without losing changes made while it ran.

        Feeds added during the sync are kept as they are. Entries that exist in
        memory keep their in-memory state, so content fetched meanwhile survives.
        """
        by_id = {feed.id: feed for feed in synced}
        merged: List[Feed] = []
        for current in self.feeds:
            fresh = by_id.get(current.id)
            if fresh is None:
                merged.append(current)
                continue
            feed = fresh.model_copy(deep=True)
            feed.expanded = current.expanded
            known = {entry.id: entry for entry in current.entries}
            feed.entries = [known.get(entry.id, entry) for entry in feed.entries]
            merged.append(feed)
        return merged

    def _view_anchor(self) -> "_ViewAnchor":
        return _ViewAnchor(self)


class _ViewAnchor:
    """Keep an open entry view pointing at the same entry while the feed list is rebuilt."""

    def __init__(self, app: ReaderApp) -> None:
        self._app = app
        self._ids: Optional[tuple] = None

    def __enter__(self) -> "_ViewAnchor":
        view = self._app.view
        if isinstance(view, EntryView):
            entry = self._app.entry_at(view.feed_index, view.entry_index)
            if entry is not None:
                self._ids = (self._app.feeds[view.feed_index].id, entry.id)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None or self._ids is None:
            return
        feed_id, entry_id = self._ids
        for feed_index, feed in enumerate(self._app.feeds):
            if feed.id != feed_id:
                continue
            for entry_index, entry in enumerate(feed.entries):
                if entry.id == entry_id:
                    self._app.view = EntryView(feed_index, entry_index)
                    return
        self._app.view = FeedListView()


__all__ = ["ReaderApp", "SPINNER_CHARS"]
