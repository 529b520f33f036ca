"""Navigation state shared by the reader state machine and the renderer."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from schemas.feed import Feed


@dataclass(frozen=True)
class FeedRow:
    feed_index: int


@dataclass(frozen=True)
class EntryRow:
    feed_index: int
    entry_index: int


Row = Union[FeedRow, EntryRow]


@dataclass(frozen=True)
class FeedListView:
    """The list of feeds with the entries of expanded feeds nested below."""


@dataclass(frozen=True)
class EntryView:
    """A single entry, displaying its content."""

    feed_index: int
    entry_index: int


ViewState = Union[FeedListView, EntryView]


class PopupState(enum.Enum):
    NONE = "none"
    ADD_FEED_INPUT = "add_feed_input"
    CONFIRM_DELETE_FEED = "confirm_delete_feed"
    ERROR_MESSAGE = "error_message"
    ENTRY_HELP = "entry_help"
    FEED_LIST_HELP = "feed_list_help"
    SYNC_IN_PROGRESS = "sync_in_progress"


@dataclass(frozen=True)
class KeyEvent:
    """A decoded key press.

    ``code`` is either a single character or one of the named keys
    ``Enter``, ``Esc``, ``Up``, ``Down``, ``Left``, ``Right``, ``Backspace``, ``End``.
    """

    code: str
    ctrl: bool = False

    def is_char(self, char: Optional[str] = None) -> bool:
        if len(self.code) != 1:
            return False
        return char is None or self.code == char


@dataclass(frozen=True)
class Viewport:
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


def build_rows(feeds: Sequence[Feed]) -> List[Row]:
    """Project feeds into display rows; entries appear only under expanded feeds."""
    rows: List[Row] = []
    for feed_index, feed in enumerate(feeds):
        rows.append(FeedRow(feed_index))
        if feed.expanded:
            rows.extend(EntryRow(feed_index, entry_index) for entry_index in range(len(feed.entries)))
    return rows


def clamp_cursor(cursor: int, row_count: int) -> int:
    if row_count <= 0:
        return 0
    return max(0, min(cursor, row_count - 1))


__all__ = [
    "EntryRow",
    "EntryView",
    "FeedListView",
    "FeedRow",
    "KeyEvent",
    "PopupState",
    "Row",
    "ViewState",
    "Viewport",
    "build_rows",
    "clamp_cursor",
]
