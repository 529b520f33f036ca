"""Draw the reader state with curses."""

from __future__ import annotations

import curses
from typing import List, Optional, Sequence, Tuple

from schemas.feed import Entry
from schemas.view import EntryView, FeedRow, PopupState, Row, Viewport, clamp_cursor
from services.feed_text import display_width, truncate_text, wrap_text
from services.reader_app import ReaderApp

COLOR_ACCENT = 1
COLOR_ERROR = 2
COLOR_HINT = 3
COLOR_BUSY = 4

FEED_LIST_HINTS = [("↓", "j"), ("↑", "k"), ("Select", "Enter"), ("Add", "a"), ("Delete", "d"), ("Sync", "s"), ("Quit", "q")]
ENTRY_HINTS = [("↓", "j"), ("↑", "k"), ("Fetch", "f"), ("Open", "o"), ("Help", "h"), ("Back", "q")]

FEED_LIST_HELP = [
    ("j / Down", "move down"),
    ("k / Up", "move up"),
    ("gg / G", "jump to top / bottom"),
    ("Ctrl-d / Ctrl-u", "half page down / up"),
    ("Enter", "expand feed or open entry"),
    ("c", "collapse feed"),
    ("a", "add feed"),
    ("d", "delete feed"),
    ("s", "sync all feeds"),
    ("q / Esc", "quit"),
]
ENTRY_HELP = [
    ("j / Down", "scroll down"),
    ("k / Up", "scroll up"),
    ("gg / G", "jump to top / bottom"),
    ("Ctrl-d / Ctrl-u", "half page down / up"),
    ("f", "fetch full content"),
    ("o", "open in browser"),
    ("q / Esc", "back to feeds"),
]


def init_colors() -> None:
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors()
    curses.init_pair(COLOR_ACCENT, curses.COLOR_YELLOW, -1)
    curses.init_pair(COLOR_ERROR, curses.COLOR_RED, -1)
    curses.init_pair(COLOR_HINT, curses.COLOR_BLUE, -1)
    curses.init_pair(COLOR_BUSY, curses.COLOR_YELLOW, -1)


def _set_cursor_visible(visible: bool) -> None:
    try:
        curses.curs_set(1 if visible else 0)
    except curses.error:
        # Some terminals cannot change cursor visibility.
        pass


def _color(pair: int) -> int:
    return curses.color_pair(pair) if curses.has_colors() else 0


def _put(window, y: int, x: int, text: str, attr: int = 0) -> None:
    height, width = window.getmaxyx()
    if y < 0 or y >= height or x >= width:
        return
    text = truncate_text(text, width - x)
    try:
        window.addstr(y, x, text, attr)
    except curses.error:
        # Writing the bottom-right cell moves the cursor off screen.
        pass


def format_published(entry: Entry) -> str:
    if entry.published is None:
        return ""
    local = entry.published.astimezone()
    return local.strftime("%Y-%m-%d %I:%M") + local.strftime("%p").lower()


def visible_window(cursor: int, row_count: int, visible_height: int) -> Tuple[int, int]:
    """Return the ``[start, end)`` slice of rows to draw, keeping the cursor centred."""
    if visible_height <= 0 or row_count == 0:
        return 0, 0
    if row_count <= visible_height or cursor < visible_height // 2:
        start = 0
    elif cursor + visible_height // 2 >= row_count:
        start = row_count - visible_height
    else:
        start = cursor - visible_height // 2
    return start, min(row_count, start + visible_height)


def _draw_hints(window, y: int, hints: Sequence[Tuple[str, str]]) -> None:
    _, width = window.getmaxyx()
    total = sum(display_width(label) + len(key) + 3 for label, key in hints)
    x = max(0, (width - total) // 2)
    for label, key in hints:
        _put(window, y, x, label)
        x += display_width(label)
        _put(window, y, x, f"<{key}> ", _color(COLOR_HINT) | curses.A_BOLD)
        x += len(key) + 3


def _draw_feed_row(window, y: int, width: int, app: ReaderApp, row: Row, selected: bool) -> None:
    attr = curses.A_REVERSE if selected else 0
    if isinstance(row, FeedRow):
        feed = app.feeds[row.feed_index]
        prefix = "▼ " if feed.expanded else "▶ "
        unread = f" {feed.unread_count}*" if feed.unread_count else ""
        title = truncate_text(feed.title, max(1, width - len(prefix) - len(unread) - 1))
        _put(window, y, 1, prefix + title, attr)
        if unread:
            _put(window, y, 1 + len(prefix) + display_width(title), unread, attr | _color(COLOR_ACCENT))
        return

    entry = app.feeds[row.feed_index].entries[row.entry_index]
    marker = "" if entry.read else "*"
    date = format_published(entry)
    title = truncate_text(entry.title, max(1, width - len(date) - 7))
    _put(window, y, 1, "    " + title, attr)
    x = 5 + display_width(title)
    if marker:
        _put(window, y, x, marker, attr | _color(COLOR_ACCENT))
        x += 1
    if date:
        _put(window, y, x, f" {date}", attr | curses.A_DIM)


def draw_feed_list(window, app: ReaderApp, rows: Sequence[Row]) -> None:
    height, width = window.getmaxyx()
    _put(window, 0, 1, "Feeds", curses.A_BOLD)
    visible_height = app.last_viewport.height
    cursor = clamp_cursor(app.cursor, len(rows))
    start, end = visible_window(cursor, len(rows), visible_height)
    for offset, row in enumerate(rows[start:end]):
        _draw_feed_row(window, 1 + offset, width, app, row, start + offset == cursor)
    if not rows:
        _put(window, 1, 1, "No feeds yet. Press a to add one.", curses.A_DIM)
    _draw_hints(window, height - 1, FEED_LIST_HINTS)


def draw_entry(window, app: ReaderApp, entry: Entry) -> None:
    height, width = window.getmaxyx()
    _put(window, 0, 1, entry.title, curses.A_BOLD)
    viewport = app.last_viewport
    lines = wrap_text(entry.content, max(1, viewport.width))
    entry.content_line_count = len(lines)
    app.entry_scroll = min(app.entry_scroll, app.max_entry_scroll(entry))
    for offset, line in enumerate(lines[app.entry_scroll : app.entry_scroll + viewport.height]):
        _put(window, viewport.y + offset, viewport.x, line)
    _draw_hints(window, height - 1, ENTRY_HINTS)


def _popup_box(window, lines: List[str], *, title: str, attr: int = 0, hints: Sequence[Tuple[str, str]] = ()):
    height, width = window.getmaxyx()
    box_width = min(width, max(10, int(width * 0.85)))
    box_height = min(height, len(lines) + 2)
    top = max(0, (height - box_height) // 2)
    left = max(0, (width - box_width) // 2)
    popup = window.derwin(box_height, box_width, top, left)
    popup.erase()
    popup.attrset(attr)
    popup.box()
    popup.attrset(0)
    _put(popup, 0, 2, f" {title} ", attr | curses.A_BOLD)
    for index, line in enumerate(lines[: box_height - 2]):
        _put(popup, 1 + index, 1, line, attr)
    if hints:
        label = " ".join(f"{name}<{key}>" for name, key in hints)
        _put(popup, box_height - 1, max(1, (box_width - len(label)) // 2), label, _color(COLOR_HINT))
    return top, left


def draw_popup(window, app: ReaderApp, rows: Sequence[Row]) -> None:
    popup = app.popup
    if popup is PopupState.NONE:
        return
    _, width = window.getmaxyx()
    inner = max(1, int(width * 0.85) - 2)
    if popup is PopupState.ADD_FEED_INPUT:
        top, left = _popup_box(
            window, [app.input_buffer], title="Add feed", hints=[("Submit", "Enter"), ("Back", "Esc")]
        )
        cursor_x = 1 + display_width(app.input_buffer[: app.input_cursor])
        _set_cursor_visible(True)
        try:
            window.move(top + 1, left + min(cursor_x, inner))
        except curses.error:
            pass
        return
    if popup is PopupState.CONFIRM_DELETE_FEED:
        feed = app.feed_under_cursor(rows)
        name = feed.title if feed else ""
        text = wrap_text(f'Are you sure that you want to delete feed "{name}"', inner)
        _popup_box(window, text, title="Delete feed", attr=_color(COLOR_ERROR), hints=[("Yes", "y"), ("No", "n")])
    elif popup is PopupState.ERROR_MESSAGE:
        text = wrap_text(f"Error: {app.error_message or ''}", inner)
        _popup_box(window, text, title="Error", attr=_color(COLOR_ERROR), hints=[("Ok", "Enter")])
    elif popup is PopupState.SYNC_IN_PROGRESS:
        _popup_box(window, [f"Syncing {app.spinner_char}".center(inner)], title="Sync", attr=_color(COLOR_BUSY))
    elif popup in (PopupState.FEED_LIST_HELP, PopupState.ENTRY_HELP):
        bindings = FEED_LIST_HELP if popup is PopupState.FEED_LIST_HELP else ENTRY_HELP
        title = "Feed commands" if popup is PopupState.FEED_LIST_HELP else "Entry commands"
        _popup_box(window, [f"{key:<18}{action}" for key, action in bindings], title=title, hints=[("Back", "q")])


def draw(window, app: ReaderApp, status: Optional[str] = None) -> None:
    """Draw one frame and record the content area as the reader's viewport."""
    height, width = window.getmaxyx()
    window.erase()
    app.last_viewport = Viewport(x=1, y=1, width=max(0, width - 2), height=max(0, height - 2))
    rows = app.rows()
    entry = app.current_entry() if isinstance(app.view, EntryView) else None
    if entry is not None:
        draw_entry(window, app, entry)
    else:
        draw_feed_list(window, app, rows)
    if status:
        _put(window, height - 1, 0, status.ljust(width), _color(COLOR_ERROR) | curses.A_BOLD)
    _set_cursor_visible(False)
    draw_popup(window, app, rows)
    window.refresh()


__all__ = ["draw", "format_published", "init_colors", "visible_window"]
