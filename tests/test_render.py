import re
from typing import Dict, Tuple

import pytest

from conftest import install_feeds, make_entry, make_feed
from schemas.view import EntryView, PopupState, Viewport
from tui import render
from tui.render import draw, format_published, visible_window


class FakeWindow:
    """Records text written at each screen position."""

    def __init__(self, height: int, width: int, origin: Tuple[int, int] = (0, 0), cells=None) -> None:
        self.height = height
        self.width = width
        self.origin = origin
        self.cells: Dict[Tuple[int, int], str] = {} if cells is None else cells
        self.cursor = None

    def getmaxyx(self):
        return self.height, self.width

    def erase(self):
        # Only this window's own rectangle; a derived window shares its parent's cells.
        top, left = self.origin
        for y, x in list(self.cells):
            if top <= y < top + self.height and left <= x < left + self.width:
                del self.cells[(y, x)]

    def addstr(self, y, x, text, attr=0):
        self.cells[(self.origin[0] + y, self.origin[1] + x)] = text

    def derwin(self, height, width, top, left):
        return FakeWindow(height, width, (self.origin[0] + top, self.origin[1] + left), self.cells)

    def attrset(self, attr):
        pass

    def box(self):
        pass

    def move(self, y, x):
        self.cursor = (y, x)

    def refresh(self):
        pass

    def line(self, y: int) -> str:
        return " ".join(text for (row, _), text in sorted(self.cells.items()) if row == y)

    def text(self) -> str:
        return "\n".join(self.cells.values())


@pytest.fixture(autouse=True)
def no_terminal(monkeypatch):
    monkeypatch.setattr(render.curses, "has_colors", lambda: False)
    monkeypatch.setattr(render, "_set_cursor_visible", lambda visible: None)


@pytest.mark.parametrize(
    ("cursor", "row_count", "height", "expected"),
    [
        (0, 0, 10, (0, 0)),
        (3, 5, 10, (0, 5)),
        (2, 50, 10, (0, 10)),
        (25, 50, 10, (20, 30)),
        (48, 50, 10, (40, 50)),
        (0, 5, 0, (0, 0)),
    ],
)
def test_visible_window_keeps_cursor_in_view(cursor, row_count, height, expected):
    start, end = visible_window(cursor, row_count, height)

    assert (start, end) == expected
    if row_count and height:
        assert start <= cursor < end


def test_format_published():
    assert format_published(make_entry("undated", hours=None)) == ""
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}(am|pm)", format_published(make_entry("dated")))


def test_draw_records_content_viewport(app):
    install_feeds(app, [make_feed("a", [make_entry("a1"), make_entry("a2", hours=-1, read=True)], expanded=True)])
    window = FakeWindow(24, 80)

    draw(window, app)

    assert app.last_viewport == Viewport(x=1, y=1, width=78, height=22)
    assert "▼ Feed a" in window.line(1)
    assert "1*" in window.line(1)
    assert "Entry a1" in window.line(2)
    assert "Quit" in window.line(23)


def test_draw_entry_sets_line_count_and_clamps_scroll(app):
    body = " ".join(f"word{n}" for n in range(200))
    install_feeds(app, [make_feed("a", [make_entry("a1", content=body)], expanded=True)])
    app.view = EntryView(0, 0)
    app.entry_scroll = 500
    window = FakeWindow(12, 40)

    draw(window, app)

    entry = app.current_entry()
    assert entry.content_line_count > 10
    assert app.entry_scroll == entry.content_line_count - 10
    assert "Entry a1" in window.line(0)


def test_draw_error_popup_and_status_line(app):
    app.show_error("Sync failed: timed out")
    window = FakeWindow(24, 80)

    draw(window, app, status="Error: no handler available")

    assert "Error: Sync failed: timed out" in window.text()
    assert "Error: no handler available" in window.line(23)


def test_draw_add_feed_popup_places_cursor(app):
    app.popup = PopupState.ADD_FEED_INPUT
    app.input_buffer = "https://日本"
    app.input_cursor = len(app.input_buffer)
    window = FakeWindow(24, 80)

    draw(window, app)

    assert "https://日本" in window.text()
    top, left = 10, 6
    assert window.cursor == (top + 1, left + 1 + 12)


def test_popup_leaves_screen_outside_its_box(app):
    install_feeds(app, [make_feed("a", [make_entry("a1")], expanded=True)])
    app.show_error("Sync failed: timed out")
    window = FakeWindow(24, 80)

    draw(window, app, status="Error: no handler available")

    assert "▼ Feed a" in window.line(1)
    assert "Entry a1" in window.line(2)
    assert "Error: Sync failed: timed out" in window.line(11)
    assert "Error: no handler available" in window.line(23)


def test_fake_window_erase_is_limited_to_derived_window():
    window = FakeWindow(24, 80)
    window.addstr(1, 1, "outside")
    child = window.derwin(3, 10, 10, 6)
    child.addstr(1, 1, "inside")

    child.erase()

    assert window.line(1) == "outside"
    assert window.line(11) == ""
