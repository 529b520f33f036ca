"""Translate curses input into reader key events."""

from __future__ import annotations

import curses
from typing import Optional, Union

from schemas.view import KeyEvent

_SPECIAL_KEYS = {
    curses.KEY_UP: "Up",
    curses.KEY_DOWN: "Down",
    curses.KEY_LEFT: "Left",
    curses.KEY_RIGHT: "Right",
    curses.KEY_BACKSPACE: "Backspace",
    curses.KEY_ENTER: "Enter",
    curses.KEY_END: "End",
}

_NAMED_CHARS = {
    "\n": "Enter",
    "\r": "Enter",
    "\x1b": "Esc",
    "\x7f": "Backspace",
    "\x08": "Backspace",
}


def decode_key(raw: Union[str, int, None]) -> Optional[KeyEvent]:
    """Map a value returned by ``window.get_wch()`` to a :class:`KeyEvent`.

    Returns ``None`` for keys the reader has no binding for (function keys,
    terminal resize notifications, tabs).
    """

    if raw is None:
        return None
    if isinstance(raw, int):
        name = _SPECIAL_KEYS.get(raw)
        return KeyEvent(name) if name else None
    if raw in _NAMED_CHARS:
        return KeyEvent(_NAMED_CHARS[raw])
    if len(raw) != 1:
        return None
    code = ord(raw)
    if 1 <= code <= 26:
        if raw == "\t":
            return None
        return KeyEvent(chr(code + ord("a") - 1), ctrl=True)
    if code < 32:
        return None
    return KeyEvent(raw)


def read_key(window) -> Optional[KeyEvent]:
    """Wait for one key using the window's configured timeout."""
    try:
        raw = window.get_wch()
    except curses.error:
        # Raised when the timeout expires without input.
        return None
    return decode_key(raw)


__all__ = ["decode_key", "read_key"]
