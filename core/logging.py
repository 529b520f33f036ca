"""Shared logging helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

_CONFIGURED = False
_FILE_HANDLER_ATTACHED = False
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def attach_file_handler(path: Path, *, level: Union[int, str] = logging.INFO, fmt: Optional[str] = None) -> None:
    """Send root logging to ``path`` instead of the terminal.

    curses owns the screen while the reader runs, so anything written to stderr
    would corrupt the display.
    """
    global _FILE_HANDLER_ATTACHED
    if _FILE_HANDLER_ATTACHED:
        return
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        logging.getLogger(__name__).warning("Failed to open log file %s: %s", path, exc)
        root.addHandler(logging.NullHandler())
        _FILE_HANDLER_ATTACHED = True
        return
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))
    _FILE_HANDLER_ATTACHED = True


def _default_level() -> int:
    return _resolve_level(os.getenv("FEEDLINE_LOG_LEVEL", "INFO"))


def setup_logging(level: Union[int, str, None] = None, *, fmt: Optional[str] = None) -> None:
    """Ensure root logger is configured once."""
    global _CONFIGURED
    if not _CONFIGURED:
        resolved = _resolve_level(level) if level is not None else _default_level()
        logging.basicConfig(level=resolved, format=fmt or _DEFAULT_FORMAT)
        _CONFIGURED = True


def get_logger(name: str, *, level: Union[int, str, None] = None) -> logging.Logger:
    """Return configured logger for a module; the level defaults to ``FEEDLINE_LOG_LEVEL``."""
    resolved = _resolve_level(level) if level is not None else _default_level()
    setup_logging(level=resolved)
    logger = logging.getLogger(name)
    logger.setLevel(resolved)
    return logger
