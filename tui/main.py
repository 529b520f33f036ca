"""Command line entry point and host loop for the terminal feed reader."""

from __future__ import annotations

import argparse
import curses
import os
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from core.config import APP_NAME, APP_VERSION, ReaderSettings, load_settings
from core.env_utils import load_dotenv_if_available
from core.logging import attach_file_handler, get_logger
from ingest.feed_client import FeedClient
from services.feed_store import FeedStore
from services.feed_tasks import EventChannel, TaskLauncher
from services.reader_app import ReaderApp
from services.reader_errors import OpenHandlerError, PersistenceError
from tui.keys import read_key
from tui.render import draw, init_colors

logger = get_logger(__name__)


def non_negative_days(value: str) -> int:
    try:
        days = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid day count: {value!r}") from None
    if days < 0:
        raise argparse.ArgumentTypeError(f"day count must be zero or more, got {days}")
    return days


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="A small terminal reader for RSS and Atom feeds.")
    parser.add_argument("-d", "--db-path", type=Path, help=f"Directory holding the {APP_NAME} database.")
    parser.add_argument(
        "-m",
        "--max-ttl-days",
        type=non_negative_days,
        help="Delete unread entries older than this many days at startup.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def run_loop(window, app: ReaderApp, channel: EventChannel, settings: ReaderSettings) -> None:
    """Render, apply at most one operation event, then wait briefly for one key."""
    init_colors()
    window.keypad(True)
    window.timeout(settings.input_poll_ms)
    tick_seconds = settings.tick_ms / 1000.0
    last_tick = time.monotonic()
    status: Optional[str] = None

    while True:
        draw(window, app, status)

        event = channel.try_receive()
        if event is not None:
            app.handle_operation_event(event)

        if time.monotonic() - last_tick >= tick_seconds:
            app.on_tick()
            last_tick = time.monotonic()

        key = read_key(window)
        if key is None:
            continue
        status = None
        try:
            if app.handle_key(key, app.rows()):
                return
        except OpenHandlerError as exc:
            logger.warning("Open failed: %s", exc)
            status = f"Error: {exc}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv_if_available()
    settings = load_settings(db_path=args.db_path, max_ttl_days=args.max_ttl_days)

    try:
        settings.data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        print(f"{APP_NAME}: cannot create data directory {settings.data_dir}: {exc}", file=sys.stderr)
        return 1
    attach_file_handler(settings.log_file, level=settings.log_level)
    logger.info("Starting %s %s with database %s.", APP_NAME, APP_VERSION, settings.database_path)

    try:
        store = FeedStore.open(settings.database_url)
        channel = EventChannel()
        client = FeedClient(timeout=settings.http_timeout, user_agent=settings.user_agent)
        app = ReaderApp.start(store, TaskLauncher(channel, client), max_ttl=settings.max_ttl)
    except PersistenceError as exc:
        logger.error("Cannot start without a readable store: %s", exc)
        print(f"{APP_NAME}: {exc}", file=sys.stderr)
        return 1

    # Keep Esc responsive; curses waits a full second for escape sequences by default.
    os.environ.setdefault("ESCDELAY", "25")
    curses.wrapper(run_loop, app, channel, settings)
    logger.info("Exiting %s.", APP_NAME)
    return 0


if __name__ == "__main__":
    sys.exit(main())
