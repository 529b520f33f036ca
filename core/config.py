"""Runtime settings for the feed reader."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from core.env import env_float, env_int, env_path, env_str

APP_NAME = "feedline"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "feedline.db"
LOG_FILENAME = "feedline.log"
DEFAULT_MAX_TTL_DAYS = 5
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_TICK_MS = 100
DEFAULT_INPUT_POLL_MS = 200


def default_data_dir() -> Path:
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_data_home).expanduser() if xdg_data_home else Path.home() / ".local" / "share"
    return base / APP_NAME


@dataclass(frozen=True)
class ReaderSettings:
    """Resolved configuration for one reader session."""

    data_dir: Path
    max_ttl: timedelta
    http_timeout: float
    user_agent: str
    tick_ms: int
    input_poll_ms: int
    log_level: str
    log_file: Path

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME

    @property
    def database_url(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path}"


def load_settings(*, db_path: Optional[Path] = None, max_ttl_days: Optional[int] = None) -> ReaderSettings:
    """Build settings from the environment, letting CLI values take precedence."""

    data_dir = Path(db_path).expanduser() if db_path else env_path("FEEDLINE_DATA_DIR", default_data_dir())
    ttl_days = max_ttl_days if max_ttl_days is not None else env_int(
        "FEEDLINE_MAX_TTL_DAYS", DEFAULT_MAX_TTL_DAYS, minimum=0
    )
    return ReaderSettings(
        data_dir=data_dir,
        max_ttl=timedelta(days=min(max(ttl_days, 0), timedelta.max.days)),
        http_timeout=env_float("FEEDLINE_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, minimum=1.0),
        user_agent=env_str("FEEDLINE_USER_AGENT", f"{APP_NAME}/{APP_VERSION}") or f"{APP_NAME}/{APP_VERSION}",
        tick_ms=env_int("FEEDLINE_TICK_MS", DEFAULT_TICK_MS, minimum=10),
        input_poll_ms=env_int("FEEDLINE_INPUT_POLL_MS", DEFAULT_INPUT_POLL_MS, minimum=10),
        log_level=env_str("FEEDLINE_LOG_LEVEL", "INFO") or "INFO",
        log_file=env_path("FEEDLINE_LOG_FILE", data_dir / LOG_FILENAME),
    )


__all__ = ["APP_NAME", "APP_VERSION", "ReaderSettings", "default_data_dir", "load_settings"]
