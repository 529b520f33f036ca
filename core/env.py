"""Environment variable helpers for reader settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from core.logging import get_logger

T = TypeVar("T", int, float)

logger = get_logger(__name__)


def _read(key: str) -> Optional[str]:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return ``key`` stripped of surrounding whitespace; blank counts as unset."""
    value = _read(key)
    if value is None:
        logger.debug("Environment variable %s not set. Using default=%s.", key, default)
        return default
    return value


def _env_number(key: str, default: T, cast: Callable[[str], T], minimum: Optional[T]) -> T:
    raw = _read(key)
    if raw is None:
        logger.debug("Environment variable %s not set. Using default=%s.", key, default)
        return default
    try:
        value = cast(raw)
    except ValueError:
        value = None
    if value is None or (minimum is not None and value < minimum):
        logger.warning("Invalid %s value '%s'. Falling back to %s.", key, raw, default)
        return default
    return value


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    return _env_number(key, default, int, minimum)


def env_float(key: str, default: float, *, minimum: Optional[float] = None) -> float:
    return _env_number(key, default, float, minimum)


def env_path(key: str, default: Path) -> Path:
    """Return ``key`` as an expanded path, or ``default`` when unset or blank."""
    raw = _read(key)
    return Path(raw).expanduser() if raw else default


__all__ = ["env_float", "env_int", "env_path", "env_str"]
