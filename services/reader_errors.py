"""Exception types raised by the feed reader."""

from __future__ import annotations


class ReaderError(RuntimeError):
    """Base class for failures the reader reports to the user."""


class NetworkError(ReaderError):
    """Raised when a feed or page could not be downloaded."""


class ParseError(ReaderError):
    """Raised when a downloaded payload is not a readable feed."""


class DuplicateFeedError(ReaderError):
    """Raised when a fetched feed has the same id as a subscribed one."""


class PersistenceError(ReaderError):
    """Raised when the local store cannot be read or written."""


class OpenHandlerError(ReaderError):
    """Raised when the default handler (browser) refuses to open a link."""


__all__ = [
    "DuplicateFeedError",
    "NetworkError",
    "OpenHandlerError",
    "ParseError",
    "PersistenceError",
    "ReaderError",
]
