"""Download RSS/Atom feeds and article pages and normalise them into reader models."""

from __future__ import annotations

import calendar
import hashlib
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
import httpx

from core.config import APP_NAME, APP_VERSION, DEFAULT_HTTP_TIMEOUT
from core.logging import get_logger
from schemas.feed import Entry, Feed
from services.feed_text import html_to_text
from services.reader_errors import NetworkError, ParseError

logger = get_logger(__name__)
_DEFAULT_USER_AGENT = f"{APP_NAME}/{APP_VERSION}"


def _request_headers(user_agent: Optional[str]) -> dict:
    return {
        "User-Agent": user_agent or _DEFAULT_USER_AGENT,
        "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
    }


def _parse_entry_time(entry) -> Optional[datetime]:
    for attr in ("published_parsed", "updated_parsed"):
        parsed = entry.get(attr)
        if parsed:
            try:
                # feedparser normalises struct_time values to UTC.
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
            except (OverflowError, ValueError, OSError):
                logger.debug("Failed to convert %s for entry %s.", attr, entry.get("id"), exc_info=True)
    return None


def _entry_markup(entry) -> str:
    for section in entry.get("content") or []:
        value = section.get("value")
        if value and str(value).strip():
            return str(value)
    summary = entry.get("summary") or entry.get("description")
    return str(summary) if summary else ""


def _entry_authors(entry) -> List[str]:
    names: List[str] = []
    for author in entry.get("authors") or []:
        name = author.get("name") if isinstance(author, dict) else None
        if name and name not in names:
            names.append(str(name))
    if not names and entry.get("author"):
        names.append(str(entry.get("author")))
    return names


def _entry_id(entry) -> str:
    candidate = entry.get("id") or entry.get("link")
    if candidate:
        return str(candidate)
    seed = f"{entry.get('title', '')}|{entry.get('summary', '')}"
    return hashlib.sha256(seed.encode("utf-8")).hexdigest()


def entry_from_parsed(entry) -> Entry:
    """Build an unread :class:`Entry` from a feedparser entry."""
    return Entry(
        id=_entry_id(entry),
        title=entry.get("title") or "Untitled",
        authors=_entry_authors(entry),
        content=html_to_text(_entry_markup(entry)),
        content_line_count=0,
        link=entry.get("link") or "",
        published=_parse_entry_time(entry),
        read=False,
    )


def _first_link(feed_meta: Any) -> str:
    link = feed_meta.get("link")
    if link:
        return str(link)
    for candidate in feed_meta.get("links") or []:
        href = candidate.get("href") if isinstance(candidate, dict) else None
        if href:
            return str(href)
    return ""


def parse_feed(raw: bytes, source_url: str = ""):
    """Parse feed bytes with feedparser, raising :class:`ParseError` unless an RSS or Atom document came back."""
    parsed = feedparser.parse(raw)
    problem = getattr(parsed, "bozo_exception", None) if getattr(parsed, "bozo", 0) else None
    if not getattr(parsed, "version", ""):
        raise ParseError(f"unable to parse feed: {problem or 'not an RSS or Atom document'}")
    if problem is not None:
        logger.warning("Feed parser reported issues for %s: %s", source_url or "<bytes>", problem)
    return parsed


def feed_from_parsed(parsed, source_url: str) -> Feed:
    """Convert a feedparser result into a :class:`Feed`, entries newest first.

    Without a feed-level id the subscription URL identifies the feed; the
    homepage link is shared by every feed a site publishes.
    """
    feed_meta = parsed.feed if hasattr(parsed, "feed") else parsed.get("feed", {})
    feed = Feed(
        id=str(feed_meta.get("id") or source_url or _first_link(feed_meta)),
        title=feed_meta.get("title") or "Untitled",
        link=source_url or _first_link(feed_meta),
        entries=[entry_from_parsed(entry) for entry in parsed.entries],
        expanded=False,
    )
    feed.sort_entries()
    return feed


class FeedClient:
    """HTTP client for feeds and article pages.

    Timeouts are delegated to httpx; nothing here retries.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._headers = _request_headers(user_agent)
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self._timeout,
            headers=self._headers,
            follow_redirects=True,
            transport=self._transport,
        )

    def _get(self, url: str) -> httpx.Response:
        try:
            with self._client() as client:
                response = client.get(url)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Download failed for %s: %s", url, exc)
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        return response

    def fetch_bytes(self, url: str) -> bytes:
        return self._get(url).content

    def fetch_feed(self, url: str) -> Feed:
        raw = self.fetch_bytes(url)
        return feed_from_parsed(parse_feed(raw, url), url)

    def fetch_entries(self, url: str) -> List[Entry]:
        raw = self.fetch_bytes(url)
        parsed = parse_feed(raw, url)
        return [entry_from_parsed(entry) for entry in parsed.entries]

    def fetch_page_text(self, url: str, width: Optional[int] = None) -> str:
        response = self._get(url)
        return html_to_text(response.content, width, encoding=response.charset_encoding)


__all__ = ["FeedClient", "entry_from_parsed", "feed_from_parsed", "parse_feed"]
