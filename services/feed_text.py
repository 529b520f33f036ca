"""Reusable helpers for turning feed markup into terminal-ready text."""

from __future__ import annotations

import re
import textwrap
import unicodedata
from typing import List, Optional, Union

from bs4 import BeautifulSoup

_BLOCK_TAGS = ["p", "div", "section", "article", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "pre"]
_DROP_TAGS = ["script", "style", "noscript", "template", "head"]
_INLINE_WHITESPACE_PATTERN = re.compile(r"[ \t\f\v\u00a0]+")
_MULTI_NEWLINE_PATTERN = re.compile(r"\n{3,}")


def html_to_text(
    markup: Union[str, bytes, None], width: Optional[int] = None, encoding: Optional[str] = None
) -> str:
    """Render HTML (or plain text) as readable plain text.

    Bytes are decoded with ``encoding`` when the transport declared one and
    otherwise with the charset the document itself declares.

    Block elements become paragraphs separated by blank lines and ``<br>``
    becomes a line break. When ``width`` is given each paragraph is wrapped to
    it; otherwise paragraphs stay on a single line.
    """

    if not markup or not markup.strip():
        return ""

    if isinstance(markup, bytes):
        soup = BeautifulSoup(markup, "html.parser", from_encoding=encoding)
    else:
        soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_DROP_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_before("\n\n")
        block.insert_after("\n\n")

    text = soup.get_text()
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _INLINE_WHITESPACE_PATTERN.sub(" ", text)
    lines = [line.strip() for line in text.split("\n")]
    text = _MULTI_NEWLINE_PATTERN.sub("\n\n", "\n".join(lines)).strip()
    if width is None or width <= 0:
        return text

    paragraphs = text.split("\n\n")
    wrapped = ["\n".join(wrap_text(paragraph.replace("\n", " "), width)) for paragraph in paragraphs]
    return "\n\n".join(wrapped)


def wrap_text(text: str, width: int) -> List[str]:
    """Wrap ``text`` to ``width`` columns without splitting words.

    Existing line breaks are kept. An empty string yields a single empty line.
    """

    if width <= 0:
        width = 1
    lines: List[str] = []
    for paragraph in text.split("\n"):
        wrapped = textwrap.wrap(paragraph, width=width, break_long_words=False, break_on_hyphens=False)
        lines.extend(wrapped or [""])
    return lines


def _char_width(char: str) -> int:
    if unicodedata.combining(char):
        return 0
    return 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1


def display_width(text: str) -> int:
    return sum(_char_width(char) for char in text)


def truncate_text(text: str, max_width: int) -> str:
    """Shorten ``text`` to ``max_width`` display columns, ending with ``...``."""

    if display_width(text) <= max_width:
        return text
    if max_width <= 3:
        return "." * max(0, max_width)

    result: List[str] = []
    width = 0
    for char in text:
        char_width = _char_width(char)
        if width + char_width > max_width - 3:
            break
        result.append(char)
        width += char_width
    return "".join(result) + "..."


__all__ = ["display_width", "html_to_text", "truncate_text", "wrap_text"]
