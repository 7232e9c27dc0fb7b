"""Text processing helpers."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def strip_markup(content: str) -> str:
    """Return the plain text of an HTML fragment.

    Script and style blocks are dropped along with their contents.
    """
    if not content:
        return ""
    soup = BeautifulSoup(content, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()
    return normalize(soup.get_text(" "))
