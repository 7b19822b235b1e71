"""Plain-text helpers used when summarising thread bodies."""

from __future__ import annotations

import html
import re

_TAG_RE = re.compile(r"<[^>]*>")

ELLIPSIS = "..."


def strip_markup(value: str | None) -> str:
    """Remove HTML tags and unescape entities, leaving the visible text."""
    if not value:
        return ""
    return html.unescape(_TAG_RE.sub("", value))


def plain_excerpt(value: str | None, limit: int = 200) -> str:
    """Return the first ``limit`` characters of ``value`` with markup stripped.

    An ellipsis is appended when the text had to be cut. Trailing whitespace
    before the cut is dropped so excerpts never end in ``" ..."``.
    """
    text = strip_markup(value)
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + ELLIPSIS


__all__ = ["ELLIPSIS", "plain_excerpt", "strip_markup"]
