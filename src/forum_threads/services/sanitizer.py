"""Content sanitization applied to thread titles and bodies.

Key Responsibilities:
    - Define the ``ContentSanitizer`` contract: text in, cleaned text out
    - Provide a word-list implementation that blanks disallowed terms

Side Effects:
    - Emits a Prometheus counter and a debug log line per cleaned text

Sanitizers never raise. Whatever they return is persisted verbatim, and
running one over its own output must not change it further.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import structlog

from forum_threads.config.settings import SanitizerSettings
from forum_threads.observability.metrics import record_sanitizer_hits

logger = structlog.get_logger(__name__)


@runtime_checkable
class ContentSanitizer(Protocol):
    def sanitize(self, text: str) -> str: ...


class PassthroughSanitizer:
    """Sanitizer used when no disallowed terms are configured."""

    def sanitize(self, text: str) -> str:
        return text


class WordListSanitizer:
    """Replace configured words, case-insensitively and on word boundaries.

    Example:
        >>> WordListSanitizer(["viagra"]).sanitize("buy Viagra now")
        'buy  now'
    """

    name = "word_list"

    def __init__(self, words: Iterable[str], *, replacement: str = "") -> None:
        cleaned = sorted({word.strip() for word in words if word and word.strip()}, key=len, reverse=True)
        self._replacement = replacement
        self._pattern = (
            re.compile(r"\b(?:%s)\b" % "|".join(re.escape(word) for word in cleaned), re.IGNORECASE)
            if cleaned
            else None
        )

    def sanitize(self, text: str) -> str:
        if not text or self._pattern is None:
            return text
        cleaned, hits = self._pattern.subn(self._replacement, text)
        if hits:
            record_sanitizer_hits(self.name, hits)
            logger.debug("threads.sanitizer.cleaned", hits=hits)
        return cleaned


def build_sanitizer(settings: SanitizerSettings) -> ContentSanitizer:
    """Construct the sanitizer described by ``settings``."""
    if not settings.banned_words:
        return PassthroughSanitizer()
    return WordListSanitizer(settings.banned_words, replacement=settings.replacement)


__all__ = ["ContentSanitizer", "PassthroughSanitizer", "WordListSanitizer", "build_sanitizer"]
