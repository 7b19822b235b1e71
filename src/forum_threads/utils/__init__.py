"""Utility modules shared by the thread lifecycle layers."""

from .errors import FoundationError, ProblemDetail
from .text import plain_excerpt, strip_markup
from .time import ensure_utc, utc_now

__all__ = [
    "FoundationError",
    "ProblemDetail",
    "ensure_utc",
    "plain_excerpt",
    "strip_markup",
    "utc_now",
]
