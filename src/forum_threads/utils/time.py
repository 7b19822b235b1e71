"""Timestamp helpers with strict UTC enforcement for thread bookkeeping.

Key Responsibilities:
    - Provide the canonical clock used for every server-assigned instant
    - Normalise stored datetimes to UTC before comparisons

Side Effects:
    - None; functions operate on provided datetime values

Thread Safety:
    - Thread-safe; uses stdlib datetime utilities
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]

# ==============================================================================
# PUBLIC HELPERS
# ==============================================================================


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Ensure that ``value`` is timezone aware and converted to UTC.

    Args:
        value: Datetime instance to normalise.

    Returns:
        Datetime converted to UTC.

    Raises:
        ValueError: If ``value`` is naive and lacks timezone information.
    """
    if value.tzinfo is None:
        raise ValueError("Datetime must include timezone information")
    return value.astimezone(UTC)


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Return the elapsed seconds from ``earlier`` to ``later`` (may be negative)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds()


__all__ = ["Clock", "ensure_utc", "seconds_between", "utc_now"]
