"""Per-user creation cooldown for threads.

The check reads the user's latest thread and the coordinator writes the new
one afterwards without serialising the two, so concurrent requests can both
pass inside the window. That gap is accepted.
"""

from __future__ import annotations

# ============================================================================
# IMPORTS
# ============================================================================

from datetime import timedelta
from typing import Protocol

import structlog

from forum_threads.config.settings import ThrottleSettings
from forum_threads.errors import RateLimited
from forum_threads.models import Thread
from forum_threads.observability.metrics import record_guard_rejection
from forum_threads.utils.time import Clock, seconds_between, utc_now

logger = structlog.get_logger(__name__)


class LatestThreadLookup(Protocol):
    def latest_thread_by_user(self, user_id: int) -> Thread | None: ...


# ============================================================================
# GUARD
# ============================================================================


class ThrottleGuard:
    """Enforce a minimum interval between a user's thread creations."""

    def __init__(
        self,
        threads: LatestThreadLookup,
        settings: ThrottleSettings,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._threads = threads
        self._settings = settings
        self._clock = clock

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self._settings.thread_create_cooldown_seconds)

    def check(self, user_id: int) -> None:
        """Raise :class:`RateLimited` if the user's last thread is inside the cooldown.

        Args:
            user_id: Owner of the thread about to be created.

        Raises:
            RateLimited: When the previous creation is more recent than the
                configured cooldown. ``retry_after`` holds the seconds left.
        """
        window = self.cooldown
        if window <= timedelta(0):
            return
        last = self._threads.latest_thread_by_user(user_id)
        if last is None or last.created_at is None:
            return
        now = self._clock()
        elapsed = seconds_between(last.created_at, now)
        remaining = window.total_seconds() - elapsed
        if remaining <= 0:
            return
        record_guard_rejection("throttle")
        logger.warning(
            "threads.guard.rate_limited",
            user_id=user_id,
            last_thread_id=last.id,
            retry_after=remaining,
        )
        raise RateLimited(self._settings.message, retry_after=remaining)


__all__ = ["ThrottleGuard"]
