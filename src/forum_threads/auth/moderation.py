"""Field-level moderation authorization for thread saves."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from forum_threads.errors import Forbidden
from forum_threads.models import SENSITIVE_FIELDS
from forum_threads.observability.metrics import record_guard_rejection

logger = structlog.get_logger(__name__)


class ModerationGuard:
    """Reject non-admin saves that touch moderation timestamps.

    Runs on every create and update before anything is written. A rejection
    aborts the whole save; there is no partial application.

    Example:
        >>> guard = ModerationGuard()
        >>> guard.authorize(actor_is_admin=True, dirty_fields={"pinned_at"})
        >>> guard.authorize(actor_is_admin=False, dirty_fields={"title"})
    """

    def __init__(self, sensitive_fields: Iterable[str] = SENSITIVE_FIELDS) -> None:
        self.sensitive_fields = frozenset(sensitive_fields)

    def violations(self, dirty_fields: Iterable[str]) -> frozenset[str]:
        """Return the sensitive fields among ``dirty_fields``."""
        return self.sensitive_fields.intersection(dirty_fields)

    def authorize(self, *, actor_is_admin: bool, dirty_fields: Iterable[str]) -> None:
        """Raise :class:`Forbidden` when a non-admin changes a sensitive field."""
        touched = self.violations(dirty_fields)
        if not touched or actor_is_admin:
            return
        record_guard_rejection("moderation")
        logger.warning("threads.guard.forbidden", fields=sorted(touched))
        raise Forbidden("Illegal request", fields=touched)


__all__ = ["ModerationGuard"]
