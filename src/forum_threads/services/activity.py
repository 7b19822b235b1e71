"""Activity logging for thread lifecycle events.

The forum's activity feed consumes records such as "user X published thread
Y". This module defines the narrow interface the coordinator writes to and an
in-memory implementation suitable for tests and local development.

Thread Safety:
    - ``InMemoryActivityLog`` is not thread-safe; each worker should use a
      dedicated instance or guard access appropriately.
"""

from __future__ import annotations

import builtins
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

import structlog

from forum_threads.models import Thread
from forum_threads.utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)


# ============================================================================
# DATA MODELS
# ============================================================================


@dataclass(frozen=True)
class ActivityRecord:
    """Immutable activity feed entry.

    Attributes:
        action: Dotted action name, e.g. ``"published.thread"``.
        subject_type: Kind of entity acted upon.
        subject_id: Identifier of the entity acted upon.
        causer_id: User credited with the action.
        description: Human readable summary.
        properties: Extra payload rendered by the feed.
        created_at: When the record was written (UTC).
    """

    action: str
    subject_type: str
    subject_id: int
    causer_id: int
    description: str
    properties: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


# ============================================================================
# INTERFACE
# ============================================================================


@runtime_checkable
class ActivityLog(Protocol):
    def log(
        self,
        action: str,
        subject: Thread,
        properties: Mapping[str, Any],
        *,
        description: str = "",
    ) -> ActivityRecord: ...


# ============================================================================
# IN-MEMORY IMPLEMENTATION
# ============================================================================


class InMemoryActivityLog:
    """Capture activity records in process memory."""

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._records: list[ActivityRecord] = []
        self._clock = clock

    def log(
        self,
        action: str,
        subject: Thread,
        properties: Mapping[str, Any],
        *,
        description: str = "",
    ) -> ActivityRecord:
        record = ActivityRecord(
            action=action,
            subject_type="thread",
            subject_id=subject.id,
            causer_id=subject.user_id,
            description=description,
            properties=dict(properties),
            created_at=self._clock(),
        )
        self._records.append(record)
        logger.info(
            "threads.activity",
            action=record.action,
            subject_id=record.subject_id,
            causer_id=record.causer_id,
        )
        return record

    def list(self, *, subject_id: int | None = None) -> builtins.list[ActivityRecord]:
        """Return records, newest first, optionally filtered by subject."""
        items = [
            record
            for record in self._records
            if subject_id is None or record.subject_id == subject_id
        ]
        return list(reversed(items))


__all__ = ["ActivityLog", "ActivityRecord", "InMemoryActivityLog"]
