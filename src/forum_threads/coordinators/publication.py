"""Draft/publish state transitions and timestamp normalisation.

Callers only ever control whether a timestamp is present. The instant itself
is always assigned here from the coordinator's clock, so no client-supplied
date reaches storage.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from forum_threads.models import TIMESTAMP_FIELDS, Thread
from forum_threads.utils.time import Clock, utc_now

_FALSY_STRINGS = frozenset({"", "0", "false", "off", "no", "null"})


def is_truthy(value: Any) -> bool:
    """Interpret a caller-supplied timestamp flag."""
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


class PublicationState(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class PublicationStateMachine:
    """Derive draft vs. published state once per save.

    Example:
        >>> machine = PublicationStateMachine()
        >>> thread = Thread(id=1, user_id=1, title="t")
        >>> machine.apply(thread, is_draft=False)
        <PublicationState.PUBLISHED: 'published'>
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock

    @staticmethod
    def state(thread: Thread) -> PublicationState:
        return PublicationState.DRAFT if thread.published_at is None else PublicationState.PUBLISHED

    def apply(self, thread: Thread, *, is_draft: bool, now: datetime | None = None) -> PublicationState:
        """Apply the transition rule to ``thread`` in place.

        An explicit draft flag always clears ``published_at``. Otherwise a
        draft is published with the current instant, and a published thread
        keeps its original instant.
        """
        if is_draft:
            thread.published_at = None
        elif thread.published_at is None:
            thread.published_at = now or self._clock()
        return self.state(thread)

    def normalize(
        self,
        thread: Thread,
        values: Mapping[str, Any],
        fields: Iterable[str],
        *,
        now: datetime | None = None,
    ) -> frozenset[str]:
        """Replace each dirty timestamp with ``now`` or ``None``.

        Returns:
            The timestamp fields that were written.
        """
        instant = now or self._clock()
        written = frozenset(fields) & TIMESTAMP_FIELDS
        for name in written:
            setattr(thread, name, instant if is_truthy(values.get(name)) else None)
        return written


__all__ = ["PublicationState", "PublicationStateMachine", "is_truthy"]
