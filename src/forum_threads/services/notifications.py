"""Reply-notification subscription interface."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class NotificationSubscription(Protocol):
    """Adds a user to a thread's notification set.

    Implementations must be idempotent: subscribing an existing subscriber
    returns ``False`` and changes nothing.
    """

    def subscribe(self, user_id: int, thread_id: int) -> bool: ...


__all__ = ["NotificationSubscription"]
