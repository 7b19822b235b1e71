"""Actor resolution and the guards that run before a thread is persisted.

The guards are pure decision objects: they either return or raise a
:class:`~forum_threads.errors.ThreadLifecycleError`, and never write.
"""

from __future__ import annotations

from .context import (
    ActorContext,
    Authorization,
    ContextAuthorization,
    bind_actor,
    get_actor,
    reset_actor,
)
from .moderation import ModerationGuard
from .throttle import ThrottleGuard

__all__ = [
    "ActorContext",
    "Authorization",
    "ContextAuthorization",
    "ModerationGuard",
    "ThrottleGuard",
    "bind_actor",
    "get_actor",
    "reset_actor",
]
