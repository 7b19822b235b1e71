"""Actor context shared between request handling and the lifecycle coordinator.

The hosting surface binds the authenticated actor for the duration of a
request with :func:`bind_actor`; code running outside a request (console
commands, scheduled jobs) binds nothing and is treated as the non-interactive
system actor.
"""

from __future__ import annotations

# ============================================================================
# IMPORTS
# ============================================================================

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from forum_threads.models import User

# ============================================================================
# DATA MODELS
# ============================================================================


@dataclass(frozen=True)
class ActorContext:
    """Represents the principal performing the current operation.

    Attributes:
        actor_id: Authenticated user id, or ``None`` for anonymous callers.
        interactive: ``False`` for console and scheduled contexts.

    Example:
        >>> token = bind_actor(ActorContext(actor_id=42))
        >>> get_actor().actor_id
        42
        >>> reset_actor(token)
    """

    actor_id: int | None
    interactive: bool = True


_SYSTEM_CONTEXT = ActorContext(actor_id=None, interactive=False)

_actor: ContextVar[ActorContext] = ContextVar("forum_actor", default=_SYSTEM_CONTEXT)


def bind_actor(context: ActorContext) -> Token[ActorContext]:
    """Bind ``context`` to the current execution context."""
    return _actor.set(context)


def reset_actor(token: Token[ActorContext] | None) -> None:
    """Restore the actor bound before :func:`bind_actor`."""
    if token is not None:
        _actor.reset(token)


def get_actor() -> ActorContext:
    return _actor.get()


# ============================================================================
# AUTHORIZATION INTERFACE
# ============================================================================


class UserLookup(Protocol):
    def get_user(self, user_id: int) -> User | None: ...


@runtime_checkable
class Authorization(Protocol):
    """Actor resolution consumed by the coordinator."""

    def current_actor(self) -> int:
        """Return the acting user id, falling back to the system actor."""

    def is_admin(self, actor_id: int) -> bool: ...

    def is_interactive(self) -> bool:
        """``False`` when the operation does not originate from a user request."""


class ContextAuthorization:
    """Resolve the actor from the bound :class:`ActorContext`.

    Admin status is read from the user directory so that a role change takes
    effect on the next request without rebinding anything.
    """

    def __init__(self, users: UserLookup, *, system_actor_id: int = 1) -> None:
        self._users = users
        self._system_actor_id = system_actor_id

    def current_actor(self) -> int:
        actor_id = get_actor().actor_id
        return actor_id if actor_id is not None else self._system_actor_id

    def is_admin(self, actor_id: int) -> bool:
        user = self._users.get_user(actor_id)
        return bool(user is not None and user.is_admin)

    def is_interactive(self) -> bool:
        return get_actor().interactive


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ActorContext",
    "Authorization",
    "ContextAuthorization",
    "UserLookup",
    "bind_actor",
    "get_actor",
    "reset_actor",
]
