"""Error taxonomy for thread lifecycle operations.

Every error is terminal for the current request; nothing here is retried
automatically. Each carries a :class:`~forum_threads.utils.errors.ProblemDetail`
so the hosting surface can answer without parsing messages.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from .utils.errors import FoundationError


class ThreadLifecycleError(FoundationError):
    """Base class for failures raised by the lifecycle coordinator."""


class RateLimited(ThreadLifecycleError):
    """The user's creation cooldown has not elapsed yet."""

    status = 403

    def __init__(self, message: str, *, retry_after: float) -> None:
        super().__init__(message, extra={"retry_after": round(retry_after, 3)})
        self.retry_after = retry_after


class Forbidden(ThreadLifecycleError):
    """The actor may not perform the requested mutation."""

    status = 403

    def __init__(self, message: str = "Illegal request", *, fields: Iterable[str] = ()) -> None:
        self.fields = tuple(sorted(fields))
        super().__init__(message, extra={"fields": list(self.fields)} if self.fields else None)


class ValidationFailure(ThreadLifecycleError):
    """The supplied payload is malformed or incomplete."""

    status = 422

    def __init__(self, message: str, *, errors: Sequence[Mapping[str, Any]] = ()) -> None:
        self.errors = [dict(error) for error in errors]
        super().__init__(message, extra={"errors": self.errors} if self.errors else None)

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> ValidationFailure:
        errors = [
            {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
            for error in exc.errors()
        ]
        return cls("Invalid thread payload", errors=errors)


class ThreadNotFound(ThreadLifecycleError):
    status = 404

    def __init__(self, thread_id: int) -> None:
        super().__init__(f"Thread {thread_id} not found", extra={"thread_id": thread_id})
        self.thread_id = thread_id


class PersistenceFailure(ThreadLifecycleError):
    """A storage call failed; the original exception is chained as ``__cause__``."""

    status = 500


__all__ = [
    "Forbidden",
    "PersistenceFailure",
    "RateLimited",
    "ThreadLifecycleError",
    "ThreadNotFound",
    "ValidationFailure",
]
