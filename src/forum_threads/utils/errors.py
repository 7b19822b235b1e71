"""RFC 7807 problem details carried by every thread lifecycle error.

The coordinator never renders responses. Each rejection (throttle,
moderation, validation, missing thread, storage) raises a
:class:`FoundationError` subclass whose ``problem`` attribute the hosting
surface can serialise as-is, so nobody has to parse exception messages.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_MEMBERS = ("type", "title", "status", "detail", "instance")


@dataclass(slots=True)
class ProblemDetail:
    """Problem document for one rejected thread operation.

    ``extra`` holds extension members such as ``retry_after`` or the
    offending ``fields``; they are flattened next to the standard members
    when dumped.

    Example:
        >>> ProblemDetail(title="Slow down", status=403, extra={"retry_after": 5}).model_dump()
        {'type': 'about:blank', 'title': 'Slow down', 'status': 403, 'retry_after': 5}
    """

    title: str
    status: int
    detail: str | None = None
    type: str = "about:blank"
    instance: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def model_dump(self) -> dict[str, Any]:
        payload = {
            name: getattr(self, name) for name in _MEMBERS if getattr(self, name) is not None
        }
        for key, value in self.extra.items():
            payload.setdefault(key, value)
        return payload


class FoundationError(RuntimeError):
    """Base for errors that surface to the forum user.

    Subclasses set ``status``; the message becomes the problem title and is
    shown to the user verbatim.
    """

    status: int = 500

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        detail: str | None = None,
        type: str = "about:blank",
        instance: str | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.problem = ProblemDetail(
            title=message,
            status=self.status if status is None else status,
            detail=detail,
            type=type,
            instance=instance,
            extra=dict(extra or {}),
        )


__all__ = ["FoundationError", "ProblemDetail"]
