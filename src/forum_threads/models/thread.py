"""Thread, content, comment and user records.

Records are plain mutable dataclasses owned by the storage layer; every
read hands out a copy so callers cannot mutate persisted state in place.
The cache snapshot is the exception: it is an immutable pydantic model that
is replaced wholesale on every refresh.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ==============================================================================
# FIELD SETS
# ==============================================================================

SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {"excellent_at", "pinned_at", "frozen_at", "banned_at"}
)
"""Moderation timestamps that only administrators may change."""

TIMESTAMP_FIELDS: frozenset[str] = SENSITIVE_FIELDS | {"published_at", "popular_at"}
"""Every timestamp-typed thread attribute whose instant is server-assigned."""


# ==============================================================================
# CACHE SNAPSHOT
# ==============================================================================


class CacheSnapshot(BaseModel):
    """Denormalized engagement counters for a thread.

    Counters are eventually consistent: they reflect the related-entity
    counts as of the last refresh, not a live computation.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    views_count: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    likes_count: int = Field(default=0, ge=0)
    favoriters_count: int = Field(default=0, ge=0)
    subscriptions_count: int = Field(default=0, ge=0)
    last_reply_user_id: int = Field(default=0, ge=0)
    last_reply_user_name: str = ""

    @classmethod
    def from_legacy(cls, payload: Mapping[str, Any] | None) -> CacheSnapshot:
        """Build a snapshot from a loosely-typed legacy cache payload.

        Missing keys take their defaults, ``None`` values are treated as
        missing and unknown keys are dropped.
        """
        if not payload:
            return cls()
        known = {
            key: value
            for key, value in payload.items()
            if key in cls.model_fields and value is not None
        }
        return cls.model_validate(known)


# ==============================================================================
# RECORDS
# ==============================================================================


class ContentType(str, Enum):
    """Body formats accepted for thread content."""

    MARKDOWN = "markdown"
    HTML = "html"


@dataclass
class User:
    """Forum member referenced by threads and comments."""

    id: int
    name: str
    is_admin: bool = False
    activated_at: datetime | None = None
    banned_at: datetime | None = None
    energy: int = 0

    @property
    def can_publish(self) -> bool:
        """Threads by this user are visible in the published scope."""
        return self.activated_at is not None and self.banned_at is None


@dataclass
class Content:
    """The single active body version attached to a thread."""

    thread_id: int
    body: str
    type: ContentType = ContentType.MARKDOWN
    updated_at: datetime | None = None


@dataclass
class Comment:
    id: int
    thread_id: int
    user_id: int
    body: str = ""
    created_at: datetime | None = None


@dataclass
class Thread:
    """An owned discussion unit."""

    id: int
    user_id: int
    title: str
    node_id: int | None = None
    excellent_at: datetime | None = None
    pinned_at: datetime | None = None
    frozen_at: datetime | None = None
    banned_at: datetime | None = None
    published_at: datetime | None = None
    popular_at: datetime | None = None
    cache: CacheSnapshot = field(default_factory=CacheSnapshot)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def has_excellent(self) -> bool:
        return self.excellent_at is not None

    @property
    def has_pinned(self) -> bool:
        return self.pinned_at is not None

    @property
    def has_frozen(self) -> bool:
        return self.frozen_at is not None

    @property
    def has_banned(self) -> bool:
        return self.banned_at is not None

    @property
    def is_draft(self) -> bool:
        return self.published_at is None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def copy(self, **changes: Any) -> Thread:
        """Return a detached copy with ``changes`` applied."""
        return replace(self, **changes)


__all__ = [
    "SENSITIVE_FIELDS",
    "TIMESTAMP_FIELDS",
    "CacheSnapshot",
    "Comment",
    "Content",
    "ContentType",
    "Thread",
    "User",
]
