"""Request payloads accepted by the lifecycle coordinator."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .thread import SENSITIVE_FIELDS, ContentType

TimestampFlag = bool | int | datetime | str | None
"""A caller-supplied timestamp value; only its truthiness is honoured."""

_CONTROL_FIELDS = frozenset({"is_draft", "content"})


class ContentInput(BaseModel):
    """Body payload saved alongside a thread."""

    model_config = ConfigDict(extra="forbid")

    type: ContentType = ContentType.MARKDOWN
    body: str = ""


class ThreadInput(BaseModel):
    """Fields a caller may supply when creating or updating a thread.

    Ownership is never accepted from the caller, so ``user_id`` (like any
    other unknown key) fails validation.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    node_id: int | None = Field(default=None, ge=1)
    excellent_at: TimestampFlag = None
    pinned_at: TimestampFlag = None
    frozen_at: TimestampFlag = None
    banned_at: TimestampFlag = None
    is_draft: bool = False
    content: ContentInput | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None

    def supplied_fields(self) -> frozenset[str]:
        """Thread attributes explicitly present in the payload."""
        return frozenset(self.model_fields_set - _CONTROL_FIELDS)

    def supplied_timestamp_fields(self) -> frozenset[str]:
        return self.supplied_fields() & SENSITIVE_FIELDS


__all__ = ["ContentInput", "ThreadInput", "TimestampFlag"]
