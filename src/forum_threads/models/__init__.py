"""Domain records and request payloads for forum threads."""

from .inputs import ContentInput, ThreadInput, TimestampFlag
from .thread import (
    SENSITIVE_FIELDS,
    TIMESTAMP_FIELDS,
    CacheSnapshot,
    Comment,
    Content,
    ContentType,
    Thread,
    User,
)

__all__ = [
    "SENSITIVE_FIELDS",
    "TIMESTAMP_FIELDS",
    "CacheSnapshot",
    "Comment",
    "Content",
    "ContentInput",
    "ContentType",
    "Thread",
    "ThreadInput",
    "TimestampFlag",
    "User",
]
