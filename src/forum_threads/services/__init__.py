"""Collaborator interfaces consumed by the lifecycle coordinator.

Each interface is a narrow ``Protocol`` with an in-process implementation
suitable for tests and local development.
"""

from .activity import ActivityLog, ActivityRecord, InMemoryActivityLog
from .notifications import NotificationSubscription
from .sanitizer import ContentSanitizer, PassthroughSanitizer, WordListSanitizer, build_sanitizer

__all__ = [
    "ActivityLog",
    "ActivityRecord",
    "ContentSanitizer",
    "InMemoryActivityLog",
    "NotificationSubscription",
    "PassthroughSanitizer",
    "WordListSanitizer",
    "build_sanitizer",
]
