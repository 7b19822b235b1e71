"""Discussion-thread lifecycle coordination for the forum content model.

Key Responsibilities:
    - Orchestrate thread creation, update and deletion through a fixed
      guard -> sanitize -> publish -> persist pipeline
    - Keep denormalized engagement counters convergent with their sources
    - Emit the post-save side effects (energy reward, activity records,
      reply subscriptions)

Example:
    >>> from forum_threads import ThreadLifecycleCoordinator, build_coordinator
    >>> coordinator = build_coordinator()
"""

from .coordinators import (
    CacheAggregator,
    PublicationStateMachine,
    ThreadLifecycleCoordinator,
    build_coordinator,
)
from .models import CacheSnapshot, Comment, Content, ContentInput, Thread, ThreadInput, User

__all__ = [
    "CacheAggregator",
    "CacheSnapshot",
    "Comment",
    "Content",
    "ContentInput",
    "PublicationStateMachine",
    "Thread",
    "ThreadInput",
    "ThreadLifecycleCoordinator",
    "User",
    "build_coordinator",
]
