"""Abstract persistence interface consumed by the lifecycle coordinator.

The coordinator never talks to a database directly. It depends on
:class:`ThreadRepository`, which covers the thread/content writes that must
share a transaction, the related-entity counts read by the cache aggregator,
and the user lookups needed by the guards and side effects.

Thread Safety:
    Implementations decide; the in-memory store serialises access with a lock.

Example:
    >>> class SqlThreadRepository(ThreadRepository):
    ...     def add_thread(self, thread: Thread) -> Thread:
    ...         ...
"""

# ==============================================================================
# IMPORTS
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import AbstractContextManager
from datetime import datetime

from forum_threads.models import CacheSnapshot, Comment, Content, Thread, User

# ==============================================================================
# ERRORS
# ==============================================================================


class StorageError(RuntimeError):
    """Base exception for storage backends."""


class ThreadNotStoredError(StorageError, LookupError):
    """Raised when a write targets a thread the backend does not hold."""


# ==============================================================================
# INTERFACES
# ==============================================================================


class ThreadRepository(ABC):
    """Persistence contract for threads and their related entities."""

    # -- transactions ---------------------------------------------------
    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Return a context manager that commits on exit and rolls back on error."""

    # -- threads ----------------------------------------------------------
    @abstractmethod
    def add_thread(self, thread: Thread) -> Thread:
        """Insert ``thread``, assigning its identifier, and return the stored copy."""

    @abstractmethod
    def save_thread(self, thread: Thread) -> Thread:
        """Write the editable attributes of ``thread`` back to its stored record.

        ``cache`` and ``popular_at`` belong to the cache aggregator and keep
        their stored values, so a view or refresh landing while the thread
        was being edited is not lost.
        """

    @abstractmethod
    def get_thread(self, thread_id: int, *, with_deleted: bool = False) -> Thread | None:
        """Return a copy of the thread; tombstoned threads only when asked."""

    @abstractmethod
    def soft_delete_thread(self, thread_id: int, deleted_at: datetime) -> Thread:
        """Tombstone the thread and return the updated copy."""

    @abstractmethod
    def save_cache(self, thread_id: int, snapshot: CacheSnapshot) -> None:
        """Persist a cache snapshot for the thread (last writer wins)."""

    @abstractmethod
    def mark_popular(self, thread_id: int, popular_at: datetime) -> None:
        """Stamp the instant the thread was promoted to popular."""

    @abstractmethod
    def latest_thread_by_user(self, user_id: int) -> Thread | None:
        """Return the user's most recently created, non-tombstoned thread."""

    @abstractmethod
    def published_threads(self, now: datetime) -> Iterator[Thread]:
        """Yield threads visible in the published scope as of ``now``."""

    # -- content ------------------------------------------------------------
    @abstractmethod
    def upsert_content(self, content: Content) -> Content:
        """Create or replace the single active content of ``content.thread_id``."""

    @abstractmethod
    def get_content(self, thread_id: int) -> Content | None:
        """Return the active content of the thread, if any."""

    # -- related counts -----------------------------------------------------
    @abstractmethod
    def count_comments(self, thread_id: int) -> int: ...

    @abstractmethod
    def count_likers(self, thread_id: int) -> int: ...

    @abstractmethod
    def count_favoriters(self, thread_id: int) -> int: ...

    @abstractmethod
    def count_subscribers(self, thread_id: int) -> int: ...

    @abstractmethod
    def latest_comment(self, thread_id: int) -> Comment | None:
        """Return the most recent comment attached to the thread."""

    # -- users --------------------------------------------------------------
    @abstractmethod
    def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    def increment_energy(self, user_id: int, amount: int) -> int:
        """Add ``amount`` to the user's energy and return the new total."""


__all__ = ["StorageError", "ThreadNotStoredError", "ThreadRepository"]
