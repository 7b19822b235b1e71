"""In-memory forum store suitable for tests and local development.

Implements :class:`ThreadRepository` together with the reply-subscription
interface, and exposes the small social-graph writers (comments, likes,
favorites) that external collaborators would normally own.

Thread Safety:
    All access is serialised through a re-entrant lock. ``transaction()``
    holds the lock for the whole block and restores the previous state when
    the block raises, so a rejected save leaves no partial write.

Performance:
    O(1) lookups by id; O(n) scans for "latest" and published listings.
"""

from __future__ import annotations

# ==============================================================================
# IMPORTS
# ==============================================================================
import copy
import threading
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import structlog

from forum_threads.models import CacheSnapshot, Comment, Content, Thread, User

from .base import StorageError, ThreadNotStoredError, ThreadRepository

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


class InMemoryForumStore(ThreadRepository):
    """Dictionary backed store for threads, content, comments and users."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._threads: dict[int, Thread] = {}
        self._contents: dict[int, Content] = {}
        self._comments: dict[int, list[Comment]] = defaultdict(list)
        self._likers: dict[int, set[int]] = defaultdict(set)
        self._favoriters: dict[int, set[int]] = defaultdict(set)
        self._subscribers: dict[int, set[int]] = defaultdict(set)
        self._users: dict[int, User] = {}
        self._next_thread_id = 1
        self._next_comment_id = 1

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            saved = self._checkpoint()
            self._depth = 1
            try:
                yield
            except BaseException:
                self._restore(saved)
                logger.debug("storage.memory.rollback")
                raise
            finally:
                self._depth = 0

    def _checkpoint(self) -> dict[str, Any]:
        return {
            "threads": copy.deepcopy(self._threads),
            "contents": copy.deepcopy(self._contents),
            "users": copy.deepcopy(self._users),
            "next_thread_id": self._next_thread_id,
        }

    def _restore(self, saved: dict[str, Any]) -> None:
        self._threads = saved["threads"]
        self._contents = saved["contents"]
        self._users = saved["users"]
        self._next_thread_id = saved["next_thread_id"]

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------
    def add_thread(self, thread: Thread) -> Thread:
        with self._lock:
            stored = thread.copy(id=self._next_thread_id)
            self._next_thread_id += 1
            self._threads[stored.id] = stored
            return stored.copy()

    def save_thread(self, thread: Thread) -> Thread:
        with self._lock:
            if thread.id not in self._threads:
                raise ThreadNotStoredError(f"thread {thread.id} is not stored")
            stored = self._threads[thread.id]
            merged = thread.copy(cache=stored.cache, popular_at=stored.popular_at)
            self._threads[thread.id] = merged
            return merged.copy()

    def get_thread(self, thread_id: int, *, with_deleted: bool = False) -> Thread | None:
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None or (thread.is_deleted and not with_deleted):
                return None
            return thread.copy()

    def soft_delete_thread(self, thread_id: int, deleted_at: datetime) -> Thread:
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                raise ThreadNotStoredError(f"thread {thread_id} is not stored")
            thread.deleted_at = deleted_at
            return thread.copy()

    def save_cache(self, thread_id: int, snapshot: CacheSnapshot) -> None:
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                raise ThreadNotStoredError(f"thread {thread_id} is not stored")
            thread.cache = snapshot

    def mark_popular(self, thread_id: int, popular_at: datetime) -> None:
        with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                raise ThreadNotStoredError(f"thread {thread_id} is not stored")
            thread.popular_at = popular_at

    def latest_thread_by_user(self, user_id: int) -> Thread | None:
        with self._lock:
            owned = [
                thread
                for thread in self._threads.values()
                if thread.user_id == user_id and not thread.is_deleted
            ]
            if not owned:
                return None
            latest = max(owned, key=lambda item: (item.created_at or _EPOCH, item.id))
            return latest.copy()

    def published_threads(self, now: datetime) -> Iterator[Thread]:
        with self._lock:
            visible = [
                thread.copy()
                for thread in self._threads.values()
                if not thread.is_deleted
                and thread.published_at is not None
                and thread.published_at <= now
                and self._owner_can_publish(thread.user_id)
            ]
        visible.sort(key=lambda item: (item.published_at, item.id), reverse=True)
        yield from visible

    def _owner_can_publish(self, user_id: int) -> bool:
        user = self._users.get(user_id)
        return user is not None and user.can_publish

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    def upsert_content(self, content: Content) -> Content:
        with self._lock:
            if content.thread_id not in self._threads:
                raise ThreadNotStoredError(f"thread {content.thread_id} is not stored")
            self._contents[content.thread_id] = copy.copy(content)
            return copy.copy(content)

    def get_content(self, thread_id: int) -> Content | None:
        with self._lock:
            content = self._contents.get(thread_id)
            return copy.copy(content) if content is not None else None

    # ------------------------------------------------------------------
    # Related entities
    # ------------------------------------------------------------------
    def add_comment(
        self, *, thread_id: int, user_id: int, body: str = "", created_at: datetime | None = None
    ) -> Comment:
        with self._lock:
            comment = Comment(
                id=self._next_comment_id,
                thread_id=thread_id,
                user_id=user_id,
                body=body,
                created_at=created_at,
            )
            self._next_comment_id += 1
            self._comments[thread_id].append(comment)
            return copy.copy(comment)

    def like(self, user_id: int, thread_id: int) -> None:
        with self._lock:
            self._likers[thread_id].add(user_id)

    def favorite(self, user_id: int, thread_id: int) -> None:
        with self._lock:
            self._favoriters[thread_id].add(user_id)

    def subscribe(self, user_id: int, thread_id: int) -> bool:
        """Add the user to the thread's subscribers; ``False`` when already present."""
        with self._lock:
            subscribers = self._subscribers[thread_id]
            if user_id in subscribers:
                return False
            subscribers.add(user_id)
            return True

    def subscribers(self, thread_id: int) -> set[int]:
        with self._lock:
            return set(self._subscribers.get(thread_id, ()))

    def count_comments(self, thread_id: int) -> int:
        with self._lock:
            return len(self._comments.get(thread_id, ()))

    def count_likers(self, thread_id: int) -> int:
        with self._lock:
            return len(self._likers.get(thread_id, ()))

    def count_favoriters(self, thread_id: int) -> int:
        with self._lock:
            return len(self._favoriters.get(thread_id, ()))

    def count_subscribers(self, thread_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(thread_id, ()))

    def latest_comment(self, thread_id: int) -> Comment | None:
        with self._lock:
            comments = self._comments.get(thread_id)
            if not comments:
                return None
            latest = max(comments, key=lambda item: (item.created_at or _EPOCH, item.id))
            return copy.copy(latest)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def add_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = copy.copy(user)
            return copy.copy(user)

    def get_user(self, user_id: int) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return copy.copy(user) if user is not None else None

    def increment_energy(self, user_id: int, amount: int) -> int:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise StorageError(f"user {user_id} is not stored")
            user.energy += amount
            return user.energy


__all__ = ["InMemoryForumStore"]
