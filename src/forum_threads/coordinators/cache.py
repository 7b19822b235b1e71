"""Recompute a thread's denormalized cache snapshot.

Counters are read from the related entities at refresh time and written
back as one snapshot; concurrent refreshes of the same thread resolve as
last-writer-wins. ``views_count`` is not derivable from related entities,
so a refresh carries the stored value forward.
"""

from __future__ import annotations

# ============================================================================
# IMPORTS
# ============================================================================
import time

import structlog

from forum_threads.config.settings import PopularitySettings
from forum_threads.models import CacheSnapshot, Thread
from forum_threads.observability.metrics import observe_cache_refresh
from forum_threads.storage.base import ThreadRepository
from forum_threads.utils.time import Clock, utc_now

logger = structlog.get_logger(__name__)


class CacheAggregator:
    """Build and persist :class:`CacheSnapshot` values for threads."""

    def __init__(
        self,
        repository: ThreadRepository,
        popularity: PopularitySettings | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._repository = repository
        self._popularity = popularity or PopularitySettings()
        self._clock = clock

    def compute(self, thread: Thread) -> CacheSnapshot:
        """Return a fresh snapshot without persisting it."""
        thread_id = thread.id
        latest = self._repository.latest_comment(thread_id)
        reply_user_id = 0
        reply_user_name = ""
        if latest is not None:
            reply_user_id = latest.user_id
            author = self._repository.get_user(latest.user_id)
            reply_user_name = author.name if author is not None else ""
        return CacheSnapshot(
            views_count=thread.cache.views_count,
            comments_count=self._repository.count_comments(thread_id),
            likes_count=self._repository.count_likers(thread_id),
            favoriters_count=self._repository.count_favoriters(thread_id),
            subscriptions_count=self._repository.count_subscribers(thread_id),
            last_reply_user_id=reply_user_id,
            last_reply_user_name=reply_user_name,
        )

    def is_popular(self, snapshot: CacheSnapshot) -> bool:
        thresholds = self._popularity
        return (
            snapshot.likes_count >= thresholds.likes_count
            or snapshot.views_count >= thresholds.views_count
            or snapshot.comments_count >= thresholds.comments_count
        )

    def refresh(self, thread: Thread) -> CacheSnapshot:
        """Recompute, persist and return the snapshot for ``thread``.

        The stored record is re-read first so that views recorded since
        ``thread`` was loaded are not lost. The first refresh that crosses a
        popularity threshold stamps ``popular_at``; later refreshes never
        move it.
        """
        start = time.perf_counter()
        current = self._repository.get_thread(thread.id, with_deleted=True) or thread
        snapshot = self.compute(current)
        self._repository.save_cache(current.id, snapshot)
        if current.popular_at is None and self.is_popular(snapshot):
            self._repository.mark_popular(current.id, self._clock())
            logger.info("threads.cache.popular", thread_id=current.id)
        duration = time.perf_counter() - start
        observe_cache_refresh(duration)
        logger.debug(
            "threads.cache.refreshed",
            thread_id=current.id,
            comments_count=snapshot.comments_count,
            duration=duration,
        )
        return snapshot

    def record_view(self, thread: Thread) -> CacheSnapshot:
        """Increment ``views_count`` on the stored snapshot."""
        snapshot = thread.cache.model_copy(update={"views_count": thread.cache.views_count + 1})
        self._repository.save_cache(thread.id, snapshot)
        return snapshot


__all__ = ["CacheAggregator"]
