"""Thread lifecycle coordinator.

This module sequences everything that happens when a forum thread is
created, updated or deleted: guards, sanitization, publication state,
persistence, cache refresh and the post-save side effects. Each concern is
delegated to a small collaborator; the coordinator only fixes the order.

Key Responsibilities:
    - Validate caller payloads into :class:`~forum_threads.models.ThreadInput`
    - Run the throttle (create only) and moderation guards before any write
    - Sanitize the title and body and derive the publication state
    - Persist thread, content and the owner's energy reward inside a
      single store transaction
    - Refresh the cache snapshot and log the activity record after creation
    - Subscribe comment authors to the threads they reply to

Architecture:
    - Guards and the publication state machine are pure; only the
      repository, the activity log and the subscription service write
    - Storage exceptions surface as :class:`~forum_threads.errors.PersistenceFailure`
    - Cache refresh and the activity record run after the transaction commits

Thread Safety:
    - The coordinator holds no per-request state; thread safety is that of
      the injected repository and services

Example:
    >>> store = InMemoryForumStore()
    >>> _ = store.add_user(User(id=1, name="system", is_admin=True))
    >>> coordinator = build_coordinator(store=store)
    >>> thread = coordinator.create_thread({"title": "Hello", "content": {"body": "hi"}})
    >>> thread.is_draft
    False
"""

from __future__ import annotations

# ============================================================================
# IMPORTS
# ============================================================================
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from forum_threads.auth.context import Authorization, ContextAuthorization
from forum_threads.auth.moderation import ModerationGuard
from forum_threads.auth.throttle import ThrottleGuard
from forum_threads.config.settings import AppSettings, get_settings
from forum_threads.errors import Forbidden, ThreadNotFound, ValidationFailure
from forum_threads.models import (
    SENSITIVE_FIELDS,
    CacheSnapshot,
    Comment,
    Content,
    ContentInput,
    Thread,
    ThreadInput,
)
from forum_threads.observability.metrics import configure_metrics
from forum_threads.services.activity import ActivityLog, InMemoryActivityLog
from forum_threads.services.notifications import NotificationSubscription
from forum_threads.services.sanitizer import ContentSanitizer, build_sanitizer
from forum_threads.storage.base import ThreadRepository
from forum_threads.storage.memory import InMemoryForumStore
from forum_threads.utils.text import plain_excerpt
from forum_threads.utils.time import Clock, utc_now

from .base import BaseCoordinator, CoordinatorMetrics
from .cache import CacheAggregator
from .publication import PublicationStateMachine, is_truthy

logger = structlog.get_logger(__name__)

PUBLISHED_ACTION = "published.thread"
PUBLISHED_DESCRIPTION = "published thread"


# ============================================================================
# COORDINATOR
# ============================================================================


class ThreadLifecycleCoordinator(BaseCoordinator):
    """Create, update and delete forum threads.

    Attributes:
        throttle: Per-user creation cooldown.
        moderation: Sensitive-field guard.
        publication: Draft/publish state machine.
        cache: Snapshot aggregator.

    Invariants:
        - A guard failure leaves storage untouched
        - Thread and content writes commit together or not at all
        - Every timestamp written is taken from ``clock``
    """

    name = "threads"

    def __init__(
        self,
        *,
        repository: ThreadRepository,
        authorization: Authorization,
        sanitizer: ContentSanitizer,
        activity: ActivityLog,
        subscriptions: NotificationSubscription,
        settings: AppSettings | None = None,
        clock: Clock = utc_now,
        metrics: CoordinatorMetrics | None = None,
    ) -> None:
        super().__init__(metrics=metrics)
        self.settings = settings or get_settings()
        self._repository = repository
        self._authorization = authorization
        self._sanitizer = sanitizer
        self._activity = activity
        self._subscriptions = subscriptions
        self._clock = clock
        self.throttle = ThrottleGuard(repository, self.settings.throttle, clock=clock)
        self.moderation = ModerationGuard()
        self.publication = PublicationStateMachine(clock=clock)
        self.cache = CacheAggregator(repository, self.settings.popularity, clock=clock)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def create_thread(self, payload: ThreadInput | Mapping[str, Any]) -> Thread:
        """Create a thread owned by the current actor.

        Args:
            payload: Thread fields. ``user_id`` is never accepted; the owner
                is the acting user, or the system actor outside a request.

        Returns:
            The stored thread, including its refreshed cache snapshot.

        Raises:
            ValidationFailure: Malformed payload or blank title.
            RateLimited: The actor created a thread inside the cooldown.
            Forbidden: The actor is not in the user directory, or a
                non-admin supplied a moderation timestamp.
            PersistenceFailure: The store failed; nothing was committed.
        """
        with self._instrumented("create"):
            data = self._validate(payload, require_title=True)
            actor_id = self._authorization.current_actor()
            self._require_known_user(actor_id)
            if self._authorization.is_interactive():
                self.throttle.check(actor_id)
            self.moderation.authorize(
                actor_is_admin=self._authorization.is_admin(actor_id),
                dirty_fields=data.supplied_fields(),
            )

            now = self._clock()
            thread = Thread(
                id=0,
                user_id=actor_id,
                title=self._sanitized_title(data.title),
                node_id=data.node_id,
                created_at=now,
                updated_at=now,
            )
            self.publication.normalize(
                thread, _timestamp_values(data), data.supplied_timestamp_fields(), now=now
            )
            self.publication.apply(thread, is_draft=data.is_draft, now=now)

            with self._storage("create"):
                with self._repository.transaction():
                    thread = self._repository.add_thread(thread)
                    content = self._save_content(thread, data.content)
                    self._reward(thread)
                self.cache.refresh(thread)
                self._log_published(thread, content)
                stored = self._repository.get_thread(thread.id, with_deleted=True)
            logger.info(
                "threads.create.persisted",
                thread_id=thread.id,
                user_id=actor_id,
                draft=thread.is_draft,
            )
            return stored or thread

    def update_thread(self, thread_id: int, payload: ThreadInput | Mapping[str, Any]) -> Thread:
        """Apply ``payload`` to an existing thread.

        Only fields whose value actually changes count as dirty, so an
        unchanged moderation timestamp echoed back by a non-admin does not
        trip the moderation guard. Ownership cannot change.

        Raises:
            ThreadNotFound: The thread does not exist or is tombstoned.
            Forbidden: A non-admin changed a moderation timestamp.
        """
        with self._instrumented("update", thread_id=thread_id):
            data = self._validate(payload, require_title=False)
            current = self._load(thread_id)
            actor_id = self._authorization.current_actor()
            dirty = self._changed_fields(current, data)
            self.moderation.authorize(
                actor_is_admin=self._authorization.is_admin(actor_id),
                dirty_fields=dirty,
            )

            now = self._clock()
            thread = current.copy(updated_at=now)
            if "title" in dirty:
                thread.title = self._sanitized_title(data.title)
            if "node_id" in dirty:
                thread.node_id = data.node_id
            self.publication.normalize(thread, _timestamp_values(data), dirty, now=now)
            self.publication.apply(thread, is_draft=data.is_draft, now=now)

            with self._storage("update"):
                with self._repository.transaction():
                    thread = self._repository.save_thread(thread)
                    self._save_content(thread, data.content)
                    self._reward(thread)
            logger.info(
                "threads.update.persisted",
                thread_id=thread_id,
                fields=sorted(dirty),
                draft=thread.is_draft,
            )
            return thread

    def delete_thread(self, thread_id: int) -> Thread:
        """Tombstone a thread. Only its owner or an administrator may do so."""
        with self._instrumented("delete", thread_id=thread_id):
            thread = self._load(thread_id)
            actor_id = self._authorization.current_actor()
            if actor_id != thread.user_id and not self._authorization.is_admin(actor_id):
                raise Forbidden("Illegal request")
            with self._storage("delete"):
                with self._repository.transaction():
                    return self._repository.soft_delete_thread(thread_id, self._clock())

    def refresh_cache(self, thread_id: int) -> CacheSnapshot:
        """Recompute and persist the cache snapshot of ``thread_id``."""
        with self._instrumented("refresh_cache", thread_id=thread_id):
            with self._storage("refresh_cache"):
                thread = self._repository.get_thread(thread_id, with_deleted=True)
            if thread is None:
                raise ThreadNotFound(thread_id)
            with self._storage("refresh_cache"):
                return self.cache.refresh(thread)

    def record_view(self, thread_id: int) -> CacheSnapshot:
        """Count one view of a visible thread."""
        with self._instrumented("record_view", thread_id=thread_id):
            thread = self._load(thread_id)
            with self._storage("record_view"):
                return self.cache.record_view(thread)

    def on_comment_created(self, thread_id: int, comment: Comment) -> bool:
        """Subscribe the comment author to the thread.

        Returns:
            ``True`` when a new subscription was added, ``False`` when the
            author was already subscribed.
        """
        with self._instrumented("comment_created", thread_id=thread_id):
            if comment.thread_id != thread_id:
                raise ValidationFailure(
                    "Comment does not belong to the thread",
                    errors=[
                        {
                            "loc": ["thread_id"],
                            "msg": f"expected {thread_id}, got {comment.thread_id}",
                            "type": "value_error",
                        }
                    ],
                )
            self._load(thread_id)
            with self._storage("comment_created"):
                return self._subscriptions.subscribe(comment.user_id, thread_id)

    def published_threads(self) -> list[Thread]:
        """Threads visible to readers right now, newest publication first."""
        with self._storage("published_threads"):
            return list(self._repository.published_threads(self._clock()))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _validate(
        self, payload: ThreadInput | Mapping[str, Any], *, require_title: bool
    ) -> ThreadInput:
        if isinstance(payload, ThreadInput):
            data = payload
        else:
            try:
                data = ThreadInput.model_validate(dict(payload))
            except ValidationError as exc:
                raise ValidationFailure.from_pydantic(exc) from exc
        title_supplied = "title" in data.model_fields_set
        if (require_title or title_supplied) and not data.title:
            raise ValidationFailure(
                "Thread title is required",
                errors=[{"loc": ["title"], "msg": "title must not be blank", "type": "missing"}],
            )
        return data

    def _load(self, thread_id: int) -> Thread:
        with self._storage("load"):
            thread = self._repository.get_thread(thread_id)
        if thread is None:
            raise ThreadNotFound(thread_id)
        return thread

    @staticmethod
    def _changed_fields(current: Thread, data: ThreadInput) -> frozenset[str]:
        """Supplied fields whose value differs from the stored thread.

        Timestamps are compared by presence since callers only control
        whether one is set, never its instant.
        """
        changed: set[str] = set()
        for name in data.supplied_fields():
            requested = getattr(data, name)
            stored = getattr(current, name)
            if name in SENSITIVE_FIELDS:
                if is_truthy(requested) != (stored is not None):
                    changed.add(name)
            elif requested != stored:
                changed.add(name)
        return frozenset(changed)

    def _save_content(self, thread: Thread, content: ContentInput | None) -> Content | None:
        if content is None:
            return None
        return self._repository.upsert_content(
            Content(
                thread_id=thread.id,
                body=self._sanitizer.sanitize(content.body),
                type=content.type,
                updated_at=self._clock(),
            )
        )

    def _require_known_user(self, actor_id: int) -> None:
        with self._storage("load_user"):
            user = self._repository.get_user(actor_id)
        if user is None:
            logger.warning("threads.create.unknown_actor", user_id=actor_id)
            raise Forbidden("Unknown actor")

    def _sanitized_title(self, title: str | None) -> str:
        sanitized = self._sanitizer.sanitize(title or "")
        if not sanitized.strip():
            raise ValidationFailure(
                "Thread title is required",
                errors=[
                    {
                        "loc": ["title"],
                        "msg": "title is blank once disallowed words are removed",
                        "type": "value_error",
                    }
                ],
            )
        return sanitized

    def _reward(self, thread: Thread) -> None:
        """Credit the owner inside the save transaction so a failure undoes the save."""
        energy = self._repository.increment_energy(
            thread.user_id, self.settings.rewards.thread_create_energy
        )
        logger.debug("threads.reward.applied", user_id=thread.user_id, energy=energy)

    def _log_published(self, thread: Thread, content: Content | None) -> None:
        body = content.body if content is not None else ""
        self._activity.log(
            PUBLISHED_ACTION,
            thread,
            {"content": plain_excerpt(body, self.settings.activity.excerpt_length)},
            description=PUBLISHED_DESCRIPTION,
        )


def _timestamp_values(data: ThreadInput) -> dict[str, Any]:
    return {name: getattr(data, name) for name in SENSITIVE_FIELDS}


# ============================================================================
# FACTORY
# ============================================================================


def build_coordinator(
    settings: AppSettings | None = None,
    *,
    store: InMemoryForumStore | None = None,
    activity: ActivityLog | None = None,
    clock: Clock = utc_now,
) -> ThreadLifecycleCoordinator:
    """Wire a coordinator over the in-memory store.

    The store doubles as the repository, user directory and subscription
    service.
    """
    resolved = settings or get_settings()
    configure_metrics(resolved.metrics)
    store = store or InMemoryForumStore()
    return ThreadLifecycleCoordinator(
        repository=store,
        authorization=ContextAuthorization(store, system_actor_id=resolved.system_actor_id),
        sanitizer=build_sanitizer(resolved.sanitizer),
        activity=activity or InMemoryActivityLog(clock=clock),
        subscriptions=store,
        settings=resolved,
        clock=clock,
    )


__all__ = [
    "PUBLISHED_ACTION",
    "PUBLISHED_DESCRIPTION",
    "ThreadLifecycleCoordinator",
    "build_coordinator",
]
