from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from forum_threads.auth.context import ActorContext, bind_actor, reset_actor
from forum_threads.config.settings import (
    AppSettings,
    SanitizerSettings,
    ThrottleSettings,
    get_settings,
)
from forum_threads.coordinators import ThreadLifecycleCoordinator, build_coordinator
from forum_threads.models import User
from forum_threads.services.activity import InMemoryActivityLog
from forum_threads.storage.memory import InMemoryForumStore

START = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

SYSTEM_ID = 1
ALICE_ID = 2
MODERATOR_ID = 3
CAROL_ID = 4
MALLORY_ID = 5


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("FT_ENV", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        throttle=ThrottleSettings(thread_create_cooldown_seconds=60),
        sanitizer=SanitizerSettings(banned_words=["viagra"]),
    )


@pytest.fixture
def store() -> InMemoryForumStore:
    store = InMemoryForumStore()
    activated = START - timedelta(days=30)
    store.add_user(User(id=SYSTEM_ID, name="system", is_admin=True, activated_at=activated))
    store.add_user(User(id=ALICE_ID, name="alice", activated_at=activated))
    store.add_user(User(id=MODERATOR_ID, name="moderator", is_admin=True, activated_at=activated))
    store.add_user(User(id=CAROL_ID, name="carol", activated_at=activated))
    store.add_user(
        User(id=MALLORY_ID, name="mallory", activated_at=activated, banned_at=activated)
    )
    return store


@pytest.fixture
def activity(clock: FrozenClock) -> InMemoryActivityLog:
    return InMemoryActivityLog(clock=clock)


@pytest.fixture
def coordinator(
    settings: AppSettings,
    store: InMemoryForumStore,
    activity: InMemoryActivityLog,
    clock: FrozenClock,
) -> ThreadLifecycleCoordinator:
    return build_coordinator(settings, store=store, activity=activity, clock=clock)


@pytest.fixture
def act_as() -> Iterator[Callable[..., None]]:
    """Bind an actor for the rest of the test; later calls replace earlier ones."""
    tokens = []

    def _bind(actor_id: int | None, *, interactive: bool = True) -> None:
        tokens.append(bind_actor(ActorContext(actor_id=actor_id, interactive=interactive)))

    yield _bind
    while tokens:
        reset_actor(tokens.pop())
