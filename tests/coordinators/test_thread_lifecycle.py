from __future__ import annotations

from datetime import UTC, datetime

import pytest
from prometheus_client import REGISTRY

from forum_threads.coordinators import build_coordinator
from forum_threads.errors import (
    Forbidden,
    PersistenceFailure,
    RateLimited,
    ThreadNotFound,
    ValidationFailure,
)
from forum_threads.models import Comment, ContentType, ThreadInput, User
from forum_threads.storage.memory import InMemoryForumStore
from tests.conftest import (
    ALICE_ID,
    CAROL_ID,
    MALLORY_ID,
    MODERATOR_ID,
    SYSTEM_ID,
)


def _failure_count(operation: str, error: str) -> float:
    value = REGISTRY.get_sample_value(
        "forum_coordinator_failures_total",
        {"coordinator": "threads", "operation": operation, "error": error},
    )
    return value or 0.0


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


def test_create_thread_assigns_actor_and_publishes(coordinator, store, act_as, clock):
    act_as(ALICE_ID)

    thread = coordinator.create_thread(
        {"title": "  Hello forum  ", "node_id": 3, "content": {"body": "<p>Hi all</p>"}}
    )

    assert thread.id == 1
    assert thread.user_id == ALICE_ID
    assert thread.title == "Hello forum"
    assert thread.node_id == 3
    assert thread.published_at == clock.now
    assert thread.created_at == clock.now
    content = store.get_content(thread.id)
    assert content is not None
    assert content.body == "<p>Hi all</p>"
    assert content.type is ContentType.MARKDOWN


def test_create_thread_accepts_model_payload(coordinator, act_as):
    act_as(ALICE_ID)

    thread = coordinator.create_thread(ThreadInput(title="typed"))

    assert thread.title == "typed"


def test_create_thread_without_actor_uses_system(coordinator):
    first = coordinator.create_thread({"title": "scheduled digest"})
    second = coordinator.create_thread({"title": "scheduled digest"})

    assert first.user_id == SYSTEM_ID
    assert second.user_id == SYSTEM_ID


def test_create_thread_rejects_owner_in_payload(coordinator, store, act_as):
    act_as(ALICE_ID)

    with pytest.raises(ValidationFailure) as excinfo:
        coordinator.create_thread({"title": "mine", "user_id": CAROL_ID})

    assert excinfo.value.problem.status == 422
    assert excinfo.value.errors[0]["loc"] == ["user_id"]
    assert store.latest_thread_by_user(ALICE_ID) is None


@pytest.mark.parametrize("payload", [{}, {"title": "   "}, {"title": None}])
def test_create_thread_requires_title(coordinator, act_as, payload):
    act_as(ALICE_ID)

    with pytest.raises(ValidationFailure):
        coordinator.create_thread(payload)


def test_create_thread_sanitizes_title_and_body(coordinator, store, act_as):
    act_as(ALICE_ID)

    thread = coordinator.create_thread(
        {"title": "buy viagra now", "content": {"body": "Cheap VIAGRA here"}}
    )

    assert thread.title == "buy  now"
    assert store.get_content(thread.id).body == "Cheap  here"


def test_create_thread_as_draft(coordinator, act_as):
    act_as(ALICE_ID)

    thread = coordinator.create_thread({"title": "wip", "is_draft": True})

    assert thread.published_at is None
    assert thread.is_draft


def test_create_thread_refreshes_cache(coordinator, act_as):
    act_as(ALICE_ID)

    thread = coordinator.create_thread({"title": "fresh"})

    assert thread.cache.comments_count == 0
    assert thread.cache.last_reply_user_id == 0
    assert thread.cache.last_reply_user_name == ""


# ---------------------------------------------------------------------------
# guards
# ---------------------------------------------------------------------------


def test_non_admin_cannot_set_sensitive_field(coordinator, store, activity, act_as):
    act_as(ALICE_ID)
    before = _failure_count("create", "Forbidden")

    with pytest.raises(Forbidden) as excinfo:
        coordinator.create_thread({"title": "pin me", "pinned_at": True})

    assert excinfo.value.fields == ("pinned_at",)
    assert excinfo.value.problem.status == 403
    assert store.latest_thread_by_user(ALICE_ID) is None
    assert store.get_user(ALICE_ID).energy == 0
    assert activity.list() == []
    assert _failure_count("create", "Forbidden") == before + 1


def test_admin_sensitive_field_gets_server_instant(coordinator, act_as, clock):
    act_as(MODERATOR_ID)

    thread = coordinator.create_thread(
        {"title": "announcement", "pinned_at": "2001-01-01T00:00:00Z", "excellent_at": 0}
    )

    assert thread.pinned_at == clock.now
    assert thread.pinned_at != datetime(2001, 1, 1, tzinfo=UTC)
    assert thread.excellent_at is None


def test_throttle_blocks_second_thread_inside_cooldown(coordinator, act_as, clock):
    act_as(ALICE_ID)
    coordinator.create_thread({"title": "first"})
    clock.advance(1)

    with pytest.raises(RateLimited) as excinfo:
        coordinator.create_thread({"title": "second"})

    assert str(excinfo.value) == (
        "Posting too frequently, please wait before creating another thread"
    )
    assert excinfo.value.retry_after == pytest.approx(59)

    clock.advance(60)
    assert coordinator.create_thread({"title": "second"}).id == 2


def test_throttle_is_per_user(coordinator, act_as):
    act_as(ALICE_ID)
    coordinator.create_thread({"title": "alice"})
    act_as(CAROL_ID)

    assert coordinator.create_thread({"title": "carol"}).user_id == CAROL_ID


def test_throttle_skipped_outside_interactive_requests(coordinator, act_as):
    act_as(ALICE_ID, interactive=False)

    coordinator.create_thread({"title": "import 1"})
    thread = coordinator.create_thread({"title": "import 2"})

    assert thread.user_id == ALICE_ID


def test_throttle_not_applied_to_update(coordinator, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "first"})
    clock.advance(1)

    updated = coordinator.update_thread(thread.id, {"title": "edited"})

    assert updated.title == "edited"


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


def test_draft_publishes_once_on_update(coordinator, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "wip", "is_draft": True})

    published_at = clock.advance(30)
    first = coordinator.update_thread(thread.id, {"title": "ready"})
    clock.advance(30)
    second = coordinator.update_thread(thread.id, {"title": "ready again"})

    assert first.published_at == published_at
    assert second.published_at == published_at


def test_redraft_clears_published_at(coordinator, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "live"})

    updated = coordinator.update_thread(thread.id, {"is_draft": True})

    assert updated.published_at is None


def test_update_keeps_owner_and_stamps_updated_at(coordinator, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "mine"})
    act_as(MODERATOR_ID)

    updated = coordinator.update_thread(thread.id, {"title": "moderated"})

    assert updated.user_id == ALICE_ID
    assert updated.created_at == thread.created_at
    assert updated.updated_at == clock.now


def test_update_rejects_owner_change(coordinator, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "mine"})

    with pytest.raises(ValidationFailure):
        coordinator.update_thread(thread.id, {"user_id": CAROL_ID})


def test_update_rejects_blank_title(coordinator, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "mine"})

    with pytest.raises(ValidationFailure):
        coordinator.update_thread(thread.id, {"title": ""})


def test_unchanged_sensitive_field_is_not_dirty(coordinator, store, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "popular topic"})
    act_as(MODERATOR_ID)
    pinned = coordinator.update_thread(thread.id, {"pinned_at": True})
    pinned_at = pinned.pinned_at
    clock.advance(5)
    act_as(ALICE_ID)

    echoed = coordinator.update_thread(thread.id, {"title": "renamed", "pinned_at": "yes"})

    assert echoed.title == "renamed"
    assert echoed.pinned_at == pinned_at


def test_non_admin_unpin_is_forbidden_and_leaves_thread(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "topic"})
    act_as(MODERATOR_ID)
    coordinator.update_thread(thread.id, {"pinned_at": True})
    before = store.get_thread(thread.id)
    act_as(ALICE_ID)

    with pytest.raises(Forbidden) as excinfo:
        coordinator.update_thread(thread.id, {"title": "sneaky", "pinned_at": None})

    assert excinfo.value.fields == ("pinned_at",)
    assert store.get_thread(thread.id) == before


def test_admin_unpins_with_falsy_value(coordinator, act_as):
    act_as(MODERATOR_ID)
    thread = coordinator.create_thread({"title": "topic", "pinned_at": True})

    updated = coordinator.update_thread(thread.id, {"pinned_at": "false"})

    assert updated.pinned_at is None


def test_update_replaces_content(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "t", "content": {"body": "v1"}})

    coordinator.update_thread(thread.id, {"content": {"type": "html", "body": "<b>v2</b>"}})

    content = store.get_content(thread.id)
    assert content.body == "<b>v2</b>"
    assert content.type is ContentType.HTML


def test_update_missing_thread(coordinator, act_as):
    act_as(ALICE_ID)

    with pytest.raises(ThreadNotFound) as excinfo:
        coordinator.update_thread(404, {"title": "ghost"})

    assert excinfo.value.problem.status == 404


# ---------------------------------------------------------------------------
# side effects
# ---------------------------------------------------------------------------


def test_every_save_rewards_owner_energy(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "t"})
    assert store.get_user(ALICE_ID).energy == 10

    act_as(MODERATOR_ID)
    coordinator.update_thread(thread.id, {"title": "t2"})

    assert store.get_user(ALICE_ID).energy == 20
    assert store.get_user(MODERATOR_ID).energy == 0


def test_create_logs_published_activity(coordinator, activity, act_as, clock):
    act_as(ALICE_ID)
    body = "<p>" + "a" * 250 + "</p>"

    thread = coordinator.create_thread({"title": "long read", "content": {"body": body}})

    [record] = activity.list()
    assert record.action == "published.thread"
    assert record.description == "published thread"
    assert record.subject_id == thread.id
    assert record.causer_id == ALICE_ID
    assert record.properties == {"content": "a" * 200 + "..."}
    assert record.created_at == clock.now


def test_update_does_not_log_activity(coordinator, activity, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "t", "content": {"body": "short"}})

    coordinator.update_thread(thread.id, {"title": "t2"})

    assert [record.properties["content"] for record in activity.list()] == ["short"]


def test_comment_subscribes_author_once(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "questions"})
    comment = store.add_comment(thread_id=thread.id, user_id=CAROL_ID, body="me too")

    assert coordinator.on_comment_created(thread.id, comment) is True
    assert coordinator.on_comment_created(thread.id, comment) is False
    assert store.subscribers(thread.id) == {CAROL_ID}
    assert coordinator.refresh_cache(thread.id).subscriptions_count == 1


def test_comment_for_other_thread_is_rejected(coordinator, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "questions"})

    with pytest.raises(ValidationFailure):
        coordinator.on_comment_created(thread.id, Comment(id=9, thread_id=99, user_id=CAROL_ID))


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


def test_refresh_cache_is_idempotent_and_keeps_views(coordinator, store, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "t"})
    store.add_comment(thread_id=thread.id, user_id=ALICE_ID, created_at=clock.advance(1))
    store.add_comment(thread_id=thread.id, user_id=CAROL_ID, created_at=clock.advance(1))
    store.like(CAROL_ID, thread.id)
    store.favorite(CAROL_ID, thread.id)
    coordinator.record_view(thread.id)
    coordinator.record_view(thread.id)

    first = coordinator.refresh_cache(thread.id)
    second = coordinator.refresh_cache(thread.id)

    assert first == second
    assert first.views_count == 2
    assert first.comments_count == 2
    assert first.likes_count == 1
    assert first.favoriters_count == 1
    assert first.last_reply_user_id == CAROL_ID
    assert first.last_reply_user_name == "carol"
    assert store.get_thread(thread.id).cache == first


def test_refresh_cache_unknown_thread(coordinator):
    with pytest.raises(ThreadNotFound):
        coordinator.refresh_cache(12)


def test_popular_at_stamped_once(coordinator, store, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "hot"})
    for user_id in range(100, 115):
        store.like(user_id, thread.id)

    promoted_at = clock.advance(10)
    coordinator.refresh_cache(thread.id)
    clock.advance(10)
    coordinator.refresh_cache(thread.id)

    assert store.get_thread(thread.id).popular_at == promoted_at


# ---------------------------------------------------------------------------
# delete / listing
# ---------------------------------------------------------------------------


def test_owner_deletes_thread(coordinator, store, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "bye", "content": {"body": "kept"}})

    deleted = coordinator.delete_thread(thread.id)

    assert deleted.deleted_at == clock.now
    assert store.get_thread(thread.id) is None
    assert store.get_content(thread.id).body == "kept"
    with pytest.raises(ThreadNotFound):
        coordinator.update_thread(thread.id, {"title": "back"})


def test_delete_by_other_member_is_forbidden(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "mine"})
    act_as(CAROL_ID)

    with pytest.raises(Forbidden):
        coordinator.delete_thread(thread.id)

    act_as(MODERATOR_ID)
    assert coordinator.delete_thread(thread.id).is_deleted


def test_published_threads_scope(coordinator, act_as, clock):
    act_as(ALICE_ID, interactive=False)
    visible = coordinator.create_thread({"title": "visible"})
    coordinator.create_thread({"title": "draft", "is_draft": True})
    removed = coordinator.create_thread({"title": "removed"})
    coordinator.delete_thread(removed.id)
    act_as(MALLORY_ID, interactive=False)
    coordinator.create_thread({"title": "banned author"})
    clock.advance(5)
    act_as(CAROL_ID, interactive=False)
    newer = coordinator.create_thread({"title": "newer"})

    assert [thread.id for thread in coordinator.published_threads()] == [newer.id, visible.id]


# ---------------------------------------------------------------------------
# persistence failures
# ---------------------------------------------------------------------------


class _FailingContentStore(InMemoryForumStore):
    def upsert_content(self, content):
        raise OSError("disk full")


def test_storage_failure_rolls_back_and_wraps(settings, activity, clock, act_as):
    store = _FailingContentStore()
    for user_id, name in ((SYSTEM_ID, "system"), (ALICE_ID, "alice")):
        store.add_user(User(id=user_id, name=name))
    coordinator = build_coordinator(settings, store=store, activity=activity, clock=clock)
    act_as(ALICE_ID)

    with pytest.raises(PersistenceFailure) as excinfo:
        coordinator.create_thread({"title": "t", "content": {"body": "b"}})

    assert isinstance(excinfo.value.__cause__, OSError)
    assert excinfo.value.problem.status == 500
    assert store.latest_thread_by_user(ALICE_ID) is None
    assert store.get_user(ALICE_ID).energy == 0
    assert activity.list() == []


def test_default_coordinator_throttles(store, act_as):
    coordinator = build_coordinator(store=store)
    act_as(ALICE_ID)
    coordinator.create_thread({"title": "first"})

    assert coordinator.throttle.cooldown.total_seconds() == 60
    with pytest.raises(RateLimited):
        coordinator.create_thread({"title": "second"})


# ---------------------------------------------------------------------------
# atomicity
# ---------------------------------------------------------------------------


class _ViewDuringSave:
    """Sanitizer that counts a view of the thread while an update is in flight."""

    def __init__(self) -> None:
        self.coordinator = None
        self.thread_id = None

    def sanitize(self, text: str) -> str:
        if self.coordinator is not None and self.thread_id is not None:
            self.coordinator.record_view(self.thread_id)
        return text


def test_update_keeps_views_recorded_while_saving(settings, store, activity, clock, act_as):
    sanitizer = _ViewDuringSave()
    coordinator = build_coordinator(settings, store=store, activity=activity, clock=clock)
    coordinator._sanitizer = sanitizer
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "t"})
    sanitizer.coordinator, sanitizer.thread_id = coordinator, thread.id

    updated = coordinator.update_thread(thread.id, {"title": "t2"})

    assert updated.title == "t2"
    assert updated.cache.views_count == 1
    assert store.get_thread(thread.id).cache.views_count == 1


def test_update_keeps_popularity_stamp(coordinator, store, act_as, clock):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "hot"})
    for user_id in range(100, 115):
        store.like(user_id, thread.id)
    coordinator.refresh_cache(thread.id)
    promoted_at = store.get_thread(thread.id).popular_at
    clock.advance(10)

    coordinator.update_thread(thread.id, {"title": "still hot"})

    stored = store.get_thread(thread.id)
    assert stored.popular_at == promoted_at
    assert stored.cache.likes_count == 15


def test_unknown_actor_cannot_create(coordinator, store, activity, act_as):
    act_as(42)

    with pytest.raises(Forbidden):
        coordinator.create_thread({"title": "t"})
    with pytest.raises(Forbidden):
        coordinator.create_thread({"title": "t"})

    assert store.latest_thread_by_user(42) is None
    assert activity.list() == []


class _EnergyOutageStore(InMemoryForumStore):
    def increment_energy(self, user_id, amount):
        raise ConnectionError("directory unavailable")


def test_reward_failure_undoes_create(settings, activity, clock, act_as):
    store = _EnergyOutageStore()
    store.add_user(User(id=ALICE_ID, name="alice"))
    coordinator = build_coordinator(settings, store=store, activity=activity, clock=clock)
    act_as(ALICE_ID)

    with pytest.raises(PersistenceFailure):
        coordinator.create_thread({"title": "t", "content": {"body": "b"}})

    assert store.latest_thread_by_user(ALICE_ID) is None
    assert store.get_content(1) is None
    assert activity.list() == []
    with pytest.raises(PersistenceFailure):
        coordinator.create_thread({"title": "t"})


@pytest.mark.parametrize("title", ["viagra", "  Viagra  viagra "])
def test_title_blank_after_sanitizing_is_rejected(coordinator, store, act_as, title):
    act_as(ALICE_ID)

    with pytest.raises(ValidationFailure) as excinfo:
        coordinator.create_thread({"title": title})

    assert excinfo.value.errors[0]["loc"] == ["title"]
    assert store.latest_thread_by_user(ALICE_ID) is None


def test_update_to_banned_only_title_is_rejected(coordinator, store, act_as):
    act_as(ALICE_ID)
    thread = coordinator.create_thread({"title": "fine"})

    with pytest.raises(ValidationFailure):
        coordinator.update_thread(thread.id, {"title": "viagra"})

    assert store.get_thread(thread.id).title == "fine"
