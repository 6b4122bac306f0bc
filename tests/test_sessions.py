"""Tests for talecraft.sessions — lookup, persistence, expiry and conflicts."""

import pytest

from helpers import Clock, start_context
from talecraft.errors import SessionConflictError, SessionExpiredError, SessionNotFoundError
from talecraft.sessions import SessionStore


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def store(tmp_path, clock) -> SessionStore:
    return SessionStore(tmp_path, clock=clock)


def test_create_and_lookup(store):
    session = store.create(start_context(message_id="m1"), "demo", "intro")
    assert store.get(session.session_id) is session
    assert store.get_by_user("1001") is session
    assert store.get_by_message("m1") is session
    assert store.count() == 1
    assert "_" not in session.session_id


def test_unknown_lookups_return_none(store):
    assert store.get("nope") is None
    assert store.get_by_user("nobody") is None
    assert store.get_by_message("m404") is None


def test_require_unknown_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.require("nope")


def test_session_written_to_disk(tmp_path, store):
    session = store.create(start_context(), "demo", "intro")
    path = tmp_path / "sessions" / f"{session.session_id}.json"
    assert path.is_file()
    store.remove(session.session_id)
    assert not path.exists()


def test_load_restores_sessions(tmp_path, store, clock):
    session = store.create(start_context(message_id="m1"), "demo", "intro")
    session.accumulated_coins = 25
    store.save(session)

    fresh = SessionStore(tmp_path, clock=clock)
    assert fresh.load() == 1
    restored = fresh.get_by_message("m1")
    assert restored.accumulated_coins == 25


def test_get_reads_through_to_disk(tmp_path, store, clock):
    session = store.create(start_context(), "demo", "intro")
    fresh = SessionStore(tmp_path, clock=clock)
    assert fresh.get(session.session_id).story_id == "demo"


def test_unreadable_file_discarded(tmp_path, store):
    bad = tmp_path / "sessions" / "broken.json"
    bad.write_text("{not json")
    assert store.load() == 0
    assert not bad.exists()


def test_expired_session_is_gone(store, clock):
    session = store.create(start_context(), "demo", "intro")
    clock.advance(hours=25)
    assert store.get(session.session_id) is None
    assert store.get_by_user("1001") is None


def test_require_expired_raises(store, clock):
    session = store.create(start_context(), "demo", "intro")
    clock.advance(hours=25)
    with pytest.raises(SessionExpiredError):
        store.require(session.session_id)


def test_save_refreshes_expiry(store, clock):
    session = store.create(start_context(), "demo", "intro")
    clock.advance(hours=20)
    store.save(session)
    clock.advance(hours=20)
    assert store.get(session.session_id) is session


def test_cleanup_expired(store, clock):
    store.create(start_context(user="1"), "demo", "intro")
    clock.advance(hours=23)
    keep = store.create(start_context(user="2"), "demo", "intro")
    clock.advance(hours=2)
    assert store.cleanup_expired() == 1
    assert store.all() == [keep]


def test_on_remove_sees_replaced_and_expired_sessions(store, clock):
    removed = []
    store.on_remove = lambda s: removed.append(s.session_id)
    first = store.create(start_context(user="1"), "demo", "intro")
    second = store.create(start_context(user="1"), "demo", "intro")
    other = store.create(start_context(user="2"), "demo", "intro")

    clock.advance(hours=25)
    store.cleanup_expired()
    assert removed == [first.session_id, second.session_id, other.session_id]


def test_load_drops_ai_story_sessions(tmp_path, store, clock):
    store.create(start_context(user="1"), "demo", "intro")
    ai = store.create(start_context(user="2"), "ai_incr_1", "intro")

    fresh = SessionStore(tmp_path, clock=clock)
    assert fresh.load() == 1
    assert fresh.get(ai.session_id) is None
    assert not (tmp_path / "sessions" / f"{ai.session_id}.json").exists()


def test_second_session_replaces_first(store):
    first = store.create(start_context(), "demo", "intro")
    second = store.create(start_context(), "coffee_machine", "intro")
    assert store.get(first.session_id) is None
    assert store.get_by_user("1001") is second


def test_reject_policy(tmp_path, clock):
    store = SessionStore(tmp_path, on_conflict="reject", clock=clock)
    first = store.create(start_context(), "demo", "intro")
    with pytest.raises(SessionConflictError) as exc_info:
        store.create(start_context(), "demo", "intro")
    assert exc_info.value.session_id == first.session_id


def test_set_message_reindexes(store):
    session = store.create(start_context(message_id="old"), "demo", "intro")
    store.set_message(session, "new")
    assert store.get_by_message("old") is None
    assert store.get_by_message("new") is session


def test_in_memory_store():
    store = SessionStore()
    session = store.create(start_context(), "demo", "intro")
    assert store.get(session.session_id) is session
    assert store.load() == 0
