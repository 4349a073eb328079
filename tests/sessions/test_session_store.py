from __future__ import annotations

import asyncio

import pytest

from tutorpipe.llms.errors import SessionNotFoundError
from tutorpipe.llms.types import ProviderMessage
from tutorpipe.sessions.store import SessionStore


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_create_assigns_unique_ids_and_defaults():
    store = SessionStore()

    first = store.create()
    second = store.create("Chemistry")

    assert first.id != second.id
    assert first.topic == "General"
    assert second.topic == "Chemistry"
    assert first.messages == ()
    assert len(store) == 2
    assert first.id in store


def test_list_orders_by_most_recent_activity():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    older = store.create("older")
    clock.advance(10)
    newer = store.create("newer")
    clock.advance(10)

    store.append(older.id, ProviderMessage(role="user", content="bump"))

    assert [s.id for s in store.list()] == [older.id, newer.id]


def test_append_bumps_last_active_and_returns_new_snapshot():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    session = store.create()
    clock.advance(5)

    updated = store.append(session.id, ProviderMessage(role="user", content="hi"))

    assert session.messages == ()
    assert updated.messages[-1].content == "hi"
    assert updated.last_active_at == session.created_at + 5
    assert store.get(session.id) == updated


def test_remove_last_only_drops_the_expected_message():
    store = SessionStore()
    session = store.create()
    first = ProviderMessage(role="user", content="one")
    second = ProviderMessage(role="user", content="two")
    store.append(session.id, first)
    store.append(session.id, second)

    assert store.remove_last(session.id, first) is False
    assert store.remove_last(session.id, second) is True
    assert store.get(session.id).messages == (first,)
    assert store.remove_last("missing", first) is False


def test_remove_last_restores_previous_activity_and_order():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    quiet = store.create("quiet")
    clock.advance(10)
    busy = store.create("busy")
    clock.advance(10)
    turn = ProviderMessage(role="user", content="unanswered")
    store.append(quiet.id, turn)

    assert [s.id for s in store.list()] == [quiet.id, busy.id]

    assert store.remove_last(quiet.id, turn) is True
    assert store.get(quiet.id).last_active_at == quiet.last_active_at
    assert [s.id for s in store.list()] == [busy.id, quiet.id]


def test_require_and_append_raise_for_unknown_session():
    store = SessionStore()

    with pytest.raises(SessionNotFoundError):
        store.require("session_nope")
    with pytest.raises(SessionNotFoundError):
        store.append("session_nope", ProviderMessage(role="user", content="x"))


def test_delete_and_clear():
    store = SessionStore()
    a = store.create()
    b = store.create()

    assert store.delete(a.id) is True
    assert store.delete(a.id) is False
    assert store.get(a.id) is None

    store.clear()
    assert len(store) == 0
    assert b.id not in store


def test_evict_expired_uses_ttl_and_last_activity():
    clock = FakeClock()
    store = SessionStore(ttl_s=60, clock=clock)
    stale = store.create()
    clock.advance(50)
    fresh = store.create()
    clock.advance(20)

    assert store.evict_expired() == 1
    assert store.get(stale.id) is None
    assert store.get(fresh.id) is not None


def test_evict_is_noop_without_ttl():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    store.create()
    clock.advance(10**6)

    assert store.evict_expired() == 0


def test_invalid_ttl_is_rejected():
    with pytest.raises(ValueError):
        SessionStore(ttl_s=0)


def test_lock_for_returns_one_lock_per_session():
    async def _run():
        store = SessionStore()
        a = store.create()
        b = store.create()
        assert store.lock_for(a.id) is store.lock_for(a.id)
        assert store.lock_for(a.id) is not store.lock_for(b.id)

    asyncio.run(_run())
