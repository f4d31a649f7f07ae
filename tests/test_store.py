# tests/test_store.py
# -*- coding: utf-8 -*-
"""Session store backends, TTL handling and the per-session lock registry."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import FakeClock
from tripvoice.core.config import Settings
from tripvoice.core.errors import PersistenceFailed
from tripvoice.models.trip_record import Intent
from tripvoice.runtime_state.locks import SessionLockRegistry
from tripvoice.runtime_state.store import (
    InMemorySessionStore,
    RedisSessionStore,
    build_session_store,
    session_key_for,
)

KEY = session_key_for("9999999999")


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the store."""

    def __init__(self, fail: bool = False, set_result: Any = True) -> None:
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = fail
        self.set_result = set_result
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        if self.fail:
            raise RedisConnectionError("connection refused")
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> Any:
        if self.fail:
            raise RedisConnectionError("connection refused")
        self.data[key] = value
        self.ttls[key] = ex
        return self.set_result

    async def aclose(self) -> None:
        self.closed = True


def test_session_key_format():
    assert session_key_for("9999999999") == "trip_state:9999999999"


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


def test_memory_store_round_trip(mandatory_done):
    store = InMemorySessionStore(clock=FakeClock())

    async def scenario():
        assert await store.load(KEY) is None
        await store.save(KEY, mandatory_done, 300)
        return await store.load(KEY)

    assert asyncio.run(scenario()) == mandatory_done


def test_memory_store_expires_after_ttl(mandatory_done):
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)

    async def scenario():
        await store.save(KEY, mandatory_done, 300)
        clock.advance(299)
        still_there = await store.load(KEY)
        clock.advance(1)
        gone = await store.load(KEY)
        return still_there, gone

    still_there, gone = asyncio.run(scenario())
    assert still_there == mandatory_done
    assert gone is None
    assert len(store) == 0


def test_save_renews_ttl(mandatory_done):
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)

    async def scenario():
        await store.save(KEY, mandatory_done, 300)
        clock.advance(200)
        await store.save(KEY, mandatory_done, 300)
        clock.advance(200)
        return await store.load(KEY)

    assert asyncio.run(scenario()) == mandatory_done


def test_prune_expired(mandatory_done):
    clock = FakeClock()
    store = InMemorySessionStore(clock=clock)

    async def scenario():
        await store.save(session_key_for("1"), mandatory_done, 10)
        await store.save(session_key_for("2"), mandatory_done, 100)

    asyncio.run(scenario())
    clock.advance(50)
    assert store.prune_expired() == 1
    assert len(store) == 1


def test_non_positive_ttl_is_rejected(mandatory_done):
    store = InMemorySessionStore(clock=FakeClock())
    with pytest.raises(ValueError):
        asyncio.run(store.save(KEY, mandatory_done, 0))


def test_corrupt_record_is_treated_as_absent():
    store = InMemorySessionStore(clock=FakeClock())

    async def scenario():
        await store._set_raw(KEY, '{"user": "not an identity"', 300)
        return await store.load(KEY)

    assert asyncio.run(scenario()) is None


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


def test_redis_store_sets_value_with_expiry(mandatory_done):
    client = FakeRedis()
    store = RedisSessionStore(client)

    async def scenario():
        await store.save(KEY, mandatory_done, 300)
        loaded = await store.load(KEY)
        await store.close()
        return loaded

    assert asyncio.run(scenario()) == mandatory_done
    assert client.ttls[KEY] == 300
    assert '"tripType":"round_trip"' in client.data[KEY]
    assert client.closed


def test_redis_errors_become_persistence_failed(mandatory_done):
    store = RedisSessionStore(FakeRedis(fail=True))

    with pytest.raises(PersistenceFailed):
        asyncio.run(store.load(KEY))
    with pytest.raises(PersistenceFailed):
        asyncio.run(store.save(KEY, mandatory_done, 300))


def test_rejected_redis_set_is_a_failure(mandatory_done):
    store = RedisSessionStore(FakeRedis(set_result=False))
    with pytest.raises(PersistenceFailed):
        asyncio.run(store.save(KEY, mandatory_done, 300))


def test_build_session_store_picks_backend():
    memory = build_session_store(Settings(store_backend="memory"))
    assert isinstance(memory, InMemorySessionStore)

    redis_store = build_session_store(
        Settings(store_backend="redis", redis_url="redis://localhost:6399/0")
    )
    assert isinstance(redis_store, RedisSessionStore)


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------


def test_lock_serializes_same_session():
    locks = SessionLockRegistry()
    events = []

    async def worker(name: str, key: str):
        async with locks.hold(key):
            events.append(f"{name}:in")
            await asyncio.sleep(0.01)
            events.append(f"{name}:out")

    async def scenario():
        await asyncio.gather(worker("a", KEY), worker("b", KEY))

    asyncio.run(scenario())
    assert events == ["a:in", "a:out", "b:in", "b:out"]
    assert locks.active() == 0


def test_lock_does_not_block_other_sessions():
    locks = SessionLockRegistry()
    events = []

    async def worker(name: str, key: str):
        async with locks.hold(key):
            events.append(f"{name}:in")
            await asyncio.sleep(0.01)
            events.append(f"{name}:out")

    async def scenario():
        await asyncio.gather(worker("a", session_key_for("1")), worker("b", session_key_for("2")))

    asyncio.run(scenario())
    assert events[:2] == ["a:in", "b:in"]


def test_lock_is_released_on_error():
    locks = SessionLockRegistry()

    async def scenario():
        with pytest.raises(RuntimeError):
            async with locks.hold(KEY):
                raise RuntimeError("boom")
        async with locks.hold(KEY):
            return locks.active()

    assert asyncio.run(scenario()) == 1
    assert locks.active() == 0


def test_intent_survives_store(fresh):
    store = InMemorySessionStore(clock=FakeClock())

    async def scenario():
        await store.save(KEY, fresh, 60)
        return await store.load(KEY)

    assert asyncio.run(scenario()).intent is Intent.GREET
