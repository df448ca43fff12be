from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import pytest
import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError

from avidlearner.core.errors import SessionBusy, SessionStoreUnavailable
from avidlearner.core.settings import Settings
from avidlearner.engine.models import utcnow
from avidlearner.engine.service import SessionEngine
from avidlearner.engine.store import InMemorySessionStore, RedisSessionStore, build_session_store


@pytest.mark.asyncio
async def test_transaction_creates_and_keeps_session():
    store = InMemorySessionStore()
    assert await store.get("s1") is None

    async with store.transaction("s1") as session:
        session.coins_total = 7
    async with store.transaction("s1") as session:
        assert session.coins_total == 7
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_transactions_on_one_session_do_not_interleave():
    store = InMemorySessionStore()
    trace: list[str] = []

    async def bump(tag: str):
        async with store.transaction("s1") as session:
            trace.append(f"{tag}-in")
            current = session.xp_total
            await asyncio.sleep(0.01)
            session.xp_total = current + 1
            trace.append(f"{tag}-out")

    await asyncio.gather(bump("a"), bump("b"), bump("c"))

    assert (await store.get("s1")).xp_total == 3
    for position in range(0, len(trace), 2):
        assert trace[position].split("-")[0] == trace[position + 1].split("-")[0]


@pytest.mark.asyncio
async def test_different_sessions_run_in_parallel():
    store = InMemorySessionStore()
    inside = asyncio.Event()

    async def hold_alice():
        async with store.transaction("alice"):
            await inside.wait()

    holder = asyncio.create_task(hold_alice())
    await asyncio.sleep(0)
    async with store.transaction("bob") as bob:
        bob.coins_total = 1
    inside.set()
    await holder
    assert (await store.get("bob")).coins_total == 1


@pytest.mark.asyncio
async def test_idle_sessions_expire():
    store = InMemorySessionStore(ttl_seconds=60, purge_every_seconds=0)
    async with store.transaction("old") as session:
        pass
    session.last_seen = utcnow() - timedelta(seconds=120)

    async with store.transaction("new"):
        pass
    assert await store.get("old") is None
    assert await store.get("new") is not None


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the session store, with an outage switch."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}
        self.locks: set[str] = set()
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    def lock(self, name: str, timeout=None, blocking_timeout=None) -> FakeLock:
        return FakeLock(self, name)

    async def get(self, key: str):
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def aclose(self) -> None:
        return None


class FakeLock:
    def __init__(self, server: FakeRedis, name: str):
        self.server = server
        self.name = name

    async def acquire(self) -> bool:
        self.server._check()
        if self.name in self.server.locks:
            return False
        self.server.locks.add(self.name)
        return True

    async def release(self) -> None:
        self.server.locks.discard(self.name)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_store(fake_redis) -> RedisSessionStore:
    return RedisSessionStore(fake_redis, ttl_seconds=60, lock_timeout_seconds=0.5)


@pytest.mark.asyncio
async def test_redis_store_round_trips_session_document(redis_store, fake_redis):
    assert await redis_store.get("s1") is None
    async with redis_store.transaction("s1") as session:
        session.coins_total = 4
        session.read_titles.add("Caching")

    stored = json.loads(fake_redis.data["session:s1"])
    assert stored["coins_total"] == 4
    assert stored["read_titles"] == ["Caching"]
    assert fake_redis.expiry["session:s1"] == 60
    assert fake_redis.locks == set()

    async with redis_store.transaction("s1") as session:
        assert session.coins_total == 4
        assert session.read_titles == {"Caching"}
    assert (await redis_store.get("s1")).coins_total == 4


@pytest.mark.asyncio
async def test_redis_store_busy_when_lock_is_held(redis_store, fake_redis):
    fake_redis.locks.add("lock:session:s1")
    with pytest.raises(SessionBusy):
        async with redis_store.transaction("s1"):
            pass
    assert "session:s1" not in fake_redis.data


@pytest.mark.asyncio
async def test_redis_store_skips_write_when_body_fails(redis_store, fake_redis):
    async with redis_store.transaction("s1") as session:
        session.coins_total = 3
    with pytest.raises(ValueError):
        async with redis_store.transaction("s1") as session:
            session.coins_total = 99
            raise ValueError("boom")

    assert json.loads(fake_redis.data["session:s1"])["coins_total"] == 3
    assert fake_redis.locks == set()


@pytest.mark.asyncio
async def test_redis_outage_mid_quiz_keeps_session_intact(lesson_catalog, redis_store, fake_redis):
    engine = SessionEngine(lesson_catalog, redis_store, config=Settings(coins_per_correct_answer=10))
    await engine.mark_read("s1", "Caching")
    await engine.mark_read("s1", "Indexes")
    await engine.start_quiz("s1")
    first = (await redis_store.get("s1")).quiz.current().correct_option_index
    assert (await engine.answer("s1", first)).coins_total == 10

    fake_redis.down = True
    with pytest.raises(SessionStoreUnavailable):
        await engine.answer("s1", 0)
    with pytest.raises(SessionStoreUnavailable):
        await engine.apply_reward("s1", coins_delta=5)
    with pytest.raises(SessionStoreUnavailable):
        await redis_store.get("s1")

    fake_redis.down = False
    second = (await redis_store.get("s1")).quiz.current().correct_option_index
    result = await engine.answer("s1", second)
    assert result.stage == "result"
    assert (result.correct_count, result.total) == (2, 2)
    assert result.coins_total == 20


@pytest.mark.asyncio
async def test_redis_store_unreachable_server():
    client = redis.from_url(
        "redis://127.0.0.1:1/0", decode_responses=True, socket_connect_timeout=0.5, retry=Retry(NoBackoff(), 0)
    )
    store = RedisSessionStore(client, ttl_seconds=60, lock_timeout_seconds=0.5)
    try:
        with pytest.raises(SessionStoreUnavailable):
            async with store.transaction("s1"):
                pass
    finally:
        await store.close()


def test_backend_selection():
    assert isinstance(build_session_store(Settings(session_store_backend="memory")), InMemorySessionStore)
    assert isinstance(
        build_session_store(Settings(session_store_backend="redis", redis_url="redis://127.0.0.1:1/0")),
        RedisSessionStore,
    )
