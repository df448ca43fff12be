"""Keyed session stores with one critical section per session id."""
from __future__ import annotations

import asyncio
import json
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from avidlearner.core.errors import SessionBusy, SessionStoreUnavailable
from avidlearner.core.logging import DOMAIN_SESSION, get_domain_logger
from avidlearner.core.settings import Settings, settings
from avidlearner.engine.models import Session, utcnow

logger = get_domain_logger(__name__, DOMAIN_SESSION)


class SessionStore(ABC):
    @abstractmethod
    def transaction(self, session_id: str) -> AbstractAsyncContextManager[Session]:
        """Async context manager yielding the session with exclusive access.

        The session is created on first use. Changes made inside the block are
        visible to the next transaction on the same id.
        """

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Snapshot read without taking the session lock."""

    async def count(self) -> int | None:
        return None

    async def close(self) -> None:
        return None


@dataclass
class _Entry:
    session: Session
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int = 60 * 60 * 24 * 30, purge_every_seconds: float = 60.0):
        self._entries: dict[str, _Entry] = {}
        self._ttl = timedelta(seconds=ttl_seconds)
        self._purge_every = purge_every_seconds
        self._last_purge = time.monotonic()

    def _purge_expired(self) -> None:
        now = time.monotonic()
        if now - self._last_purge < self._purge_every:
            return
        self._last_purge = now
        cutoff = utcnow() - self._ttl
        expired = [
            sid for sid, entry in self._entries.items() if entry.session.last_seen < cutoff and not entry.lock.locked()
        ]
        for sid in expired:
            del self._entries[sid]
        if expired:
            logger.info("Expired %d idle sessions", len(expired))

    def _entry(self, session_id: str) -> _Entry:
        self._purge_expired()
        entry = self._entries.get(session_id)
        if entry is None:
            entry = _Entry(session=Session(session_id=session_id))
            self._entries[session_id] = entry
        return entry

    @asynccontextmanager
    async def transaction(self, session_id: str) -> AsyncIterator[Session]:
        entry = self._entry(session_id)
        async with entry.lock:
            entry.session.last_seen = utcnow()
            yield entry.session

    async def get(self, session_id: str) -> Session | None:
        entry = self._entries.get(session_id)
        return entry.session if entry else None

    async def count(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class RedisSessionStore(SessionStore):
    """Sessions as JSON documents in redis, serialized through a redis lock.

    A redis outage raises `SessionStoreUnavailable`; there is no local copy
    of the session to fall back on.
    """

    def __init__(self, client: redis.Redis, *, ttl_seconds: int, lock_timeout_seconds: float = 10.0):
        self._client = client
        self._ttl = ttl_seconds
        self._lock_timeout = lock_timeout_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"session:{session_id}"

    @staticmethod
    def _unavailable(session_id: str, exc: RedisError) -> SessionStoreUnavailable:
        logger.warning("Redis unavailable for session %s: %s", session_id, exc)
        return SessionStoreUnavailable("session store unavailable, retry shortly")

    async def _release(self, lock) -> None:
        try:
            await lock.release()
        except (LockError, RedisError) as exc:
            logger.warning("Session lock release failed: %s", exc)

    @asynccontextmanager
    async def transaction(self, session_id: str) -> AsyncIterator[Session]:
        key = self._key(session_id)
        lock = self._client.lock(f"lock:{key}", timeout=self._lock_timeout, blocking_timeout=self._lock_timeout)
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            raise self._unavailable(session_id, exc) from exc
        if not acquired:
            raise SessionBusy("session is busy with another request, retry shortly")

        try:
            try:
                raw = await self._client.get(key)
            except RedisError as exc:
                raise self._unavailable(session_id, exc) from exc
            session = Session.from_dict(json.loads(raw)) if raw else Session(session_id=session_id)
            session.last_seen = utcnow()
            yield session
            try:
                await self._client.set(key, json.dumps(session.to_dict()), ex=self._ttl)
            except RedisError as exc:
                raise self._unavailable(session_id, exc) from exc
        finally:
            await self._release(lock)

    async def get(self, session_id: str) -> Session | None:
        try:
            raw = await self._client.get(self._key(session_id))
        except RedisError as exc:
            raise self._unavailable(session_id, exc) from exc
        return Session.from_dict(json.loads(raw)) if raw else None

    async def close(self) -> None:
        await self._client.aclose()


def build_session_store(config: Settings = settings) -> SessionStore:
    backend = (config.session_store_backend or "memory").lower()
    if backend == "redis":
        client = redis.from_url(config.redis_url, decode_responses=True)
        return RedisSessionStore(
            client,
            ttl_seconds=config.session_ttl_seconds,
            lock_timeout_seconds=config.session_lock_timeout_seconds,
        )
    return InMemorySessionStore(ttl_seconds=config.session_ttl_seconds)
