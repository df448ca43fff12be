from __future__ import annotations

import time

import httpx
import pytest

from avidlearner.core import resilience
from avidlearner.core.resilience import (
    CircuitBreaker,
    CircuitState,
    RetryableStatusError,
    get_breaker,
    raise_for_retryable,
    retry_with_backoff,
)


@pytest.mark.asyncio
async def test_retry_recovers_from_transient_failures(monkeypatch):
    async def _no_sleep(_delay):
        return None

    monkeypatch.setattr(resilience.asyncio, "sleep", _no_sleep)
    attempts = {"n": 0}

    async def flaky():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise httpx.ConnectError("refused")
        return "ok"

    assert await retry_with_backoff(flaky) == "ok"
    assert attempts["n"] == 3


@pytest.mark.asyncio
async def test_retry_gives_up_and_skips_non_retryable(monkeypatch):
    async def _no_sleep(_delay):
        return None

    monkeypatch.setattr(resilience.asyncio, "sleep", _no_sleep)
    calls = {"n": 0}

    async def always_503():
        calls["n"] += 1
        raise RetryableStatusError(503, "busy")

    with pytest.raises(RetryableStatusError):
        await retry_with_backoff(always_503, max_retries=2)
    assert calls["n"] == 2

    async def bad_input():
        calls["n"] += 1
        raise ValueError("not retried")

    with pytest.raises(ValueError):
        await retry_with_backoff(bad_input)
    assert calls["n"] == 3


def test_raise_for_retryable_only_flags_throttling_and_5xx():
    with pytest.raises(RetryableStatusError):
        raise_for_retryable(httpx.Response(429))
    raise_for_retryable(httpx.Response(404))
    raise_for_retryable(httpx.Response(200))


def test_circuit_opens_and_half_opens(monkeypatch):
    breaker = CircuitBreaker(name="t", failure_threshold=2, recovery_timeout_seconds=10)
    breaker.record_failure()
    assert breaker.can_execute()
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    assert not breaker.can_execute()

    later = time.time() + 11
    monkeypatch.setattr(resilience.time, "time", lambda: later)
    assert breaker.can_execute()
    assert breaker.state == CircuitState.HALF_OPEN
    assert not breaker.can_execute()
    breaker.record_success()
    assert breaker.status() == {"name": "t", "state": "closed", "failure_count": 0}


def test_breaker_registry_returns_same_instance():
    assert get_breaker("judge") is get_breaker("judge")
    assert get_breaker("judge") is not get_breaker("llm:openai:gpt-4")


def test_repeated_health_checks_stay_fast(client):
    latencies_ms: list[float] = []
    for _ in range(30):
        t0 = time.perf_counter()
        assert client.get("/health").status_code == 200
        latencies_ms.append((time.perf_counter() - t0) * 1000.0)
    latencies_ms.sort()
    assert latencies_ms[int(len(latencies_ms) * 0.95) - 1] < 500.0
