import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock

import httpx

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class RetryableStatusError(Exception):
    """Upstream answered with a status worth retrying (throttling or 5xx)."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"upstream returned status {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


def raise_for_retryable(response: httpx.Response) -> None:
    if response.status_code in RETRYABLE_STATUSES:
        raise RetryableStatusError(response.status_code, response.text)


async def retry_with_backoff(
    async_func,
    *,
    max_retries: int = 3,
    base_delay_seconds: float = 0.25,
    max_delay_seconds: float = 2.0,
    retryable_errors: tuple[type[Exception], ...] = (
        httpx.TransportError,
        RetryableStatusError,
        asyncio.TimeoutError,
    ),
):
    last_exception = None
    for attempt in range(max_retries):
        try:
            return await async_func()
        except retryable_errors as exc:  # type: ignore[misc]
            last_exception = exc
            if attempt == max_retries - 1:
                break
            delay = min(max_delay_seconds, base_delay_seconds * (2**attempt))
            delay = min(max_delay_seconds, delay + random.uniform(0, delay / 2))
            await asyncio.sleep(delay)
    if last_exception:
        raise last_exception


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    name: str
    failure_threshold: int = 4
    recovery_timeout_seconds: float = 30.0
    half_open_max_calls: int = 1
    state: CircuitState = field(default=CircuitState.CLOSED)
    failure_count: int = field(default=0)
    last_failure_time: float = field(default=0.0)
    half_open_calls: int = field(default=0)
    _lock: Lock = field(default_factory=Lock)

    def can_execute(self) -> bool:
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True
            if self.state == CircuitState.OPEN:
                if time.time() - self.last_failure_time < self.recovery_timeout_seconds:
                    return False
                self.state = CircuitState.HALF_OPEN
                self.half_open_calls = 0
            if self.half_open_calls < self.half_open_max_calls:
                self.half_open_calls += 1
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.half_open_calls = 0

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.time()
            if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
                self.state = CircuitState.OPEN
                self.half_open_calls = 0

    def status(self) -> dict:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
        }


_registry: dict[str, CircuitBreaker] = {}
_registry_lock = Lock()


def get_breaker(name: str) -> CircuitBreaker:
    with _registry_lock:
        if name not in _registry:
            _registry[name] = CircuitBreaker(name=name)
        return _registry[name]


def reset_breakers() -> None:
    with _registry_lock:
        _registry.clear()
