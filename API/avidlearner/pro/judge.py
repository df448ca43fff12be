"""Client for the external code judge.

The judge receives `{"challengeId", "code"}` and answers with a verdict
`{"passed", "total", "failures", "stdout", "stderr"}`.
"""
import httpx
from pydantic import ValidationError

from avidlearner.core.errors import JudgeUnavailable
from avidlearner.core.logging import DOMAIN_PRO, get_domain_logger
from avidlearner.core.resilience import RetryableStatusError, get_breaker, raise_for_retryable, retry_with_backoff
from avidlearner.core.settings import settings
from avidlearner.schemas.pro import JudgeVerdict

logger = get_domain_logger(__name__, DOMAIN_PRO)


class JudgeClient:
    def __init__(
        self,
        url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = settings.judge_url if url is None else url
        self.timeout_seconds = timeout_seconds or settings.judge_timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def judge(self, challenge_id: str, code: str) -> JudgeVerdict:
        if not self.configured:
            raise JudgeUnavailable("no code judge configured")
        breaker = get_breaker("judge")
        if not breaker.can_execute():
            raise JudgeUnavailable("code judge temporarily unavailable", details={"reason": "circuit_open"})

        async def _call():
            response = await client.post(self.url, json={"challengeId": challenge_id, "code": code})
            raise_for_retryable(response)
            response.raise_for_status()
            return response.json()

        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self.timeout_seconds)
        try:
            body = await retry_with_backoff(_call, max_retries=2)
            verdict = JudgeVerdict.model_validate(body)
        except (httpx.HTTPError, RetryableStatusError, ValueError, ValidationError) as exc:
            breaker.record_failure()
            logger.warning("Judge call failed for challenge %s: %s", challenge_id, exc)
            raise JudgeUnavailable(f"code judge failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()
        breaker.record_success()
        return verdict


judge_client = JudgeClient()
