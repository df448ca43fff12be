from abc import ABC, abstractmethod

import httpx
from pydantic import ValidationError

from avidlearner.core.errors import GenerationError
from avidlearner.core.json_parser import parse_llm_json
from avidlearner.core.logging import DOMAIN_AI, get_domain_logger
from avidlearner.core.resilience import RetryableStatusError, get_breaker, raise_for_retryable, retry_with_backoff
from avidlearner.core.settings import settings
from avidlearner.schemas.lesson import Lesson

logger = get_domain_logger(__name__, DOMAIN_AI)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

SYSTEM_PROMPT = (
    "You are an expert software engineering instructor. "
    "Generate educational content in valid JSON format only."
)


def build_lesson_prompt(category: str, topic: str) -> str:
    return (
        f'Generate a software engineering lesson about "{topic}" in the "{category}" category.\n\n'
        "Return ONLY valid JSON in this exact structure:\n"
        "{\n"
        '  "title": "concise title",\n'
        f'  "category": "{category}",\n'
        '  "text": "1-2 sentence overview",\n'
        '  "explain": "detailed explanation (2-3 sentences)",\n'
        '  "useCases": ["use case 1", "use case 2", "use case 3"],\n'
        '  "tips": ["tip 1", "tip 2", "tip 3"]\n'
        "}\n\n"
        "Focus on practical, actionable content for intermediate to advanced engineers. "
        "Keep it concise but informative."
    )


def lesson_from_model_output(text: str | None, category: str) -> Lesson:
    """Validate model output into an `ai` lesson, keeping the requested category."""
    data = parse_llm_json(text or "")
    if not data:
        raise GenerationError("AI response did not contain a lesson")
    data["category"] = category
    data["source"] = "ai"
    try:
        return Lesson.model_validate(data)
    except ValidationError as exc:
        raise GenerationError("AI response was not a valid lesson", details={"errors": exc.error_count()}) from exc


class BaseLessonProvider(ABC):
    provider_name: str
    default_model: str = ""

    def __init__(
        self,
        api_key: str = "",
        model_name: str | None = None,
        *,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.model_name = model_name or self.default_model
        self.timeout_seconds = timeout_seconds or settings.ai_timeout_seconds
        self._client = client

    @abstractmethod
    async def _request(self, client: httpx.AsyncClient, prompt: str) -> str | None:
        raise NotImplementedError

    async def generate_lesson(self, category: str, topic: str) -> Lesson:
        category = (category or "").strip() or "general"
        topic = (topic or "").strip()
        if not topic:
            raise GenerationError("topic is required", status_code=400)
        if not self.api_key:
            raise GenerationError(f"{self.provider_name} API key not configured")

        breaker = get_breaker(f"llm:{self.provider_name}:{self.model_name}")
        if not breaker.can_execute():
            raise GenerationError("AI provider temporarily unavailable", details={"reason": "circuit_open"})

        prompt = build_lesson_prompt(category, topic)
        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(timeout=self.timeout_seconds)
        try:
            text = await retry_with_backoff(lambda: self._request(client, prompt))
        except (httpx.HTTPError, RetryableStatusError, ValueError) as exc:
            breaker.record_failure()
            logger.warning("Lesson generation failed on %s/%s: %s", self.provider_name, self.model_name, exc)
            raise GenerationError(f"{self.provider_name} request failed: {exc}") from exc
        finally:
            if owns_client:
                await client.aclose()
        breaker.record_success()
        return lesson_from_model_output(text, category)


class OpenAILessonProvider(BaseLessonProvider):
    provider_name = "openai"
    default_model = "gpt-4"

    async def _request(self, client: httpx.AsyncClient, prompt: str) -> str | None:
        response = await client.post(
            OPENAI_CHAT_URL,
            json={
                "model": self.model_name,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.7,
                "response_format": {"type": "json_object"},
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        raise_for_retryable(response)
        response.raise_for_status()
        choices = response.json().get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")


class AnthropicLessonProvider(BaseLessonProvider):
    provider_name = "anthropic"
    default_model = "claude-3-5-sonnet-20241022"

    async def _request(self, client: httpx.AsyncClient, prompt: str) -> str | None:
        response = await client.post(
            ANTHROPIC_MESSAGES_URL,
            json={
                "model": self.model_name,
                "max_tokens": 1024,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
        )
        raise_for_retryable(response)
        response.raise_for_status()
        parts = response.json().get("content") or []
        text = "\n".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
        return text or None


class NullLessonProvider(BaseLessonProvider):
    provider_name = "none"
    default_model = "none"

    async def _request(self, client: httpx.AsyncClient, prompt: str) -> str | None:
        return None

    async def generate_lesson(self, category: str, topic: str) -> Lesson:
        raise GenerationError("no AI provider configured")


def get_lesson_provider(client: httpx.AsyncClient | None = None) -> BaseLessonProvider:
    provider = (settings.ai_provider or "").lower()
    if provider == "openai":
        return OpenAILessonProvider(settings.openai_api_key, settings.ai_model or None, client=client)
    if provider == "anthropic":
        return AnthropicLessonProvider(settings.anthropic_api_key, settings.ai_model or None, client=client)
    return NullLessonProvider()
