"""Pulls extra lessons from public sources (system-design-primer, dev.to)."""
from __future__ import annotations

import asyncio
import re

import httpx

from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.core.logging import DOMAIN_CATALOG, get_domain_logger
from avidlearner.core.resilience import get_breaker, raise_for_retryable, retry_with_backoff
from avidlearner.core.settings import settings
from avidlearner.schemas.lesson import Lesson

logger = get_domain_logger(__name__, DOMAIN_CATALOG)

GITHUB_PRIMER_URL = "https://raw.githubusercontent.com/donnemartin/system-design-primer/master/README.md"
DEVTO_ARTICLES_URL = "https://dev.to/api/articles"
DEVTO_TAGS = ("architecture", "systemdesign", "designpatterns")

_SECTION = re.compile(r"^##\s+(.+)$", re.MULTILINE)
_SKIP_SECTIONS = ("index", "contribut", "credit", "license")
_BULLETS = "-*•"

_DEVTO_CATEGORIES = {
    "architecture": "system-design",
    "systemdesign": "system-design",
    "microservices": "system-design",
    "database": "databases",
    "sql": "databases",
    "nosql": "databases",
    "api": "apis",
    "rest": "apis",
    "graphql": "apis",
    "cloud": "cloud",
    "aws": "cloud",
    "azure": "cloud",
    "kubernetes": "cloud",
    "security": "security",
}


def truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def parse_github_markdown(markdown: str) -> list[Lesson]:
    """One lesson per `##` section: first paragraph is the text, second the explanation."""
    lessons: list[Lesson] = []
    matches = list(_SECTION.finditer(markdown))
    for position, match in enumerate(matches):
        title = match.group(1).strip()
        if any(word in title.lower() for word in _SKIP_SECTIONS):
            continue
        end = matches[position + 1].start() if position + 1 < len(matches) else len(markdown)
        body = markdown[match.end():end].strip()

        summary, explain = "", ""
        for paragraph in body.split("\n\n"):
            cleaned = paragraph.strip()
            if not cleaned or cleaned.startswith(("#", "<")):
                continue
            if not summary:
                summary = truncate(cleaned, 200)
            else:
                explain = truncate(cleaned, 300)
                break
        if not summary:
            continue
        lessons.append(
            Lesson(
                title=title,
                category="system-design",
                source="github",
                text=summary,
                explain=explain,
                use_cases=("Distributed systems", "Scalable architectures"),
                tips=("Review trade-offs", "Consider CAP theorem"),
            )
        )
    return lessons


def categorize_devto_article(tags: list[str]) -> str:
    for tag in tags:
        category = _DEVTO_CATEGORIES.get(tag.lower())
        if category:
            return category
    return "general"


def extract_use_cases(description: str) -> list[str]:
    use_cases = []
    for line in description.splitlines():
        trimmed = line.strip()
        if trimmed and trimmed[0] in _BULLETS:
            item = trimmed.lstrip(_BULLETS).strip()
            if 0 < len(item) < 100:
                use_cases.append(item)
    return use_cases or ["General software engineering", "System architecture"]


def devto_article_to_lesson(article: dict) -> Lesson | None:
    title = str(article.get("title") or "").strip()
    if not title:
        return None
    tags = article.get("tag_list") or article.get("tags") or []
    if isinstance(tags, str):
        tags = [tag.strip() for tag in tags.split(",")]
    description = str(article.get("description") or "")
    return Lesson(
        title=title,
        category=categorize_devto_article(list(tags)),
        source="devto",
        text=truncate(description, 200),
        explain=f"Read more at: {article.get('url', '')}",
        use_cases=tuple(extract_use_cases(description)),
        tips=("Check the full article for details", "Consider practical applications"),
    )


class ExternalLessonFetcher:
    def __init__(self, client: httpx.AsyncClient | None = None, *, devto_pause_seconds: float = 0.5):
        self._client = client
        self._devto_pause_seconds = devto_pause_seconds
        self._task: asyncio.Task | None = None

    async def _get(self, client: httpx.AsyncClient, url: str, **params) -> httpx.Response:
        async def _call():
            response = await client.get(url, params=params or None)
            raise_for_retryable(response)
            response.raise_for_status()
            return response

        return await retry_with_backoff(_call)

    async def fetch_github(self, client: httpx.AsyncClient) -> list[Lesson]:
        response = await self._get(client, GITHUB_PRIMER_URL)
        return parse_github_markdown(response.text)

    async def fetch_devto(self, client: httpx.AsyncClient) -> list[Lesson]:
        lessons: list[Lesson] = []
        for position, tag in enumerate(DEVTO_TAGS):
            if position and self._devto_pause_seconds:
                await asyncio.sleep(self._devto_pause_seconds)
            try:
                response = await self._get(client, DEVTO_ARTICLES_URL, tag=tag, per_page=10, top=7)
                articles = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("dev.to fetch failed for tag %s: %s", tag, exc)
                continue
            for article in articles if isinstance(articles, list) else []:
                lesson = devto_article_to_lesson(article)
                if lesson is not None:
                    lessons.append(lesson)
        return lessons

    async def fetch_all(self) -> list[Lesson]:
        """Fetch every source concurrently; a failing source contributes nothing."""
        breaker = get_breaker("lessons:external")
        if not breaker.can_execute():
            logger.warning("External lesson sources skipped: circuit open")
            return []
        owns_client = self._client is None
        client = self._client or httpx.AsyncClient(
            timeout=settings.external_fetch_timeout_seconds, follow_redirects=True
        )
        try:
            results = await asyncio.gather(self.fetch_github(client), self.fetch_devto(client), return_exceptions=True)
        finally:
            if owns_client:
                await client.aclose()

        lessons: list[Lesson] = []
        failed = 0
        for name, result in zip(("github", "devto"), results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning("External source %s failed: %s", name, result)
                continue
            lessons.extend(result)
        if failed == len(results):
            breaker.record_failure()
        else:
            breaker.record_success()
        return lessons

    async def refresh(self, target: LessonCatalog) -> int:
        lessons = await self.fetch_all()
        if lessons:
            target.set_external(lessons)
        return len(lessons)

    async def _refresh_loop(self, target: LessonCatalog, interval_seconds: float) -> None:
        while True:
            try:
                await self.refresh(target)
            except Exception:
                logger.exception("External lesson refresh crashed; retrying next interval")
            await asyncio.sleep(interval_seconds)

    def start(self, target: LessonCatalog, interval_seconds: float) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._refresh_loop(target, interval_seconds))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


lesson_fetcher = ExternalLessonFetcher()
