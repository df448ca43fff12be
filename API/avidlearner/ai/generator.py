"""AI lesson generation with a per-session daily cap."""
from __future__ import annotations

from collections.abc import Callable

from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.catalog.catalog import catalog as default_catalog
from avidlearner.core.errors import FeatureDisabled, GenerationError, RateLimited
from avidlearner.core.llm_provider import BaseLessonProvider, get_lesson_provider
from avidlearner.core.logging import DOMAIN_AI, get_domain_logger
from avidlearner.core.settings import Settings, settings
from avidlearner.engine.models import Session, utcnow
from avidlearner.engine.service import session_engine
from avidlearner.engine.store import SessionStore
from avidlearner.schemas.lesson import AIConfigResponse, LessonStageResponse

logger = get_domain_logger(__name__, DOMAIN_AI)


def _today() -> str:
    return utcnow().date().isoformat()


def _roll_day(session: Session) -> None:
    today = _today()
    if session.ai_lessons_day != today:
        session.ai_lessons_day = today
        session.ai_lessons_today = 0


class LessonGenerator:
    def __init__(
        self,
        catalog: LessonCatalog,
        store: SessionStore,
        *,
        config: Settings = settings,
        provider_factory: Callable[[], BaseLessonProvider] = get_lesson_provider,
    ):
        self.catalog = catalog
        self.store = store
        self.config = config
        self.provider_factory = provider_factory

    def describe(self) -> AIConfigResponse:
        provider = self.provider_factory() if self.config.ai_lessons_enabled else None
        return AIConfigResponse(
            ai_enabled=self.config.ai_lessons_enabled,
            provider=provider.provider_name if provider else "none",
            model=provider.model_name if provider else "",
            max_per_day=self.config.max_ai_lessons_per_day,
        )

    async def generate(self, session_id: str, category: str, topic: str) -> LessonStageResponse:
        if not self.config.ai_lessons_enabled:
            raise FeatureDisabled("AI lesson generation is disabled")

        limit = self.config.max_ai_lessons_per_day
        async with self.store.transaction(session_id) as session:
            _roll_day(session)
            if session.ai_lessons_today >= limit:
                raise RateLimited(
                    f"daily AI lesson limit of {limit} reached",
                    details={"limit": limit, "used": session.ai_lessons_today},
                )

        # The provider call can take seconds; the session stays unlocked meanwhile.
        lesson = await self.provider_factory().generate_lesson(category, topic)
        if not self.catalog.add_lesson(lesson):
            logger.info("Discarded AI lesson %r for session %s: title already in catalog", lesson.title, session_id)
            raise GenerationError(
                f"a lesson titled '{lesson.title}' already exists", status_code=409, details={"title": lesson.title}
            )

        async with self.store.transaction(session_id) as session:
            _roll_day(session)
            session.ai_lessons_today += 1
            remaining = max(0, limit - session.ai_lessons_today)
            logger.info("Generated AI lesson %r for session %s (%d left today)", lesson.title, session_id, remaining)
            return LessonStageResponse(
                lesson=lesson,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
                message=f"AI lesson generated ({remaining} left today)",
            )


lesson_generator = LessonGenerator(default_catalog, session_engine.store)
