"""Session-level operations behind the lesson and quiz endpoints.

Every state change runs inside one `store.transaction(session_id)` block, so
two requests on the same session never interleave while different sessions
proceed in parallel.
"""
from __future__ import annotations

import random

from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.catalog.catalog import catalog as default_catalog
from avidlearner.core.logging import DOMAIN_SESSION, get_domain_logger
from avidlearner.core.settings import Settings, settings
from avidlearner.engine import quiz as quiz_engine
from avidlearner.engine import tracker
from avidlearner.engine.models import Totals
from avidlearner.engine.store import SessionStore, build_session_store
from avidlearner.schemas.lesson import Lesson, LessonStageResponse
from avidlearner.schemas.session import AddLessonResponse, QuizQuestionResponse, QuizResultResponse

logger = get_domain_logger(__name__, DOMAIN_SESSION)


class SessionEngine:
    def __init__(
        self,
        catalog: LessonCatalog,
        store: SessionStore,
        *,
        config: Settings = settings,
        rng: random.Random | None = None,
    ):
        self.catalog = catalog
        self.store = store
        self.config = config
        self.rng = rng or random.Random()

    async def get_lesson(self, session_id: str, category: str = "", source: str = "") -> LessonStageResponse:
        async with self.store.transaction(session_id) as session:
            lesson = self.catalog.get_lesson(
                category,
                source,
                rng=self.rng,
                recent=session.recent_lessons,
                repeat_window=self.config.lesson_repeat_window,
            )
            tracker.remember_lesson(session, lesson.title, self.config.lesson_repeat_window)
            return LessonStageResponse(
                lesson=lesson,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
            )

    async def random_lesson(self, session_id: str, category: str = "") -> Lesson:
        """Bare lesson for `/api/random`; only the repeat window is tracked."""
        staged = await self.get_lesson(session_id, category)
        return staged.lesson

    async def mark_read(self, session_id: str, title: str) -> AddLessonResponse:
        title = (title or "").strip()
        async with self.store.transaction(session_id) as session:
            added = bool(title) and tracker.mark_read(session, title, self.catalog)
            return AddLessonResponse(
                added=added,
                count=len(session.read_titles),
                read_titles=sorted(session.read_titles),
                message="added to quiz pool" if added else "unknown lesson title",
            )

    async def start_quiz(self, session_id: str) -> QuizQuestionResponse:
        async with self.store.transaction(session_id) as session:
            question = quiz_engine.start_quiz(
                session,
                self.catalog,
                self.rng,
                fallback_size=self.config.fallback_quiz_size,
            )
            return QuizQuestionResponse(
                question=question.prompt,
                options=list(question.options),
                index=1,
                total=session.quiz.total,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
                message="quiz started",
            )

    async def current_quiz(self, session_id: str) -> QuizQuestionResponse:
        async with self.store.transaction(session_id) as session:
            question, index, total = quiz_engine.current_question(session)
            return QuizQuestionResponse(
                question=question.prompt,
                options=list(question.options),
                index=index,
                total=total,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
            )

    async def answer(self, session_id: str, raw_answer_index) -> QuizQuestionResponse | QuizResultResponse:
        async with self.store.transaction(session_id) as session:
            outcome = quiz_engine.answer(
                session,
                raw_answer_index,
                coins_per_correct=self.config.coins_per_correct_answer,
                max_completion_xp=self.config.quiz_completion_xp,
            )
            if outcome.finished:
                return QuizResultResponse(
                    correct=outcome.correct,
                    correct_count=outcome.correct_count,
                    total=outcome.total,
                    coins_earned=outcome.quiz_coins_earned,
                    coins_total=session.coins_total,
                    xp_earned=outcome.xp_earned,
                    xp_total=session.xp_total,
                    streak=outcome.streak,
                    message=outcome.message,
                )
            question = outcome.next_question
            return QuizQuestionResponse(
                question=question.prompt,
                options=list(question.options),
                index=outcome.next_index,
                total=outcome.total,
                coins_total=session.coins_total,
                xp_total=session.xp_total,
                message=outcome.message,
                correct=outcome.correct,
                coins_earned=outcome.coins_earned,
                streak=outcome.streak,
            )

    async def totals(self, session_id: str) -> Totals:
        async with self.store.transaction(session_id) as session:
            return tracker.current_totals(session)

    async def apply_reward(self, session_id: str, coins_delta: int = 0, xp_delta: int = 0) -> Totals:
        async with self.store.transaction(session_id) as session:
            tracker.apply_reward(session, coins_delta, xp_delta)
            return tracker.current_totals(session)


session_engine = SessionEngine(default_catalog, build_session_store())
