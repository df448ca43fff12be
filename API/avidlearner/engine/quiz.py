"""Quiz builder and grader.

A session moves NoQuiz -> InProgress -> NoQuiz: `start_quiz` builds the
question list, each `answer` grades one question and advances, and the answer
to the last question finalizes the quiz in the same call.
"""
from __future__ import annotations

import json
import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.core.errors import NoActiveQuiz, NoQuizAvailable
from avidlearner.core.logging import DOMAIN_QUIZ, get_domain_logger
from avidlearner.engine import tracker
from avidlearner.engine.models import Question, Quiz, Session
from avidlearner.schemas.lesson import Lesson

logger = get_domain_logger(__name__, DOMAIN_QUIZ)

OPTION_COUNT = 4
FILLER_OPTIONS = (
    "This option does not apply to the concept.",
    "None of these statements describes the concept.",
    "This describes an unrelated practice.",
    "This statement is intentionally incorrect.",
)


@dataclass(frozen=True)
class AnswerOutcome:
    correct: bool
    coins_earned: int
    streak: int
    correct_count: int
    total: int
    next_question: Question | None
    next_index: int
    quiz_coins_earned: int
    xp_earned: int
    message: str

    @property
    def finished(self) -> bool:
        return self.next_question is None


def _as_rng(rng: random.Random | int | None) -> random.Random:
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def question_prompt(title: str) -> str:
    return f"Which statement best matches the concept '{title}'?"


def build_question(lesson: Lesson, catalog_lessons: Sequence[Lesson], rng: random.Random | int | None = None) -> Question:
    """Build one multiple-choice question for `lesson`.

    The correct option is the lesson's explanation (or its text); decoys come
    from other lessons and are never duplicates of each other or of the answer.
    Passing the same seed with the same catalog reproduces the option order.
    """
    rng = _as_rng(rng)
    correct = lesson.answer_text() or lesson.title
    seen = {correct}
    candidates: list[str] = []
    for other in catalog_lessons:
        if other.title == lesson.title:
            continue
        text = other.answer_text()
        if text and text not in seen:
            seen.add(text)
            candidates.append(text)

    decoys = rng.sample(candidates, min(OPTION_COUNT - 1, len(candidates)))
    for filler in FILLER_OPTIONS:
        if len(decoys) >= OPTION_COUNT - 1:
            break
        if filler not in seen:
            seen.add(filler)
            decoys.append(filler)

    options = [correct, *decoys]
    rng.shuffle(options)
    return Question(
        lesson_title=lesson.title,
        prompt=question_prompt(lesson.title),
        options=tuple(options),
        correct_option_index=options.index(correct),
    )


def build_questions(
    session: Session,
    catalog: LessonCatalog,
    rng: random.Random | int | None = None,
    fallback_size: int = 10,
) -> list[Question]:
    rng = _as_rng(rng)
    pool = [catalog.find_by_title(title) for title in sorted(session.read_titles)]
    lessons = [lesson for lesson in pool if lesson is not None]
    if not lessons:
        if session.read_titles:
            logger.warning("Read-set of session %s has no catalog lessons left; using fallback sample", session.session_id)
        lessons = catalog.sample(max(1, fallback_size), rng=rng)
    if not lessons:
        raise NoQuizAvailable("no lessons available to build a quiz")

    everything = catalog.all_lessons()
    questions = [build_question(lesson, everything, rng) for lesson in lessons]
    rng.shuffle(questions)
    return questions


def _log_transition(session: Session, from_state: str, to_state: str, event: str, payload: dict | None = None) -> None:
    logger.info(
        json.dumps(
            {
                "type": "quiz_transition",
                "session_id": session.session_id,
                "from_state": from_state,
                "to_state": to_state,
                "event": event,
                "payload": payload or {},
                "ts": datetime.now(timezone.utc).isoformat(),
            }
        )
    )


def start_quiz(
    session: Session,
    catalog: LessonCatalog,
    rng: random.Random | int | None = None,
    fallback_size: int = 10,
) -> Question:
    """Build a quiz from the read-set (replacing any quiz in progress) and return its first question."""
    from_state = "in_progress" if session.quiz is not None else "no_quiz"
    questions = build_questions(session, catalog, rng, fallback_size)
    session.quiz = Quiz(questions=tuple(questions))
    session.quiz_score = 0
    _log_transition(
        session,
        from_state,
        "in_progress",
        "quiz_started",
        {"total": len(questions), "from_read_set": bool(session.read_titles)},
    )
    return session.quiz.current()


def current_question(session: Session) -> tuple[Question, int, int]:
    """Active question with its 1-based index and the quiz length."""
    quiz = session.quiz
    if quiz is None or quiz.finished:
        raise NoActiveQuiz("no active quiz")
    return quiz.current(), quiz.current_index + 1, quiz.total


def normalize_answer_index(raw) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    return None


def completion_xp(correct_count: int, total: int, max_xp: int) -> int:
    if total <= 0:
        return 0
    return max(0, max_xp) * correct_count // total


def completion_message(correct_count: int, total: int, xp_earned: int) -> str:
    score = f"{correct_count}/{total} correct · +{xp_earned} XP"
    if correct_count == total:
        return f"Perfect score! {score}"
    if correct_count * 2 >= total:
        return f"Nice work! {score}"
    return f"Keep studying! {score}"


def answer(session: Session, raw_answer_index, coins_per_correct: int, max_completion_xp: int) -> AnswerOutcome:
    """Grade the current question, advance, and finalize after the last one.

    Out-of-range or non-integer answers are graded wrong rather than rejected.
    """
    quiz = session.quiz
    if quiz is None or quiz.finished:
        raise NoActiveQuiz("no active quiz")

    question = quiz.current()
    answer_index = normalize_answer_index(raw_answer_index)
    in_range = answer_index is not None and 0 <= answer_index < len(question.options)
    correct = in_range and question.is_correct(answer_index)

    coins_earned = 0
    if correct:
        quiz.correct_count += 1
        session.quiz_score = quiz.correct_count
        tracker.on_correct_answer(session)
        coins_earned = max(0, coins_per_correct)
        tracker.apply_reward(session, coins_earned, 0)
        quiz.coins_earned += coins_earned
    else:
        tracker.on_wrong_answer(session)
    quiz.current_index += 1

    if not quiz.finished:
        message = f"Correct! +{coins_earned} coins" if correct else "Not quite. Keep going!"
        return AnswerOutcome(
            correct=correct,
            coins_earned=coins_earned,
            streak=session.streak,
            correct_count=quiz.correct_count,
            total=quiz.total,
            next_question=quiz.current(),
            next_index=quiz.current_index + 1,
            quiz_coins_earned=quiz.coins_earned,
            xp_earned=0,
            message=message,
        )

    xp_earned = completion_xp(quiz.correct_count, quiz.total, max_completion_xp)
    tracker.apply_reward(session, 0, xp_earned)
    session.quiz = None
    session.read_titles.clear()
    _log_transition(
        session,
        "in_progress",
        "no_quiz",
        "quiz_finished",
        {"correct": quiz.correct_count, "total": quiz.total, "xp_earned": xp_earned},
    )
    return AnswerOutcome(
        correct=correct,
        coins_earned=coins_earned,
        streak=session.streak,
        correct_count=quiz.correct_count,
        total=quiz.total,
        next_question=None,
        next_index=quiz.total,
        quiz_coins_earned=quiz.coins_earned,
        xp_earned=xp_earned,
        message=completion_message(quiz.correct_count, quiz.total, xp_earned),
    )
