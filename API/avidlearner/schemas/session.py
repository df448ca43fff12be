from typing import Any, Literal

from pydantic import Field

from avidlearner.schemas.base import CamelModel


class AddLessonRequest(CamelModel):
    title: str = ""


class AddLessonResponse(CamelModel):
    success: bool = True
    added: bool
    count: int
    read_titles: list[str]
    message: str


class QuizQuestionResponse(CamelModel):
    """One question as shown to the client; never carries the correct index."""

    stage: Literal["quiz"] = "quiz"
    question: str
    options: list[str]
    index: int
    total: int
    coins_total: int
    xp_total: int
    message: str = ""
    correct: bool | None = None
    coins_earned: int | None = None
    streak: int | None = None


class QuizResultResponse(CamelModel):
    stage: Literal["result"] = "result"
    correct: bool
    correct_count: int
    total: int
    coins_earned: int
    coins_total: int
    xp_earned: int
    xp_total: int
    streak: int
    message: str


class AnswerRequest(CamelModel):
    # Anything that is not an in-range integer is graded as a wrong answer.
    answer_index: Any = Field(default=None)


class TotalsResponse(CamelModel):
    coins: int
    xp: int
    streak: int
