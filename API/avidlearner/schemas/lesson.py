from typing import Literal

from pydantic import ConfigDict, Field, field_validator

from avidlearner.schemas.base import CamelModel

LessonSource = Literal["local", "github", "secret-knowledge", "devto", "ai"]


class Lesson(CamelModel):
    """Immutable catalog entry shared by every session."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    category: str = "general"
    source: LessonSource = "local"
    text: str = ""
    explain: str = ""
    use_cases: tuple[str, ...] = ()
    tips: tuple[str, ...] = ()

    @field_validator("use_cases", "tips", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return () if value is None else value

    def answer_text(self) -> str:
        """Statement that identifies this lesson in a quiz question."""
        return self.explain.strip() or self.text.strip()


class LessonsCatalogResponse(CamelModel):
    categories: list[str]
    lessons: dict[str, list[Lesson]]


class LessonStageResponse(CamelModel):
    stage: Literal["lesson"] = "lesson"
    lesson: Lesson
    coins_total: int | None = None
    xp_total: int | None = None
    message: str | None = None


class GenerateLessonRequest(CamelModel):
    category: str = ""
    topic: str = ""


class AIConfigResponse(CamelModel):
    ai_enabled: bool
    provider: str
    model: str
    max_per_day: int
