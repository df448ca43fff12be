from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Question:
    lesson_title: str
    prompt: str
    options: tuple[str, ...]
    correct_option_index: int

    def is_correct(self, answer_index: int | None) -> bool:
        return answer_index is not None and answer_index == self.correct_option_index


@dataclass
class Quiz:
    questions: tuple[Question, ...]
    current_index: int = 0
    correct_count: int = 0
    coins_earned: int = 0

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def finished(self) -> bool:
        return self.current_index >= len(self.questions)

    def current(self) -> Question:
        return self.questions[self.current_index]


@dataclass
class Totals:
    coins: int
    xp: int
    streak: int


@dataclass
class Session:
    """Server-held state for one client, owned by the session store."""

    session_id: str
    read_titles: set[str] = field(default_factory=set)
    quiz: Quiz | None = None
    coins_total: int = 0
    xp_total: int = 0
    streak: int = 0
    recent_lessons: list[str] = field(default_factory=list)
    quiz_score: int = 0
    typing_score: int = 0
    coding_score: int = 0
    hint_index: dict[str, int] = field(default_factory=dict)
    last_score_submit: datetime | None = None
    ai_lessons_day: str = ""
    ai_lessons_today: int = 0
    last_seen: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["read_titles"] = sorted(self.read_titles)
        data["last_seen"] = self.last_seen.isoformat()
        data["last_score_submit"] = self.last_score_submit.isoformat() if self.last_score_submit else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Session:
        quiz_data = data.get("quiz")
        quiz = None
        if quiz_data:
            quiz = Quiz(
                questions=tuple(
                    Question(
                        lesson_title=q["lesson_title"],
                        prompt=q["prompt"],
                        options=tuple(q["options"]),
                        correct_option_index=int(q["correct_option_index"]),
                    )
                    for q in quiz_data.get("questions", [])
                ),
                current_index=int(quiz_data.get("current_index", 0)),
                correct_count=int(quiz_data.get("correct_count", 0)),
                coins_earned=int(quiz_data.get("coins_earned", 0)),
            )
        last_submit = data.get("last_score_submit")
        last_seen = data.get("last_seen")
        return cls(
            session_id=data["session_id"],
            read_titles=set(data.get("read_titles", [])),
            quiz=quiz,
            coins_total=int(data.get("coins_total", 0)),
            xp_total=int(data.get("xp_total", 0)),
            streak=int(data.get("streak", 0)),
            recent_lessons=list(data.get("recent_lessons", [])),
            quiz_score=int(data.get("quiz_score", 0)),
            typing_score=int(data.get("typing_score", 0)),
            coding_score=int(data.get("coding_score", 0)),
            hint_index={k: int(v) for k, v in (data.get("hint_index") or {}).items()},
            last_score_submit=datetime.fromisoformat(last_submit) if last_submit else None,
            ai_lessons_day=str(data.get("ai_lessons_day", "")),
            ai_lessons_today=int(data.get("ai_lessons_today", 0)),
            last_seen=datetime.fromisoformat(last_seen) if last_seen else utcnow(),
        )
