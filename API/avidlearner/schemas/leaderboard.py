from datetime import datetime

from avidlearner.schemas.base import CamelModel


class LeaderboardEntry(CamelModel):
    name: str
    score: int
    mode: str
    date: datetime
    category: str = ""


class SubmitScoreRequest(CamelModel):
    name: str = ""
    score: int = 0
    mode: str = ""
    category: str = ""


class SubmitScoreResponse(CamelModel):
    success: bool = True
    rank: int
    message: str


class TypingScoreRequest(CamelModel):
    score: int


class TypingScoreResponse(CamelModel):
    success: bool = True
    score: int
