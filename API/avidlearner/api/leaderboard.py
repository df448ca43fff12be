from fastapi import APIRouter, Depends, Query

from avidlearner.core.identity import get_session_id
from avidlearner.leaderboard.board import leaderboard
from avidlearner.schemas.leaderboard import (
    LeaderboardEntry,
    SubmitScoreRequest,
    SubmitScoreResponse,
    TypingScoreRequest,
    TypingScoreResponse,
)

router = APIRouter(prefix="/api", tags=["leaderboard"])


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def list_leaderboard(mode: str = "", limit: int | None = Query(default=None, ge=1)):
    return leaderboard.entries(mode, limit)


@router.post("/leaderboard/submit", response_model=SubmitScoreResponse)
async def submit_score(payload: SubmitScoreRequest, session_id: str = Depends(get_session_id)):
    return await leaderboard.submit(session_id, payload)


@router.post("/typing/score", response_model=TypingScoreResponse)
async def typing_score(payload: TypingScoreRequest, session_id: str = Depends(get_session_id)):
    return await leaderboard.record_typing_score(session_id, payload.score)
