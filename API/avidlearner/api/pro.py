from fastapi import APIRouter, Depends

from avidlearner.core.identity import get_session_id
from avidlearner.pro.challenges import challenge_service
from avidlearner.schemas.pro import (
    HintRequest,
    HintResponse,
    ProChallengePublic,
    SubmitChallengeRequest,
    SubmitChallengeResponse,
)

router = APIRouter(prefix="/api/prochallenge", tags=["pro"])


@router.get("", response_model=ProChallengePublic)
async def pick_challenge(difficulty: str = "", topic: str = ""):
    return challenge_service.pick(difficulty, topic)


@router.post("/hint", response_model=HintResponse)
async def buy_hint(payload: HintRequest, session_id: str = Depends(get_session_id)):
    return await challenge_service.hint(session_id, payload.id)


@router.post("/submit", response_model=SubmitChallengeResponse)
async def submit_solution(payload: SubmitChallengeRequest, session_id: str = Depends(get_session_id)):
    return await challenge_service.submit(session_id, payload.id, payload.code)
