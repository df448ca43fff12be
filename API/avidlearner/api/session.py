from fastapi import APIRouter, Depends

from avidlearner.core.identity import get_session_id
from avidlearner.engine.service import session_engine
from avidlearner.schemas.lesson import LessonStageResponse
from avidlearner.schemas.session import (
    AddLessonRequest,
    AddLessonResponse,
    AnswerRequest,
    QuizQuestionResponse,
    QuizResultResponse,
    TotalsResponse,
)

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/lesson", response_model=LessonStageResponse, response_model_exclude_none=True)
async def session_lesson(category: str = "", source: str = "", session_id: str = Depends(get_session_id)):
    return await session_engine.get_lesson(session_id, category, source)


@router.post("/add", response_model=AddLessonResponse)
async def add_lesson(payload: AddLessonRequest, session_id: str = Depends(get_session_id)):
    return await session_engine.mark_read(session_id, payload.title)


@router.post("/startQuiz", response_model=QuizQuestionResponse, response_model_exclude_none=True)
async def start_quiz(session_id: str = Depends(get_session_id)):
    return await session_engine.start_quiz(session_id)


@router.get("/quiz", response_model=QuizQuestionResponse, response_model_exclude_none=True)
async def current_quiz(session_id: str = Depends(get_session_id)):
    return await session_engine.current_quiz(session_id)


@router.post(
    "/answer",
    response_model=QuizQuestionResponse | QuizResultResponse,
    response_model_exclude_none=True,
)
async def answer(payload: AnswerRequest, session_id: str = Depends(get_session_id)):
    return await session_engine.answer(session_id, payload.answer_index)


@router.get("/totals", response_model=TotalsResponse)
async def totals(session_id: str = Depends(get_session_id)):
    current = await session_engine.totals(session_id)
    return TotalsResponse(coins=current.coins, xp=current.xp, streak=current.streak)
