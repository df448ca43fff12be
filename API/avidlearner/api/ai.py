from fastapi import APIRouter, Depends

from avidlearner.ai.generator import lesson_generator
from avidlearner.core.identity import get_session_id
from avidlearner.schemas.lesson import AIConfigResponse, GenerateLessonRequest, LessonStageResponse

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.get("/config", response_model=AIConfigResponse)
async def ai_config():
    return lesson_generator.describe()


@router.post("/generate", response_model=LessonStageResponse, response_model_exclude_none=True)
async def generate_lesson(payload: GenerateLessonRequest, session_id: str = Depends(get_session_id)):
    return await lesson_generator.generate(session_id, payload.category, payload.topic)
