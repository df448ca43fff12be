from fastapi import APIRouter, Depends

from avidlearner.catalog.catalog import catalog
from avidlearner.core.identity import get_session_id
from avidlearner.engine.service import session_engine
from avidlearner.schemas.lesson import Lesson, LessonsCatalogResponse

router = APIRouter(prefix="/api", tags=["lessons"])


@router.get("/lessons", response_model=LessonsCatalogResponse)
async def lessons_catalog():
    return LessonsCatalogResponse(categories=catalog.list_categories(), lessons=catalog.lessons_by_category())


@router.get("/random", response_model=Lesson)
async def random_lesson(category: str = "", session_id: str = Depends(get_session_id)):
    return await session_engine.random_lesson(session_id, category)
