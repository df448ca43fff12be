from fastapi import APIRouter

from avidlearner.catalog.catalog import catalog
from avidlearner.core.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "avidlearner-api",
        "lessons": len(catalog),
        "categories": len(catalog.list_categories()),
        "aiEnabled": settings.ai_lessons_enabled,
    }
