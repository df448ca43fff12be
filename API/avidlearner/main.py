import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from avidlearner.ai.generator import lesson_generator
from avidlearner.api.ai import router as ai_router
from avidlearner.api.health import router as health_router
from avidlearner.api.leaderboard import router as leaderboard_router
from avidlearner.api.lessons import router as lessons_router
from avidlearner.api.pro import router as pro_router
from avidlearner.api.session import router as session_router
from avidlearner.catalog.catalog import catalog
from avidlearner.catalog.fetcher import lesson_fetcher
from avidlearner.catalog.loader import load_catalog_files
from avidlearner.core.errors import (
    AvidLearnerError,
    domain_exception_handler,
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from avidlearner.core.identity import session_cookie_middleware
from avidlearner.core.logging import configure_logging
from avidlearner.core.settings import settings
from avidlearner.engine.service import session_engine
from avidlearner.leaderboard.board import leaderboard
from avidlearner.pro.challenges import challenge_service, load_challenges

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="AvidLearner API", version="0.1.0")
app.include_router(health_router)
app.include_router(lessons_router)
app.include_router(session_router)
app.include_router(ai_router)
app.include_router(pro_router)
app.include_router(leaderboard_router)
app.middleware("http")(session_cookie_middleware)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=settings.allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(AvidLearnerError, domain_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
async def on_startup():
    catalog.replace(load_catalog_files(settings.lessons_file, settings.secret_lessons_file))
    try:
        challenge_service.replace(load_challenges(settings.pro_challenges_file))
    except (OSError, ValueError) as exc:
        logger.warning("Pro challenges unavailable: %s", exc)
    leaderboard.load(settings.leaderboard_file)
    if settings.external_lessons_enabled:
        lesson_fetcher.start(catalog, settings.external_lessons_refresh_seconds)
    logger.info(
        "AvidLearner ready: %d lessons, %d challenges, AI %s",
        len(catalog),
        len(challenge_service),
        "enabled" if lesson_generator.config.ai_lessons_enabled else "disabled",
    )


@app.on_event("shutdown")
async def on_shutdown():
    try:
        leaderboard.save()
    except OSError as exc:
        logger.error("Could not persist leaderboard on shutdown: %s", exc)
    await lesson_fetcher.stop()
    await session_engine.store.close()


def run() -> None:
    uvicorn.run(app, host=settings.app_host, port=settings.app_port, log_config=None)
