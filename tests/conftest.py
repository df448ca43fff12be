from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
FIXTURES = Path(__file__).resolve().parent / "fixtures"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no outbound AI, judge or lesson-source traffic
# - in-process sessions, leaderboard in a scratch directory
_SCRATCH = Path(tempfile.mkdtemp(prefix="avidlearner-tests-"))
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LESSONS_FILE", str(FIXTURES / "lessons.json"))
os.environ.setdefault("SECRET_LESSONS_FILE", str(FIXTURES / "missing_secret_lessons.json"))
os.environ.setdefault("PRO_CHALLENGES_FILE", str(FIXTURES / "pro_challenges.json"))
os.environ.setdefault("LEADERBOARD_FILE", str(_SCRATCH / "leaderboard.json"))
os.environ.setdefault("SESSION_STORE_BACKEND", "memory")
os.environ.setdefault("AI_LESSONS_ENABLED", "false")
os.environ.setdefault("EXTERNAL_LESSONS_ENABLED", "false")
os.environ.setdefault("JUDGE_URL", "")

from avidlearner.catalog.catalog import LessonCatalog  # noqa: E402
from avidlearner.catalog.loader import load_lessons  # noqa: E402
from avidlearner.core.resilience import reset_breakers  # noqa: E402
from avidlearner.core.settings import settings  # noqa: E402
from avidlearner.engine.service import session_engine  # noqa: E402
from avidlearner.main import app  # noqa: E402


@pytest.fixture
def fixture_lessons():
    return load_lessons(FIXTURES / "lessons.json")


@pytest.fixture
def lesson_catalog(fixture_lessons) -> LessonCatalog:
    return LessonCatalog(fixture_lessons)


@pytest.fixture(autouse=True)
def _fresh_state():
    reset_breakers()
    session_engine.store.clear()
    Path(settings.leaderboard_file).unlink(missing_ok=True)
    yield
    session_engine.store.clear()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc
