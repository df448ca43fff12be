import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from avidlearner.core.logging import DOMAIN_CATALOG, get_domain_logger
from avidlearner.schemas.lesson import Lesson, LessonSource

logger = get_domain_logger(__name__, DOMAIN_CATALOG)

_lesson_list = TypeAdapter(list[dict])


def load_lessons(path: str | Path, source: LessonSource = "local") -> list[Lesson]:
    """Load a JSON array of lessons, stamping each with `source`.

    Raises FileNotFoundError for a missing file and ValueError for malformed
    content; entries that fail validation are skipped with a warning.
    """
    file = Path(path)
    try:
        raw = _lesson_list.validate_python(json.loads(file.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"{file} is not a JSON array of lesson objects") from exc

    lessons: list[Lesson] = []
    for position, item in enumerate(raw):
        try:
            lessons.append(Lesson.model_validate({**item, "source": source}))
        except ValidationError as exc:
            logger.warning("Skipping lesson #%d in %s: %s", position, file, exc.errors()[0].get("msg"))
    return lessons


def load_catalog_files(lessons_file: str | Path, secret_lessons_file: str | Path | None = None) -> list[Lesson]:
    """Core lessons are required; secret-knowledge lessons are optional."""
    lessons = load_lessons(lessons_file, "local")
    logger.info("Loaded %d core lessons from %s", len(lessons), lessons_file)
    if secret_lessons_file and Path(secret_lessons_file).exists():
        try:
            secret = load_lessons(secret_lessons_file, "secret-knowledge")
        except ValueError as exc:
            logger.warning("Ignoring secret knowledge lessons: %s", exc)
        else:
            logger.info("Loaded %d lessons from %s", len(secret), secret_lessons_file)
            lessons.extend(secret)
    return lessons
