"""In-memory lesson catalog: category index, filtered random picks, title lookup."""
from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from threading import Lock

from avidlearner.core.errors import NotFound
from avidlearner.core.logging import DOMAIN_CATALOG, get_domain_logger
from avidlearner.schemas.lesson import Lesson

logger = get_domain_logger(__name__, DOMAIN_CATALOG)

ANY_CATEGORY = "any"
ALL_SOURCES = "all"


@dataclass(frozen=True)
class _Index:
    by_category: dict[str, tuple[Lesson, ...]] = field(default_factory=dict)
    by_title: dict[str, Lesson] = field(default_factory=dict)
    categories: tuple[str, ...] = ()
    lessons: tuple[Lesson, ...] = ()


def _build_index(lessons: Iterable[Lesson]) -> _Index:
    by_category: dict[str, list[Lesson]] = {}
    by_title: dict[str, Lesson] = {}
    seen: set[tuple[str, str]] = set()
    ordered: list[Lesson] = []
    for lesson in lessons:
        key = (lesson.category, lesson.title)
        if key in seen:
            continue
        seen.add(key)
        ordered.append(lesson)
        by_category.setdefault(lesson.category, []).append(lesson)
        by_title.setdefault(lesson.title, lesson)
    return _Index(
        by_category={cat: tuple(items) for cat, items in by_category.items()},
        by_title=by_title,
        categories=tuple(sorted(by_category)),
        lessons=tuple(ordered),
    )


def _recent_titles(recent: Sequence[str], limit: int) -> set[str]:
    avoid: set[str] = set()
    for title in reversed(recent):
        if len(avoid) >= limit:
            break
        if title:
            avoid.add(title)
    return avoid


class LessonCatalog:
    """Shared, read-mostly lesson catalog.

    Readers work on an immutable index snapshot; writers rebuild the index under
    a lock and swap it in, so a refresh never exposes a half-built catalog.
    """

    def __init__(self, lessons: Iterable[Lesson] = ()):
        self._lock = Lock()
        self._base: list[Lesson] = list(lessons)
        self._external: list[Lesson] = []
        self._generated: list[Lesson] = []
        self._index = _build_index(self._base)

    def _rebuild(self) -> None:
        self._index = _build_index([*self._base, *self._external, *self._generated])

    def replace(self, lessons: Iterable[Lesson]) -> None:
        with self._lock:
            self._base = list(lessons)
            self._external = []
            self._generated = []
            self._rebuild()
        logger.info("Catalog loaded: %d lessons in %d categories", len(self), len(self._index.categories))

    def set_external(self, lessons: Iterable[Lesson]) -> None:
        with self._lock:
            self._external = list(lessons)
            self._rebuild()
        logger.info("Catalog refreshed: %d lessons total (%d external)", len(self), len(self._external))

    def add_lesson(self, lesson: Lesson) -> bool:
        """Append a generated lesson; titles are lookup keys, so a taken title is refused."""
        with self._lock:
            if lesson.title in self._index.by_title:
                return False
            self._generated.append(lesson)
            self._rebuild()
        return True

    def __len__(self) -> int:
        return len(self._index.lessons)

    def list_categories(self) -> list[str]:
        return list(self._index.categories)

    def lessons_by_category(self) -> dict[str, list[Lesson]]:
        return {cat: list(items) for cat, items in self._index.by_category.items()}

    def all_lessons(self) -> list[Lesson]:
        return list(self._index.lessons)

    def find_by_title(self, title: str) -> Lesson | None:
        return self._index.by_title.get(title)

    def filter(self, category: str = "", source: str = "") -> list[Lesson]:
        index = self._index
        if not category or category.lower() == ANY_CATEGORY:
            pool = list(index.lessons)
        else:
            pool = list(index.by_category.get(category, ()))
        if source and source.lower() != ALL_SOURCES:
            pool = [lesson for lesson in pool if lesson.source == source]
        return pool

    def get_lesson(
        self,
        category: str = "",
        source: str = "",
        *,
        rng: random.Random | None = None,
        recent: Sequence[str] = (),
        repeat_window: int = 0,
    ) -> Lesson:
        """Uniform random pick among lessons matching the filters.

        Up to `repeat_window` of the most recent distinct titles in `recent` are
        skipped, always leaving at least one candidate.
        """
        pool = self.filter(category, source)
        if not pool:
            logger.info("No lesson for category=%r source=%r", category, source)
            raise NotFound(f"no lessons for category '{category or ANY_CATEGORY}' and source '{source or ALL_SOURCES}'")
        avoid = _recent_titles(recent, min(repeat_window, len(pool) - 1))
        if avoid:
            fresh = [lesson for lesson in pool if lesson.title not in avoid]
            if fresh:
                pool = fresh
        return (rng or random).choice(pool)

    def sample(self, size: int, *, rng: random.Random | None = None) -> list[Lesson]:
        lessons = list(self._index.lessons)
        return (rng or random).sample(lessons, min(size, len(lessons)))


catalog = LessonCatalog()
