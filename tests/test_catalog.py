from __future__ import annotations

import json
import random

import httpx
import pytest

from avidlearner.catalog.catalog import LessonCatalog
from avidlearner.catalog.fetcher import (
    ExternalLessonFetcher,
    categorize_devto_article,
    devto_article_to_lesson,
    extract_use_cases,
    parse_github_markdown,
    truncate,
)
from avidlearner.catalog.loader import load_catalog_files, load_lessons
from avidlearner.core.errors import NotFound
from avidlearner.schemas.lesson import Lesson

PRIMER = """# The System Design Primer

## Index of system design topics

Skip me.

## Performance vs scalability

A service is scalable if it results in increased performance in a manner proportional to resources added.

If you have a performance problem, your system is slow for a single user.

## Contributing

Skip me too.

## Latency vs throughput

Latency is the time to perform some action.
"""


def test_loader_skips_invalid_entries_and_stamps_source(fixture_lessons):
    assert len(fixture_lessons) == 6
    assert {lesson.source for lesson in fixture_lessons} == {"local"}
    caching = next(lesson for lesson in fixture_lessons if lesson.title == "Caching")
    assert caching.use_cases == ("Read-heavy APIs",)


def test_loader_rejects_non_array(tmp_path):
    path = tmp_path / "lessons.json"
    path.write_text(json.dumps({"title": "not a list"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_lessons(path)


def test_loader_missing_core_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_lessons(tmp_path / "nope.json")


def test_catalog_files_merge_optional_secret_lessons(tmp_path):
    core = tmp_path / "lessons.json"
    core.write_text(json.dumps([{"title": "Caching", "category": "system-design", "text": "t"}]), encoding="utf-8")
    secret = tmp_path / "secret.json"
    secret.write_text(json.dumps([{"title": "Bloom Filters", "category": "data-structures", "text": "t"}]), encoding="utf-8")

    lessons = load_catalog_files(core, secret)
    assert [(lesson.title, lesson.source) for lesson in lessons] == [
        ("Caching", "local"),
        ("Bloom Filters", "secret-knowledge"),
    ]
    assert len(load_catalog_files(core, tmp_path / "absent.json")) == 1


def test_categories_are_sorted_and_deduplicated(lesson_catalog):
    assert lesson_catalog.list_categories() == ["databases", "resilience", "system-design"]
    assert len(lesson_catalog) == 6


def test_duplicate_title_within_category_is_dropped():
    first = Lesson(title="Caching", category="system-design", text="first")
    again = Lesson(title="Caching", category="system-design", text="second")
    other = Lesson(title="Caching", category="databases", text="third")
    catalog = LessonCatalog([first, again, other])
    assert len(catalog) == 2
    assert catalog.find_by_title("Caching").text == "first"


def test_get_lesson_filters_by_category_and_source(lesson_catalog):
    rng = random.Random(3)
    for _ in range(20):
        assert lesson_catalog.get_lesson("databases", rng=rng).category == "databases"
    assert lesson_catalog.get_lesson("any", "all", rng=rng).source == "local"
    with pytest.raises(NotFound):
        lesson_catalog.get_lesson("astrology")
    with pytest.raises(NotFound):
        lesson_catalog.get_lesson("databases", "github")


def test_get_lesson_avoids_recent_titles_but_never_empties_pool(lesson_catalog):
    rng = random.Random(11)
    for _ in range(20):
        picked = lesson_catalog.get_lesson("databases", rng=rng, recent=["Sharding"], repeat_window=100)
        assert picked.title == "Indexes"

    single = LessonCatalog([Lesson(title="Only", category="solo", text="t")])
    assert single.get_lesson("solo", recent=["Only"], repeat_window=100).title == "Only"


def test_replace_and_add_lesson(lesson_catalog):
    generated = Lesson(title="Event Sourcing", category="architecture", source="ai", text="t")
    assert lesson_catalog.add_lesson(generated) is True
    assert lesson_catalog.find_by_title("Event Sourcing") == generated
    assert "architecture" in lesson_catalog.list_categories()

    clash = Lesson(title="Caching", category="architecture", source="ai", text="t")
    assert lesson_catalog.add_lesson(clash) is False
    assert lesson_catalog.find_by_title("Caching").category == "system-design"
    assert [lesson.title for lesson in lesson_catalog.filter("architecture")] == ["Event Sourcing"]

    lesson_catalog.replace([Lesson(title="Fresh", text="t")])
    assert lesson_catalog.find_by_title("Event Sourcing") is None
    assert lesson_catalog.list_categories() == ["general"]


def test_parse_github_markdown_sections():
    lessons = parse_github_markdown(PRIMER)
    assert [lesson.title for lesson in lessons] == ["Performance vs scalability", "Latency vs throughput"]
    first = lessons[0]
    assert first.source == "github"
    assert first.category == "system-design"
    assert first.text.startswith("A service is scalable")
    assert first.explain.startswith("If you have a performance problem")
    assert lessons[1].explain == ""


def test_truncate_adds_ellipsis():
    assert truncate("short", 10) == "short"
    assert truncate("x" * 20, 10) == "xxxxxxx..."


def test_devto_article_mapping():
    article = {
        "title": "Designing APIs",
        "description": "Notes\n- Version your endpoints\n* Paginate lists",
        "url": "https://dev.to/x/designing-apis",
        "tag_list": ["webdev", "API"],
    }
    lesson = devto_article_to_lesson(article)
    assert lesson.source == "devto"
    assert lesson.category == "apis"
    assert lesson.use_cases == ("Version your endpoints", "Paginate lists")
    assert lesson.explain == "Read more at: https://dev.to/x/designing-apis"
    assert devto_article_to_lesson({"title": "  "}) is None
    assert categorize_devto_article(["python"]) == "general"
    assert extract_use_cases("no bullets here") == ["General software engineering", "System architecture"]


@pytest.mark.asyncio
async def test_fetch_all_merges_sources_and_survives_a_failing_one(lesson_catalog):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "raw.githubusercontent.com":
            return httpx.Response(200, text=PRIMER)
        if request.url.params.get("tag") == "architecture":
            return httpx.Response(200, json=[{"title": "Hexagonal Architecture", "description": "ports", "tags": "architecture"}])
        return httpx.Response(404, json={"error": "not found"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        fetcher = ExternalLessonFetcher(client, devto_pause_seconds=0)
        added = await fetcher.refresh(lesson_catalog)

    assert added == 3
    assert len(lesson_catalog) == 9
    assert lesson_catalog.find_by_title("Hexagonal Architecture").category == "system-design"
    assert lesson_catalog.find_by_title("Caching") is not None
