"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every test gets its own in-memory SQLite database.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from coursegate.course.catalog import CourseCatalog
from coursegate.course.models import CourseDefinition
from coursegate.db.database import build_engine, init_db, make_session_factory
from coursegate.db.store import ProgressStore
from coursegate.service import ProgressService


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (HTTP surface)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


def make_course(
    navigation_mode: str = "open",
    require_knowledge_checks: bool = False,
    min_lesson_time_seconds: int = 0,
) -> CourseDefinition:
    """
    Two-module course.

    basics: lessons welcome, setup; knowledge check q1 (single choice, answer
    "b") and q2 (true/false, answer True).
    advanced: lesson deep-dive; knowledge check q3 (fill-in-blank, "Paris").
    """
    return CourseDefinition.model_validate(
        {
            "slug": "intro",
            "title": "Introduction",
            "navigation_mode": navigation_mode,
            "require_knowledge_checks": require_knowledge_checks,
            "min_lesson_time_seconds": min_lesson_time_seconds,
            "modules": [
                {
                    "slug": "basics",
                    "title": "Basics",
                    "lessons": [
                        {"slug": "welcome", "title": "Welcome"},
                        {"slug": "setup", "title": "Setup"},
                    ],
                    "knowledge_check": {
                        "title": "Basics check",
                        "questions": [
                            {
                                "id": "q1",
                                "type": "multiple-choice-single",
                                "question": "Pick b",
                                "options": [{"id": "a", "text": "A"}, {"id": "b", "text": "B"}],
                                "correct_option": "b",
                                "lesson_link": "/intro/basics/welcome",
                                "lesson_link_label": "Welcome",
                            },
                            {
                                "id": "q2",
                                "type": "true-false",
                                "question": "True?",
                                "correct_answer": True,
                            },
                        ],
                    },
                },
                {
                    "slug": "advanced",
                    "title": "Advanced",
                    "lessons": [{"slug": "deep-dive", "title": "Deep dive"}],
                    "knowledge_check": {
                        "questions": [
                            {
                                "id": "q3",
                                "type": "fill-in-blank",
                                "segments": [
                                    {"type": "text", "value": "The capital of France is "},
                                    {"type": "blank", "value": "Paris"},
                                ],
                            },
                        ],
                    },
                },
            ],
        }
    )


@pytest.fixture
def now():
    """Fixed clock for deterministic timestamps."""
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def later(now):
    return now + timedelta(minutes=5)


@pytest.fixture
def course():
    return make_course()


@pytest.fixture
def linear_course():
    return make_course(navigation_mode="linear")


@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    return ProgressStore(make_session_factory(db_engine))


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, database_url="sqlite://", enforce_min_lesson_time=False)


@pytest.fixture
def catalog(course):
    return CourseCatalog([course])


@pytest.fixture
def service(store, catalog, test_settings):
    return ProgressService(store, catalog, test_settings)


@pytest.fixture
def course_factory():
    """Build the sample course with different gating settings."""
    return make_course
