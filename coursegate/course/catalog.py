"""
Course catalog.

Holds the course definitions a service instance works with. Nothing is
cached at module level: callers build a catalog and pass it in.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from loguru import logger

from coursegate.errors import NotFoundError

from .loader import COURSE_FILE, load_course_directory
from .models import CourseDefinition


class CourseCatalog:
    """Slug-indexed collection of course definitions, in registration order."""

    def __init__(self, courses: Iterable[CourseDefinition] = ()):
        self._courses: dict[str, CourseDefinition] = {}
        for course in courses:
            self.register(course)

    @classmethod
    def from_directory(cls, content_dir: str | Path) -> "CourseCatalog":
        """Load every ``<content_dir>/<course>/course.yaml``."""
        content_dir = Path(content_dir)
        if not content_dir.exists():
            raise FileNotFoundError(f"Content directory not found: {content_dir}")
        catalog = cls()
        for course_dir in sorted(p for p in content_dir.iterdir() if (p / COURSE_FILE).exists()):
            catalog.register(load_course_directory(course_dir))
        logger.info(f"Loaded {len(catalog)} course(s) from {content_dir}")
        return catalog

    def register(self, course: CourseDefinition) -> None:
        if course.slug in self._courses:
            logger.warning(f"Replacing course definition: {course.slug}")
        self._courses[course.slug] = course

    def get(self, course_slug: str) -> CourseDefinition:
        try:
            return self._courses[course_slug]
        except KeyError:
            raise NotFoundError("course", course_slug) from None

    def first(self) -> CourseDefinition | None:
        return next(iter(self._courses.values()), None)

    @property
    def slugs(self) -> list[str]:
        return list(self._courses)

    def __contains__(self, course_slug: object) -> bool:
        return course_slug in self._courses

    def __iter__(self) -> Iterator[CourseDefinition]:
        return iter(self._courses.values())

    def __len__(self) -> int:
        return len(self._courses)
