"""
Course definition models.

A course is an ordered list of modules, each an ordered list of lessons
with an optional knowledge check. Order matters: linear gating and
resume positions follow definition order.
"""
from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from coursegate.errors import NotFoundError
from coursegate.knowledge_check.models import KnowledgeCheckDefinition


class NavigationMode(str, Enum):
    """How freely a learner may move through a course."""
    LINEAR = "linear"
    OPEN = "open"


class LessonDefinition(BaseModel):
    slug: str
    title: str = ""
    estimated_duration_minutes: int = Field(default=5, ge=0)


class ModuleDefinition(BaseModel):
    slug: str
    title: str = ""
    objectives: list[str] = Field(default_factory=list)
    lessons: list[LessonDefinition] = Field(default_factory=list)
    knowledge_check: KnowledgeCheckDefinition | None = None

    @field_validator("lessons", mode="before")
    @classmethod
    def _coerce_lesson_slugs(cls, value: Any) -> Any:
        # module.yaml may list bare slugs
        if isinstance(value, list):
            return [{"slug": item} if isinstance(item, str) else item for item in value]
        return value

    @model_validator(mode="after")
    def _unique_lesson_slugs(self) -> "ModuleDefinition":
        slugs = [lesson.slug for lesson in self.lessons]
        if len(set(slugs)) != len(slugs):
            raise ValueError(f"duplicate lesson slug in module {self.slug}")
        return self

    @property
    def has_knowledge_check(self) -> bool:
        return self.knowledge_check is not None

    @property
    def lesson_slugs(self) -> list[str]:
        return [lesson.slug for lesson in self.lessons]


class CourseDefinition(BaseModel):
    """Static course configuration consumed by every component."""

    slug: str
    title: str = ""
    description: str = ""
    navigation_mode: NavigationMode = NavigationMode.OPEN
    require_knowledge_checks: bool = False
    min_lesson_time_seconds: int = Field(default=0, ge=0)
    modules: list[ModuleDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_module_slugs(self) -> "CourseDefinition":
        slugs = [module.slug for module in self.modules]
        if len(set(slugs)) != len(slugs):
            raise ValueError(f"duplicate module slug in course {self.slug}")
        return self

    @property
    def total_lessons(self) -> int:
        return sum(len(module.lessons) for module in self.modules)

    @property
    def is_linear(self) -> bool:
        return self.navigation_mode == NavigationMode.LINEAR

    def get_module(self, module_slug: str) -> ModuleDefinition:
        for module in self.modules:
            if module.slug == module_slug:
                return module
        raise NotFoundError("module", f"{self.slug}/{module_slug}")

    def get_lesson(self, module_slug: str, lesson_slug: str) -> LessonDefinition:
        module = self.get_module(module_slug)
        for lesson in module.lessons:
            if lesson.slug == lesson_slug:
                return lesson
        raise NotFoundError("lesson", f"{self.slug}/{module_slug}/{lesson_slug}")

    def iter_lessons(self) -> Iterator[tuple[ModuleDefinition, LessonDefinition]]:
        """Yield (module, lesson) pairs in definition order."""
        for module in self.modules:
            for lesson in module.lessons:
                yield module, lesson

    def lesson_keys(self) -> set[tuple[str, str]]:
        return {(module.slug, lesson.slug) for module, lesson in self.iter_lessons()}

    def with_overrides(self, overrides: dict[str, Any]) -> "CourseDefinition":
        """Copy of this course with admin setting overrides applied.

        Recognised keys: navigation_mode, ordered_lessons (true means linear),
        require_knowledge_checks, min_lesson_time_seconds. Unknown keys are
        ignored.
        """
        update: dict[str, Any] = {}
        if "navigation_mode" in overrides:
            update["navigation_mode"] = NavigationMode(str(overrides["navigation_mode"]).lower())
        if "ordered_lessons" in overrides:
            update["navigation_mode"] = (
                NavigationMode.LINEAR if _as_bool(overrides["ordered_lessons"]) else NavigationMode.OPEN
            )
        if "require_knowledge_checks" in overrides:
            update["require_knowledge_checks"] = _as_bool(overrides["require_knowledge_checks"])
        if "min_lesson_time_seconds" in overrides:
            update["min_lesson_time_seconds"] = max(0, int(overrides["min_lesson_time_seconds"]))
        if not update:
            return self
        return self.model_copy(update=update)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "on")
