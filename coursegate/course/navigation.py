"""
Navigation tree read model.

Overlays a learner's lesson statuses and finalized knowledge checks onto
the course definition. The tree carries no lock state; locks are derived
from it by ``coursegate.gating.compute_locks``.
"""
from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field

from coursegate.status import ProgressStatus

from .models import CourseDefinition


@dataclass
class NavLesson:
    slug: str
    title: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED

    @property
    def completed(self) -> bool:
        return self.status == ProgressStatus.COMPLETED


@dataclass
class NavModule:
    slug: str
    title: str
    lessons: list[NavLesson] = field(default_factory=list)
    has_knowledge_check: bool = False
    knowledge_check_completed: bool = False
    status: ProgressStatus = ProgressStatus.NOT_STARTED

    @property
    def all_lessons_completed(self) -> bool:
        return all(lesson.completed for lesson in self.lessons)


@dataclass
class NavTree:
    course_slug: str
    modules: list[NavModule] = field(default_factory=list)

    @property
    def total_lessons(self) -> int:
        return sum(len(m.lessons) for m in self.modules)

    @property
    def completed_lessons(self) -> int:
        return sum(1 for m in self.modules for lesson in m.lessons if lesson.completed)

    def to_dict(self) -> dict:
        return {
            "course_slug": self.course_slug,
            "total_lessons": self.total_lessons,
            "completed_lessons": self.completed_lessons,
            "modules": [
                {
                    "slug": m.slug,
                    "title": m.title,
                    "status": m.status.value,
                    "has_knowledge_check": m.has_knowledge_check,
                    "knowledge_check_completed": m.knowledge_check_completed,
                    "lessons": [
                        {"slug": lesson.slug, "title": lesson.title, "status": lesson.status.value}
                        for lesson in m.lessons
                    ],
                }
                for m in self.modules
            ],
        }


def _module_status(module: NavModule) -> ProgressStatus:
    if module.knowledge_check_completed or (module.lessons and module.all_lessons_completed):
        return ProgressStatus.COMPLETED
    if any(lesson.status != ProgressStatus.NOT_STARTED for lesson in module.lessons):
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


def build_nav_tree(
    course: CourseDefinition,
    lesson_statuses: Mapping[tuple[str, str], ProgressStatus | str],
    completed_kc_modules: Collection[str] = (),
) -> NavTree:
    """
    Build the navigation tree for one learner.

    Args:
        course: Course definition (overrides already applied)
        lesson_statuses: (module_slug, lesson_slug) -> status; missing means not started
        completed_kc_modules: Module slugs whose knowledge check is finalized
    """
    completed_kcs = set(completed_kc_modules)
    tree = NavTree(course_slug=course.slug)
    for module in course.modules:
        nav_module = NavModule(
            slug=module.slug,
            title=module.title,
            has_knowledge_check=module.has_knowledge_check,
            knowledge_check_completed=module.has_knowledge_check and module.slug in completed_kcs,
        )
        for lesson in module.lessons:
            raw = lesson_statuses.get((module.slug, lesson.slug), ProgressStatus.NOT_STARTED)
            nav_module.lessons.append(
                NavLesson(slug=lesson.slug, title=lesson.title, status=ProgressStatus(raw))
            )
        nav_module.status = _module_status(nav_module)
        tree.modules.append(nav_module)
    return tree
