"""
Navigation gating resolver.

Derives which lessons and knowledge checks a learner may open from the
course configuration and the learner's navigation tree. Pure: the same
inputs always give the same locks, and nothing is persisted. Navigation
display and server-side access checks both call ``compute_locks``.

Rules (a target is locked if any rule locks it):

- linear: lessons after the first incomplete lesson (in course order) are
  locked; a module's knowledge check is locked until all of that module's
  lessons are completed.
- knowledge-check gate (``require_knowledge_checks``): the first module
  whose knowledge check is not completed locks every lesson and knowledge
  check in all later modules.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from coursegate.course.models import CourseDefinition
from coursegate.course.navigation import NavTree


@dataclass(frozen=True)
class LockState:
    locked_lessons: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    locked_knowledge_checks: frozenset[str] = field(default_factory=frozenset)

    def is_lesson_locked(self, module_slug: str, lesson_slug: str) -> bool:
        return (module_slug, lesson_slug) in self.locked_lessons

    def is_knowledge_check_locked(self, module_slug: str) -> bool:
        return module_slug in self.locked_knowledge_checks

    def to_dict(self) -> dict[str, list]:
        return {
            "locked_lessons": [
                {"module_slug": m, "lesson_slug": lesson} for m, lesson in sorted(self.locked_lessons)
            ],
            "locked_knowledge_checks": sorted(self.locked_knowledge_checks),
        }


def _linear_locks(tree: NavTree, lessons: set, kcs: set) -> None:
    blocked = False
    for module in tree.modules:
        for lesson in module.lessons:
            if blocked:
                lessons.add((module.slug, lesson.slug))
            elif not lesson.completed:
                # first incomplete lesson stays open
                blocked = True
        if module.has_knowledge_check and not module.all_lessons_completed:
            kcs.add(module.slug)


def _knowledge_check_gate_locks(tree: NavTree, lessons: set, kcs: set) -> None:
    gate_idx = next(
        (
            idx
            for idx, module in enumerate(tree.modules)
            if module.has_knowledge_check and not module.knowledge_check_completed
        ),
        None,
    )
    if gate_idx is None:
        return
    for module in tree.modules[gate_idx + 1:]:
        lessons.update((module.slug, lesson.slug) for lesson in module.lessons)
        if module.has_knowledge_check:
            kcs.add(module.slug)


def compute_locks(course: CourseDefinition, tree: NavTree) -> LockState:
    """Compute the locked lessons and knowledge checks for one learner."""
    lessons: set[tuple[str, str]] = set()
    kcs: set[str] = set()
    if course.is_linear:
        _linear_locks(tree, lessons, kcs)
    if course.require_knowledge_checks:
        _knowledge_check_gate_locks(tree, lessons, kcs)
    return LockState(frozenset(lessons), frozenset(kcs))
