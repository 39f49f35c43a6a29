"""
Course completion.

CourseProgress is a cache derived from lesson rows and finalized
knowledge checks. ``CompletionAggregator.recompute`` rebuilds it from
scratch; it runs after every lesson change and every knowledge check
finalize for that (user, course).
"""
from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import datetime, timezone

from loguru import logger

from coursegate.course.models import CourseDefinition
from coursegate.db.store import ProgressStore
from coursegate.status import ProgressStatus


def derive_course_status(
    course: CourseDefinition,
    lesson_statuses: Mapping[tuple[str, str], ProgressStatus | str],
    completed_kc_modules: Collection[str],
    has_activity: bool = False,
) -> ProgressStatus:
    """
    Course status from lesson statuses and finalized knowledge checks.

    Completed iff the course has lessons, every lesson is completed and
    every module with a knowledge check has a finalized attempt. In
    progress iff any lesson has recorded progress (or ``has_activity``).
    """
    completed_kcs = set(completed_kc_modules)
    statuses = {key: ProgressStatus(value) for key, value in lesson_statuses.items()}

    if course.total_lessons > 0:
        lessons_done = all(
            statuses.get((module.slug, lesson.slug)) == ProgressStatus.COMPLETED
            for module, lesson in course.iter_lessons()
        )
        kcs_done = all(
            module.slug in completed_kcs for module in course.modules if module.has_knowledge_check
        )
        if lessons_done and kcs_done:
            return ProgressStatus.COMPLETED

    if has_activity or any(status != ProgressStatus.NOT_STARTED for status in statuses.values()):
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


class CompletionAggregator:
    """Rebuilds the cached CourseProgress row for one learner."""

    def __init__(self, store: ProgressStore):
        self.store = store

    def recompute(self, course: CourseDefinition, user_id: str, now: datetime | None = None) -> bool:
        """
        Recompute course status and total time.

        Returns:
            True only for the call that moved the course to completed
        """
        lesson_keys = course.lesson_keys()
        rows = [
            row
            for row in self.store.list_lesson_progress(course.slug, [user_id])
            if (row.module_slug, row.lesson_slug) in lesson_keys
        ]
        lesson_statuses = {(row.module_slug, row.lesson_slug): row.status for row in rows}
        completed_kcs = self.store.completed_kc_modules(user_id, course.slug)
        total_time = sum(row.time_spent_seconds for row in rows)

        status = derive_course_status(
            course,
            lesson_statuses,
            completed_kcs,
            has_activity=total_time > 0 or bool(completed_kcs),
        )
        _, completed_now = self.store.save_course_progress(
            user_id, course.slug, status, total_time, now or datetime.now(timezone.utc)
        )
        if completed_now:
            logger.info(f"Course completed: {user_id} {course.slug} ({total_time}s)")
        return completed_now
