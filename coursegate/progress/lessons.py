"""
Lesson completion.

A lesson is completed when the learner finishes it or navigates past it.
Completion is idempotent: repeating it neither moves completed_at nor
reports a second transition.
"""
from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger

from coursegate.course.models import CourseDefinition
from coursegate.db.models import LessonProgress
from coursegate.db.store import ProgressStore
from coursegate.errors import InvalidRequestError
from coursegate.status import ProgressStatus


def min_time_remaining(course: CourseDefinition, row: LessonProgress | None) -> int:
    """Seconds still needed before the lesson meets the course's minimum time."""
    spent = row.time_spent_seconds if row is not None else 0
    return max(0, course.min_lesson_time_seconds - spent)


class LessonTracker:
    """Marks lessons completed, optionally enforcing the minimum lesson time."""

    def __init__(self, store: ProgressStore, enforce_min_time: bool = False):
        self.store = store
        self.enforce_min_time = enforce_min_time

    def complete_lesson(
        self,
        course: CourseDefinition,
        user_id: str,
        module_slug: str,
        lesson_slug: str,
        now: datetime | None = None,
    ) -> tuple[LessonProgress, bool]:
        """
        Mark a lesson completed.

        Returns:
            (row, newly_completed)

        Raises:
            NotFoundError: unknown module or lesson
            InvalidRequestError: minimum lesson time enforced and not yet met
        """
        course.get_lesson(module_slug, lesson_slug)

        if self.enforce_min_time and course.min_lesson_time_seconds > 0:
            existing = self.store.get_lesson_progress(user_id, course.slug, module_slug, lesson_slug)
            if existing is None or existing.status != ProgressStatus.COMPLETED.value:
                remaining = min_time_remaining(course, existing)
                if remaining > 0:
                    raise InvalidRequestError(
                        f"Lesson {module_slug}/{lesson_slug} needs {remaining}s more before it can be completed"
                    )

        row, newly_completed = self.store.mark_lesson_completed(
            user_id, course.slug, module_slug, lesson_slug, now or datetime.now(timezone.utc)
        )
        if newly_completed:
            logger.info(f"Lesson completed: {user_id} {course.slug}/{module_slug}/{lesson_slug}")
        return row, newly_completed
