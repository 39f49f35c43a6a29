"""
Progress service.

The operation surface of the engine. Wires the store, the course catalog
and the four components together, applies admin course-setting overrides
and triggers the course completion recompute after every change that
can affect it.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from config import Settings, get_settings
from coursegate.analytics.completion import CompletionAggregator
from coursegate.analytics.dashboard import DashboardAggregator, DashboardMetrics, UserCourseAnalytics
from coursegate.course.catalog import CourseCatalog
from coursegate.course.models import CourseDefinition
from coursegate.course.navigation import NavTree, build_nav_tree
from coursegate.db.models import LessonProgress
from coursegate.db.store import ProgressStore
from coursegate.errors import InvalidRequestError
from coursegate.gating.resolver import LockState, compute_locks
from coursegate.knowledge_check.engine import (
    DraftAnswerResult,
    KnowledgeCheckEngine,
    KnowledgeCheckResult,
    SessionState,
    SubmittedAnswer,
)
from coursegate.progress.heartbeat import HeartbeatAggregator
from coursegate.progress.lessons import LessonTracker, min_time_remaining
from coursegate.rounding import percent
from coursegate.status import ProgressStatus

COURSE_SETTING_KEYS = ("navigation_mode", "ordered_lessons", "require_knowledge_checks", "min_lesson_time_seconds")


@dataclass
class LessonAccess:
    locked: bool
    min_time_remaining_seconds: int


@dataclass
class LessonCompletion:
    module_slug: str
    lesson_slug: str
    newly_completed: bool
    course_completed: bool


@dataclass
class LessonProgressEntry:
    module_slug: str
    lesson_slug: str
    status: str
    time_spent_seconds: int
    active_time_seconds: int
    max_scroll_depth: int
    first_viewed_at: datetime | None
    completed_at: datetime | None


@dataclass
class KnowledgeCheckSummary:
    module_slug: str
    total_questions: int
    correct_answers: int
    score: int
    attempted_at: datetime | None


@dataclass
class CourseProgressView:
    course_slug: str
    status: str
    current_module_slug: str | None = None
    current_lesson_slug: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_time_seconds: int = 0
    lessons: list[LessonProgressEntry] = field(default_factory=list)
    knowledge_checks: list[KnowledgeCheckSummary] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ProgressService:
    """Facade over the progress and gating engine."""

    def __init__(self, store: ProgressStore, catalog: CourseCatalog, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.store = store
        self.catalog = catalog
        self.completion = CompletionAggregator(store)
        self.heartbeats = HeartbeatAggregator(store, self.settings.heartbeat_max_delta_seconds)
        self.lessons = LessonTracker(store, self.settings.enforce_min_lesson_time)
        self.knowledge_checks = KnowledgeCheckEngine(store, self.completion)
        self.dashboard = DashboardAggregator(store, catalog)

    # ========================================
    # Course resolution
    # ========================================

    def get_course(self, course_slug: str) -> CourseDefinition:
        """Course definition with admin overrides applied."""
        course = self.catalog.get(course_slug)
        overrides = self.store.get_settings_with_prefix(f"course.{course_slug}.")
        if not overrides:
            return course
        try:
            return course.with_overrides(overrides)
        except ValueError as e:
            logger.warning(f"Ignoring invalid settings for course {course_slug}: {e}")
            return course

    def _lesson_statuses(self, course: CourseDefinition, user_id: str) -> dict[tuple[str, str], str]:
        return {
            (row.module_slug, row.lesson_slug): row.status
            for row in self.store.list_lesson_progress(course.slug, [user_id])
        }

    # ========================================
    # Lesson progress
    # ========================================

    def apply_heartbeat(
        self,
        user_id: str,
        course_slug: str,
        module_slug: str,
        lesson_slug: str,
        total_delta_seconds: float,
        active_delta_seconds: float | None = None,
        scroll_depth: float | None = None,
        now: datetime | None = None,
    ) -> LessonProgress:
        """Record a heartbeat, then refresh the learner's position and course status."""
        now = now or datetime.now(timezone.utc)
        course = self.get_course(course_slug)
        course.get_lesson(module_slug, lesson_slug)

        row = self.heartbeats.apply_heartbeat(
            user_id, course.slug, module_slug, lesson_slug,
            total_delta_seconds, active_delta_seconds, scroll_depth, now,
        )
        self.store.set_current_position(user_id, course.slug, module_slug, lesson_slug, now)
        self.completion.recompute(course, user_id, now)
        return row

    def complete_lesson(
        self, user_id: str, course_slug: str, module_slug: str, lesson_slug: str, now: datetime | None = None
    ) -> LessonCompletion:
        now = now or datetime.now(timezone.utc)
        course = self.get_course(course_slug)
        _, newly_completed = self.lessons.complete_lesson(course, user_id, module_slug, lesson_slug, now)
        self.store.set_current_position(user_id, course.slug, module_slug, lesson_slug, now)
        course_completed = self.completion.recompute(course, user_id, now)
        return LessonCompletion(module_slug, lesson_slug, newly_completed, course_completed)

    def check_lesson_access(
        self, user_id: str, course_slug: str, module_slug: str, lesson_slug: str
    ) -> LessonAccess:
        """Whether a lesson is locked and how much time it still needs."""
        course = self.get_course(course_slug)
        course.get_lesson(module_slug, lesson_slug)
        _, locks = self.get_navigation(user_id, course_slug, course=course)
        row = self.store.get_lesson_progress(user_id, course.slug, module_slug, lesson_slug)
        remaining = 0
        if row is None or row.status != ProgressStatus.COMPLETED.value:
            remaining = min_time_remaining(course, row)
        return LessonAccess(
            locked=locks.is_lesson_locked(module_slug, lesson_slug),
            min_time_remaining_seconds=remaining,
        )

    # ========================================
    # Knowledge checks
    # ========================================

    def save_draft_answer(
        self, user_id: str, course_slug: str, module_slug: str, question_id: str, answer: Any
    ) -> DraftAnswerResult:
        return self.knowledge_checks.save_draft_answer(
            self.get_course(course_slug), user_id, module_slug, question_id, answer
        )

    def submit_knowledge_check(
        self,
        user_id: str,
        course_slug: str,
        module_slug: str,
        answers: list[SubmittedAnswer | dict[str, Any]],
    ) -> KnowledgeCheckResult:
        return self.knowledge_checks.submit(self.get_course(course_slug), user_id, module_slug, answers)

    def get_session_state(self, user_id: str, course_slug: str, module_slug: str) -> SessionState:
        return self.knowledge_checks.get_session_state(self.get_course(course_slug), user_id, module_slug)

    # ========================================
    # Read models
    # ========================================

    def get_navigation(
        self, user_id: str, course_slug: str, course: CourseDefinition | None = None
    ) -> tuple[NavTree, LockState]:
        """Navigation tree with this learner's statuses, plus the locks derived from it."""
        course = course or self.get_course(course_slug)
        tree = build_nav_tree(
            course,
            self._lesson_statuses(course, user_id),
            self.store.completed_kc_modules(user_id, course.slug),
        )
        return tree, compute_locks(course, tree)

    def get_course_progress(self, user_id: str, course_slug: str) -> CourseProgressView:
        """Course status, per-lesson entries and finalized knowledge check summaries."""
        course = self.get_course(course_slug)
        cp = self.store.get_course_progress(user_id, course.slug)
        view = CourseProgressView(course_slug=course.slug, status=ProgressStatus.NOT_STARTED.value)
        if cp is not None:
            view.status = cp.status
            view.current_module_slug = cp.current_module_slug
            view.current_lesson_slug = cp.current_lesson_slug
            view.started_at = cp.started_at
            view.completed_at = cp.completed_at
            view.total_time_seconds = cp.total_time_seconds

        view.lessons = [
            LessonProgressEntry(
                module_slug=row.module_slug,
                lesson_slug=row.lesson_slug,
                status=row.status,
                time_spent_seconds=row.time_spent_seconds,
                active_time_seconds=row.active_time_seconds,
                max_scroll_depth=row.max_scroll_depth,
                first_viewed_at=row.first_viewed_at,
                completed_at=row.completed_at,
            )
            for row in self.store.list_lesson_progress(course.slug, [user_id])
        ]
        view.knowledge_checks = [
            KnowledgeCheckSummary(
                module_slug=s.module_slug,
                total_questions=s.total_questions or 0,
                correct_answers=s.correct_answers or 0,
                score=percent(s.correct_answers or 0, s.total_questions or 0),
                attempted_at=s.finalized_at,
            )
            for s in self.store.list_kc_sessions(course.slug, [user_id], completed_only=True)
        ]
        return view

    # ========================================
    # Admin
    # ========================================

    def get_dashboard_metrics(
        self, course_slug: str | None = None, user_ids: Iterable[str] | None = None
    ) -> DashboardMetrics:
        return self.dashboard.metrics(course_slug, user_ids)

    def get_users_module_progress(self, course_slug: str) -> list[UserCourseAnalytics]:
        return self.dashboard.users_module_progress(course_slug)

    def enroll_users(self, course_slug: str, user_ids: Iterable[str], enrolled_by: str | None = None) -> int:
        self.catalog.get(course_slug)
        user_ids = [u.strip() for u in user_ids if u and u.strip()]
        if not user_ids:
            raise InvalidRequestError("No user ids to enroll")
        added = self.store.enroll(user_ids, course_slug, enrolled_by, datetime.now(timezone.utc))
        logger.info(f"Enrolled {added} new user(s) in {course_slug}")
        return added

    def unenroll_user(self, course_slug: str, user_id: str) -> bool:
        self.catalog.get(course_slug)
        return self.store.unenroll(user_id, course_slug)

    def get_course_settings(self, course_slug: str) -> dict[str, Any]:
        """Effective gating settings and the raw overrides behind them."""
        course = self.get_course(course_slug)
        return {
            "course_slug": course.slug,
            "navigation_mode": course.navigation_mode.value,
            "require_knowledge_checks": course.require_knowledge_checks,
            "min_lesson_time_seconds": course.min_lesson_time_seconds,
            "overrides": self.store.get_settings_with_prefix(f"course.{course_slug}."),
        }

    def set_course_setting(self, course_slug: str, key: str, value: Any | None) -> dict[str, Any]:
        """
        Override one gating setting for a course. A None value removes the override.

        Raises:
            InvalidRequestError: unknown key or a value the course model rejects
        """
        course = self.catalog.get(course_slug)
        if key not in COURSE_SETTING_KEYS:
            raise InvalidRequestError(f"Unknown course setting: {key}")

        setting_key = f"course.{course_slug}.{key}"
        if value is None:
            self.store.delete_setting(setting_key)
        else:
            stored = str(value).lower() if isinstance(value, bool) else str(value)
            try:
                course.with_overrides({key: stored})
            except ValueError as e:
                raise InvalidRequestError(f"Invalid value for {key}: {value}") from e
            self.store.set_setting(setting_key, stored, datetime.now(timezone.utc))
        logger.info(f"Course setting {setting_key} = {value}")
        return self.get_course_settings(course_slug)
