"""
Admin dashboard metrics.

All figures are read-only aggregations recomputed from the progress
tables on every call:

- status breakdown over the enrolled population, where learners with no
  course progress count as not started
- average time to completion, over completed courses only
- average completion %, over learners with at least one completed lesson
- average knowledge check score, over finalized answers only
- module funnel: share of the enrolled population that completed every
  lesson of each module (modules without lessons are skipped)
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import Any

from coursegate.course.catalog import CourseCatalog
from coursegate.course.models import CourseDefinition
from coursegate.db.models import CourseProgress, KnowledgeCheckAnswer, LessonProgress
from coursegate.db.store import ProgressStore
from coursegate.rounding import percent, round_half_up
from coursegate.status import ProgressStatus

COMPLETED = ProgressStatus.COMPLETED.value
IN_PROGRESS = ProgressStatus.IN_PROGRESS.value


@dataclass
class ModuleFunnelEntry:
    module_slug: str
    module_title: str
    completion_pct: int


@dataclass
class DashboardMetrics:
    total_users: int = 0
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    avg_completion_pct: int = 0
    avg_time_to_completion_seconds: int = 0
    avg_kc_score: int = 0
    module_funnel: list[ModuleFunnelEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UserModuleProgress:
    module_slug: str
    module_title: str
    lessons_completed: int
    total_lessons: int
    time_spent_seconds: int
    kc_score: int | None


@dataclass
class UserCourseAnalytics:
    user_id: str
    status: str
    total_time_seconds: int
    modules: list[UserModuleProgress] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _completed_counts(course: CourseDefinition, lesson_rows: Iterable[LessonProgress]) -> dict[str, dict[str, int]]:
    """user_id -> module_slug -> completed lessons, counting only lessons in the definition."""
    lesson_keys = course.lesson_keys()
    counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for row in lesson_rows:
        if row.course_slug != course.slug or row.status != COMPLETED:
            continue
        if (row.module_slug, row.lesson_slug) in lesson_keys:
            counts[row.user_id][row.module_slug] += 1
    return counts


def average_completion_pct(course: CourseDefinition | None, lesson_rows: Iterable[LessonProgress]) -> int:
    """Mean completion % over learners with at least one completed lesson."""
    if course is None or course.total_lessons == 0:
        return 0
    per_user = _completed_counts(course, lesson_rows)
    if not per_user:
        return 0
    total = course.total_lessons
    pcts = [min(sum(modules.values()) / total, 1) * 100 for modules in per_user.values()]
    return round_half_up(sum(pcts) / len(pcts))


def module_funnel(
    course: CourseDefinition | None, lesson_rows: Iterable[LessonProgress], total_enrolled: int
) -> list[ModuleFunnelEntry]:
    """Per-module share of enrolled learners who completed every lesson in the module."""
    if course is None:
        return []
    per_user = _completed_counts(course, lesson_rows)
    funnel = []
    for module in course.modules:
        if not module.lessons:
            continue
        finished = sum(1 for modules in per_user.values() if modules.get(module.slug, 0) >= len(module.lessons))
        funnel.append(ModuleFunnelEntry(module.slug, module.title, percent(finished, total_enrolled)))
    return funnel


def average_kc_score(answers: Iterable[KnowledgeCheckAnswer]) -> int:
    """Mean of per-learner scores over finalized answers."""
    tallies: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for answer in answers:
        if not answer.is_final:
            continue
        tally = tallies[answer.user_id]
        tally[0] += int(answer.is_correct)
        tally[1] += 1
    if not tallies:
        return 0
    scores = [percent(correct, total) for correct, total in tallies.values()]
    return round_half_up(sum(scores) / len(scores))


def compute_dashboard_metrics(
    course_rows: Iterable[CourseProgress],
    lesson_rows: Iterable[LessonProgress],
    final_answers: Iterable[KnowledgeCheckAnswer],
    total_enrolled: int,
    target_course: CourseDefinition | None = None,
    target_enrolled: int | None = None,
) -> DashboardMetrics:
    """
    Aggregate already-scoped rows into dashboard metrics.

    Args:
        course_rows: CourseProgress rows in scope
        lesson_rows: LessonProgress rows in scope
        final_answers: Finalized knowledge check answers in scope
        total_enrolled: Size of the enrolled population in scope
        target_course: Course used for completion % and the module funnel
        target_enrolled: Enrolled population of the target course (defaults to total_enrolled)
    """
    course_rows = list(course_rows)
    lesson_rows = list(lesson_rows)
    completed_rows = [row for row in course_rows if row.status == COMPLETED]
    completed = len(completed_rows)
    in_progress = sum(1 for row in course_rows if row.status == IN_PROGRESS)
    not_started = max(0, total_enrolled - (completed + in_progress))

    avg_time = 0
    if completed_rows:
        avg_time = round_half_up(sum(row.total_time_seconds for row in completed_rows) / completed)

    return DashboardMetrics(
        total_users=completed + in_progress + not_started,
        completed=completed,
        in_progress=in_progress,
        not_started=not_started,
        avg_completion_pct=average_completion_pct(target_course, lesson_rows),
        avg_time_to_completion_seconds=avg_time,
        avg_kc_score=average_kc_score(final_answers),
        module_funnel=module_funnel(
            target_course, lesson_rows, total_enrolled if target_enrolled is None else target_enrolled
        ),
    )


class DashboardAggregator:
    """Loads scoped rows from the store and aggregates them."""

    def __init__(self, store: ProgressStore, catalog: CourseCatalog):
        self.store = store
        self.catalog = catalog

    def _population(self, course_slug: str | None, user_ids: list[str] | None) -> set[tuple[str, str]]:
        """(user, course) pairs: enrollments plus anyone with course progress."""
        pairs = {(e.user_id, e.course_slug) for e in self.store.list_enrollments(course_slug, user_ids)}
        pairs |= {(row.user_id, row.course_slug) for row in self.store.list_course_progress(course_slug, user_ids)}
        return pairs

    def _enrolled(self, course_slug: str | None, user_ids: list[str] | None) -> int:
        if course_slug is not None and user_ids is not None:
            return len(set(user_ids))
        return len(self._population(course_slug, user_ids))

    def metrics(self, course_slug: str | None = None, user_ids: Iterable[str] | None = None) -> DashboardMetrics:
        """
        Dashboard metrics, optionally scoped to one course and/or a user subset.

        Without a course, completion % and the module funnel use the first
        course in the catalog.
        """
        users = list(dict.fromkeys(user_ids)) if user_ids is not None else None
        target = self.catalog.get(course_slug) if course_slug is not None else self.catalog.first()

        total_enrolled = self._enrolled(course_slug, users)
        target_enrolled = total_enrolled
        if target is not None and course_slug is None:
            target_enrolled = self._enrolled(target.slug, users)

        lesson_scope = target.slug if target is not None else course_slug
        return compute_dashboard_metrics(
            course_rows=self.store.list_course_progress(course_slug, users),
            lesson_rows=self.store.list_lesson_progress(lesson_scope, users) if target is not None else [],
            final_answers=self.store.list_final_answers(course_slug, users),
            total_enrolled=total_enrolled,
            target_course=target,
            target_enrolled=target_enrolled,
        )

    def users_module_progress(self, course_slug: str) -> list[UserCourseAnalytics]:
        """Per-learner, per-module progress for one course, ordered by user id."""
        course = self.catalog.get(course_slug)
        lesson_keys = course.lesson_keys()
        lesson_rows = [
            row for row in self.store.list_lesson_progress(course.slug) if (row.module_slug, row.lesson_slug) in lesson_keys
        ]
        course_rows = {row.user_id: row for row in self.store.list_course_progress(course.slug)}
        answers = self.store.list_final_answers(course.slug)

        user_ids = {user for user, _ in self._population(course.slug, None)}
        user_ids |= {row.user_id for row in lesson_rows}

        lessons: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
        for row in lesson_rows:
            tally = lessons[(row.user_id, row.module_slug)]
            tally[0] += int(row.status == COMPLETED)
            tally[1] += row.time_spent_seconds

        kc: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
        for answer in answers:
            tally = kc[(answer.user_id, answer.module_slug)]
            tally[0] += int(answer.is_correct)
            tally[1] += 1

        analytics = []
        for user_id in sorted(user_ids):
            cp = course_rows.get(user_id)
            modules = []
            for module in course.modules:
                completed_count, time_spent = lessons.get((user_id, module.slug), (0, 0))
                kc_tally = kc.get((user_id, module.slug))
                modules.append(
                    UserModuleProgress(
                        module_slug=module.slug,
                        module_title=module.title,
                        lessons_completed=completed_count,
                        total_lessons=len(module.lessons),
                        time_spent_seconds=time_spent,
                        kc_score=percent(kc_tally[0], kc_tally[1]) if kc_tally and kc_tally[1] else None,
                    )
                )
            analytics.append(
                UserCourseAnalytics(
                    user_id=user_id,
                    status=cp.status if cp is not None else ProgressStatus.NOT_STARTED.value,
                    total_time_seconds=cp.total_time_seconds if cp is not None else 0,
                    modules=modules,
                )
            )
        return analytics
