"""
Unit tests for dashboard metrics and per-learner module analytics.
"""
from types import SimpleNamespace

import pytest

from coursegate.analytics.dashboard import (
    DashboardAggregator,
    average_completion_pct,
    average_kc_score,
    compute_dashboard_metrics,
    module_funnel,
)
from coursegate.course.catalog import CourseCatalog
from coursegate.course.models import CourseDefinition


def course_row(user_id, status, total_time=0, course_slug="c"):
    return SimpleNamespace(user_id=user_id, course_slug=course_slug, status=status, total_time_seconds=total_time)


def lesson_row(user_id, module_slug, lesson_slug, status="completed", course_slug="c"):
    return SimpleNamespace(
        user_id=user_id, course_slug=course_slug, module_slug=module_slug, lesson_slug=lesson_slug, status=status
    )


def answer_row(user_id, is_correct, is_final=True):
    return SimpleNamespace(user_id=user_id, is_correct=is_correct, is_final=is_final)


@pytest.fixture
def four_lesson_course():
    return CourseDefinition.model_validate(
        {
            "slug": "c",
            "modules": [
                {"slug": "m1", "title": "One", "lessons": ["a", "b"]},
                {"slug": "empty", "title": "Empty", "lessons": []},
                {"slug": "m2", "title": "Two", "lessons": ["c", "d"]},
            ],
        }
    )


class TestStatusBreakdown:
    def test_not_started_fills_enrolled_population(self):
        rows = [course_row("u1", "completed", 100), course_row("u2", "in_progress")]
        metrics = compute_dashboard_metrics(rows, [], [], total_enrolled=5)
        assert (metrics.completed, metrics.in_progress, metrics.not_started) == (1, 1, 3)
        assert metrics.total_users == 5

    def test_not_started_floors_at_zero(self):
        rows = [course_row("u1", "completed"), course_row("u2", "in_progress"), course_row("u3", "in_progress")]
        metrics = compute_dashboard_metrics(rows, [], [], total_enrolled=2)
        assert metrics.not_started == 0
        assert metrics.total_users == 3

    def test_avg_time_over_completed_only(self):
        rows = [
            course_row("u1", "completed", 100),
            course_row("u2", "completed", 201),
            course_row("u3", "in_progress", 10_000),
        ]
        metrics = compute_dashboard_metrics(rows, [], [], total_enrolled=3)
        assert metrics.avg_time_to_completion_seconds == 151

    def test_empty(self):
        metrics = compute_dashboard_metrics([], [], [], total_enrolled=0)
        assert metrics.to_dict() == {
            "total_users": 0,
            "completed": 0,
            "in_progress": 0,
            "not_started": 0,
            "avg_completion_pct": 0,
            "avg_time_to_completion_seconds": 0,
            "avg_kc_score": 0,
            "module_funnel": [],
        }


class TestAverageCompletion:
    def test_mean_over_users_with_completed_lessons(self, four_lesson_course):
        rows = [
            lesson_row("u1", "m1", "a"),
            lesson_row("u1", "m1", "b"),
            lesson_row("u2", "m1", "a"),
            lesson_row("u2", "m1", "b"),
            lesson_row("u2", "m2", "c"),
            lesson_row("u2", "m2", "d"),
            lesson_row("u3", "m1", "a", status="in_progress"),
        ]
        # u1: 50%, u2: 100%, u3 excluded
        assert average_completion_pct(four_lesson_course, rows) == 75

    def test_rounds_to_nearest(self, four_lesson_course):
        rows = [lesson_row("u1", "m1", "a"), lesson_row("u2", "m1", "a"), lesson_row("u2", "m1", "b")]
        # (25 + 50) / 2 = 37.5
        assert average_completion_pct(four_lesson_course, rows) == 38

    def test_ignores_lessons_outside_definition(self, four_lesson_course):
        rows = [lesson_row("u1", "m1", "a"), lesson_row("u1", "m1", "retired"), lesson_row("u1", "m1", "a", course_slug="x")]
        assert average_completion_pct(four_lesson_course, rows) == 25

    def test_no_active_users(self, four_lesson_course):
        assert average_completion_pct(four_lesson_course, []) == 0
        assert average_completion_pct(None, [lesson_row("u1", "m1", "a")]) == 0


class TestModuleFunnel:
    def test_share_of_enrolled_completing_module(self, four_lesson_course):
        rows = [
            lesson_row("u1", "m1", "a"),
            lesson_row("u1", "m1", "b"),
            lesson_row("u2", "m1", "a"),
            lesson_row("u2", "m1", "b"),
            lesson_row("u2", "m2", "c"),
            lesson_row("u3", "m1", "a"),
        ]
        funnel = module_funnel(four_lesson_course, rows, total_enrolled=3)
        assert [(e.module_slug, e.completion_pct) for e in funnel] == [("m1", 67), ("m2", 0)]
        assert funnel[0].module_title == "One"

    def test_zero_lesson_module_excluded(self, four_lesson_course):
        funnel = module_funnel(four_lesson_course, [], total_enrolled=4)
        assert "empty" not in [e.module_slug for e in funnel]

    def test_zero_enrolled_is_zero(self, four_lesson_course):
        rows = [lesson_row("u1", "m1", "a"), lesson_row("u1", "m1", "b")]
        funnel = module_funnel(four_lesson_course, rows, total_enrolled=0)
        assert [e.completion_pct for e in funnel] == [0, 0]


class TestAverageKnowledgeCheckScore:
    def test_mean_of_learner_scores(self):
        answers = [
            answer_row("u1", True),
            answer_row("u1", False),
            answer_row("u2", True),
            answer_row("u2", True),
        ]
        assert average_kc_score(answers) == 75

    def test_drafts_ignored(self):
        assert average_kc_score([answer_row("u1", True, is_final=False)]) == 0


class TestDashboardAggregator:
    @pytest.fixture
    def aggregator(self, store, course):
        return DashboardAggregator(store, CourseCatalog([course]))

    def test_population_from_enrollments(self, aggregator, store, now):
        store.enroll(["u1", "u2", "u3", "u4"], "intro", "admin", now)
        store.apply_lesson_increment("u1", "intro", "basics", "welcome", 60, 60, None, now)
        store.mark_lesson_completed("u1", "intro", "basics", "welcome", now)
        store.save_course_progress("u1", "intro", "in_progress", 60, now)

        metrics = aggregator.metrics("intro")
        assert (metrics.in_progress, metrics.not_started, metrics.total_users) == (1, 3, 4)
        # 1 of 3 lessons
        assert metrics.avg_completion_pct == 33
        assert [(e.module_slug, e.completion_pct) for e in metrics.module_funnel] == [("basics", 0), ("advanced", 0)]

    def test_user_subset_scopes_population(self, aggregator, store, now):
        store.enroll(["u1", "u2", "u3"], "intro", None, now)
        store.save_course_progress("u1", "intro", "completed", 600, now)
        store.save_course_progress("u2", "intro", "completed", 300, now)

        metrics = aggregator.metrics("intro", ["u1", "u9"])
        assert (metrics.completed, metrics.not_started, metrics.total_users) == (1, 1, 2)
        assert metrics.avg_time_to_completion_seconds == 600

    def test_defaults_to_first_course(self, aggregator, store, now):
        store.enroll(["u1"], "intro", None, now)
        store.mark_lesson_completed("u1", "intro", "advanced", "deep-dive", now)
        metrics = aggregator.metrics()
        assert metrics.module_funnel[1].completion_pct == 100

    def test_kc_score_from_final_answers(self, aggregator, store, now):
        store.save_draft_answer("u1", "intro", "basics", "q1", "a", False, now)
        store.finalize_knowledge_check("u2", "intro", "basics", [("q1", "b", True), ("q2", False, False)], now)
        assert aggregator.metrics("intro").avg_kc_score == 50

    def test_users_module_progress(self, aggregator, store, now):
        store.enroll(["u2"], "intro", None, now)
        store.apply_lesson_increment("u1", "intro", "basics", "welcome", 90, 90, None, now)
        store.mark_lesson_completed("u1", "intro", "basics", "welcome", now)
        store.finalize_knowledge_check("u1", "intro", "basics", [("q1", "b", True), ("q2", False, False)], now)
        store.save_course_progress("u1", "intro", "in_progress", 90, now)

        analytics = aggregator.users_module_progress("intro")
        assert [a.user_id for a in analytics] == ["u1", "u2"]

        u1, u2 = analytics
        assert (u1.status, u1.total_time_seconds) == ("in_progress", 90)
        basics = u1.modules[0]
        assert (basics.lessons_completed, basics.total_lessons, basics.time_spent_seconds) == (1, 2, 90)
        assert basics.kc_score == 50
        assert u1.modules[1].kc_score is None

        assert u2.status == "not_started"
        assert all(m.lessons_completed == 0 for m in u2.modules)
