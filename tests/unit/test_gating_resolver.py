"""
Unit tests for the navigation gating resolver.
"""

import pytest

from coursegate.course.models import CourseDefinition
from coursegate.course.navigation import build_nav_tree
from coursegate.gating import compute_locks

DONE = "completed"
STARTED = "in_progress"


def three_module_course(navigation_mode="open", require_knowledge_checks=False):
    kc = {"questions": [{"id": "q", "type": "true-false", "correct_answer": True}]}
    return CourseDefinition.model_validate(
        {
            "slug": "c",
            "navigation_mode": navigation_mode,
            "require_knowledge_checks": require_knowledge_checks,
            "modules": [
                {"slug": "m1", "lessons": ["a", "b"], "knowledge_check": kc},
                {"slug": "m2", "lessons": ["c"]},
                {"slug": "m3", "lessons": ["d", "e"], "knowledge_check": kc},
            ],
        }
    )


def locks_for(course, statuses=None, completed_kcs=()):
    tree = build_nav_tree(course, statuses or {}, completed_kcs)
    return compute_locks(course, tree)


class TestOpenNavigation:
    def test_nothing_locked(self):
        locks = locks_for(three_module_course())
        assert locks.locked_lessons == frozenset()
        assert locks.locked_knowledge_checks == frozenset()


class TestLinearNavigation:
    def test_first_incomplete_lesson_is_open(self):
        course = CourseDefinition.model_validate(
            {"slug": "c", "navigation_mode": "linear", "modules": [{"slug": "m", "lessons": ["a", "b", "c"]}]}
        )
        locks = locks_for(course, {("m", "a"): DONE})
        assert locks.locked_lessons == {("m", "c")}
        assert not locks.is_lesson_locked("m", "b")

    def test_fresh_learner(self):
        locks = locks_for(three_module_course("linear"))
        assert not locks.is_lesson_locked("m1", "a")
        assert locks.locked_lessons == {("m1", "b"), ("m2", "c"), ("m3", "d"), ("m3", "e")}

    def test_in_progress_lesson_blocks_the_rest(self):
        locks = locks_for(three_module_course("linear"), {("m1", "a"): STARTED, ("m1", "b"): DONE})
        assert locks.is_lesson_locked("m1", "b")

    def test_knowledge_check_waits_for_module_lessons(self):
        course = three_module_course("linear")
        assert locks_for(course, {("m1", "a"): DONE}).is_knowledge_check_locked("m1")
        assert not locks_for(course, {("m1", "a"): DONE, ("m1", "b"): DONE}).is_knowledge_check_locked("m1")

    def test_knowledge_check_does_not_gate_lessons(self):
        locks = locks_for(three_module_course("linear"), {("m1", "a"): DONE, ("m1", "b"): DONE})
        assert not locks.is_lesson_locked("m2", "c")
        assert locks.is_lesson_locked("m3", "d")


class TestKnowledgeCheckGate:
    def test_incomplete_check_locks_later_modules(self):
        locks = locks_for(three_module_course(require_knowledge_checks=True))
        assert not locks.is_lesson_locked("m1", "a")
        assert not locks.is_lesson_locked("m1", "b")
        assert not locks.is_knowledge_check_locked("m1")
        assert locks.locked_lessons == {("m2", "c"), ("m3", "d"), ("m3", "e")}
        assert locks.locked_knowledge_checks == {"m3"}

    def test_completed_check_opens_until_next_check(self):
        locks = locks_for(three_module_course(require_knowledge_checks=True), completed_kcs={"m1"})
        assert locks.locked_lessons == frozenset()
        assert locks.locked_knowledge_checks == frozenset()

    def test_modules_without_check_do_not_gate(self):
        course = CourseDefinition.model_validate(
            {
                "slug": "c",
                "require_knowledge_checks": True,
                "modules": [{"slug": "m1", "lessons": ["a"]}, {"slug": "m2", "lessons": ["b"]}],
            }
        )
        assert locks_for(course).locked_lessons == frozenset()


class TestCombinedRules:
    def test_locks_are_union_of_rules(self):
        course = three_module_course("linear", require_knowledge_checks=True)
        statuses = {("m1", "a"): DONE, ("m1", "b"): DONE}
        locks = locks_for(course, statuses)
        # linear alone would open m2/c; the check gate keeps it locked
        assert locks.is_lesson_locked("m2", "c")
        assert not locks.is_knowledge_check_locked("m1")

    def test_completed_course_has_no_locks(self):
        course = three_module_course("linear", require_knowledge_checks=True)
        statuses = {(module.slug, lesson.slug): DONE for module, lesson in course.iter_lessons()}
        locks = locks_for(course, statuses, completed_kcs={"m1", "m3"})
        assert locks.locked_lessons == frozenset()
        assert locks.locked_knowledge_checks == frozenset()

    @pytest.mark.parametrize("mode", ["linear", "open"])
    def test_deterministic(self, mode):
        course = three_module_course(mode, require_knowledge_checks=True)
        statuses = {("m1", "a"): DONE}
        assert locks_for(course, statuses) == locks_for(course, statuses)


class TestLockStateSerialization:
    def test_to_dict(self):
        locks = locks_for(three_module_course(require_knowledge_checks=True))
        data = locks.to_dict()
        assert data["locked_knowledge_checks"] == ["m3"]
        assert {"module_slug": "m2", "lesson_slug": "c"} in data["locked_lessons"]
