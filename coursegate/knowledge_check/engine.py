"""
Knowledge check session engine.

Session lifecycle per (user, course, module):

    not_started --first draft--> in_progress --submit--> completed

Drafts are saved one question at a time with server-side correctness so
a learner can resume at the first unanswered question. Submission grades
every question, then finalizes through a single conditional update on the
session row in the same transaction that writes the final answers.
Completed is terminal: a repeated or concurrent submission returns the
stored result flagged ``already_completed``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel

from coursegate.course.models import CourseDefinition, ModuleDefinition
from coursegate.db.models import KnowledgeCheckAnswer, KnowledgeCheckSession
from coursegate.db.store import ProgressStore
from coursegate.errors import InvalidRequestError, NotFoundError
from coursegate.rounding import percent
from coursegate.status import ProgressStatus

from .models import KnowledgeCheckDefinition
from .questions import check_answer

if TYPE_CHECKING:
    from coursegate.analytics.completion import CompletionAggregator


class SubmittedAnswer(BaseModel):
    """One answer in a submission."""

    question_id: str
    answer: Any = None


@dataclass
class QuestionResult:
    question_id: str
    correct: bool
    lesson_link: str | None = None
    lesson_link_label: str | None = None


@dataclass
class KnowledgeCheckResult:
    total: int
    correct: int
    score_percent: int
    results: list[QuestionResult] = field(default_factory=list)
    already_completed: bool = False
    course_completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DraftAnswerResult:
    question_id: str
    correct: bool
    already_completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SavedAnswer:
    question_id: str
    answer: Any
    correct: bool


@dataclass
class SessionState:
    module_slug: str
    status: ProgressStatus
    total_questions: int
    resume_index: int
    answers: list[SavedAnswer] = field(default_factory=list)
    result: KnowledgeCheckResult | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _knowledge_check_for(course: CourseDefinition, module_slug: str) -> tuple[ModuleDefinition, KnowledgeCheckDefinition]:
    module = course.get_module(module_slug)
    if module.knowledge_check is None:
        raise NotFoundError("knowledge check", f"{course.slug}/{module_slug}")
    return module, module.knowledge_check


def _coerce_answers(answers: list[SubmittedAnswer | dict[str, Any]]) -> list[SubmittedAnswer]:
    coerced = []
    for item in answers:
        if isinstance(item, SubmittedAnswer):
            coerced.append(item)
        elif isinstance(item, dict) and "question_id" in item:
            coerced.append(SubmittedAnswer(question_id=str(item["question_id"]), answer=item.get("answer")))
        else:
            raise InvalidRequestError("Each answer needs a question_id")
    return coerced


def build_result(
    kc: KnowledgeCheckDefinition,
    correctness: dict[str, bool],
    already_completed: bool = False,
) -> KnowledgeCheckResult:
    """Result in definition order; questions without an answer count as incorrect."""
    results = []
    for question in kc.questions:
        results.append(
            QuestionResult(
                question_id=question.id,
                correct=correctness.get(question.id, False),
                lesson_link=question.lesson_link,
                lesson_link_label=question.lesson_link_label,
            )
        )
    total = len(results)
    correct = sum(1 for r in results if r.correct)
    return KnowledgeCheckResult(
        total=total,
        correct=correct,
        score_percent=percent(correct, total),
        results=results,
        already_completed=already_completed,
    )


class KnowledgeCheckEngine:
    """Draft, resume and submit knowledge checks against the progress store."""

    def __init__(self, store: ProgressStore, completion: "CompletionAggregator | None" = None):
        self.store = store
        self.completion = completion

    def save_draft_answer(
        self,
        course: CourseDefinition,
        user_id: str,
        module_slug: str,
        question_id: str,
        answer: Any,
        now: datetime | None = None,
    ) -> DraftAnswerResult:
        """
        Save one draft answer with server-computed correctness.

        Raises:
            NotFoundError: module unknown or without a knowledge check
            InvalidRequestError: question id not in the knowledge check
        """
        _, kc = _knowledge_check_for(course, module_slug)
        question = kc.get_question(question_id)
        if question is None:
            raise InvalidRequestError(f"Unknown question '{question_id}' for {course.slug}/{module_slug}")

        is_correct = check_answer(question, answer)
        row = self.store.save_draft_answer(
            user_id, course.slug, module_slug, question_id, answer, is_correct, now or datetime.now(timezone.utc)
        )
        if row is None:
            logger.debug(f"Draft ignored, knowledge check already completed: {user_id} {course.slug}/{module_slug}")
            return DraftAnswerResult(question_id=question_id, correct=is_correct, already_completed=True)
        return DraftAnswerResult(question_id=question_id, correct=row.is_correct)

    def get_session_state(self, course: CourseDefinition, user_id: str, module_slug: str) -> SessionState:
        """Status, saved answers and resume position for one learner's knowledge check."""
        _, kc = _knowledge_check_for(course, module_slug)
        kc_session = self.store.get_kc_session(user_id, course.slug, module_slug)
        rows = self.store.list_answers(user_id, course.slug, module_slug)
        return self._state_from_rows(kc, module_slug, kc_session, rows)

    def _state_from_rows(
        self,
        kc: KnowledgeCheckDefinition,
        module_slug: str,
        kc_session: KnowledgeCheckSession | None,
        rows: list[KnowledgeCheckAnswer],
    ) -> SessionState:
        by_question = {row.question_id: row for row in rows}
        answers = [
            SavedAnswer(question_id=q.id, answer=by_question[q.id].selected_answer, correct=by_question[q.id].is_correct)
            for q in kc.questions
            if q.id in by_question
        ]
        resume_index = next(
            (idx for idx, q in enumerate(kc.questions) if q.id not in by_question),
            len(kc.questions),
        )

        if kc_session is not None and kc_session.status == ProgressStatus.COMPLETED.value:
            result = build_result(kc, {row.question_id: row.is_correct for row in rows}, already_completed=True)
            return SessionState(
                module_slug=module_slug,
                status=ProgressStatus.COMPLETED,
                total_questions=len(kc.questions),
                resume_index=len(kc.questions),
                answers=answers,
                result=result,
            )

        status = ProgressStatus.IN_PROGRESS if (kc_session is not None or rows) else ProgressStatus.NOT_STARTED
        return SessionState(
            module_slug=module_slug,
            status=status,
            total_questions=len(kc.questions),
            resume_index=resume_index,
            answers=answers,
        )

    def _stored_result(self, course: CourseDefinition, user_id: str, module_slug: str, kc: KnowledgeCheckDefinition) -> KnowledgeCheckResult:
        rows = self.store.list_answers(user_id, course.slug, module_slug)
        return build_result(kc, {row.question_id: row.is_correct for row in rows}, already_completed=True)

    def submit(
        self,
        course: CourseDefinition,
        user_id: str,
        module_slug: str,
        answers: list[SubmittedAnswer | dict[str, Any]],
        now: datetime | None = None,
    ) -> KnowledgeCheckResult:
        """
        Grade and finalize a knowledge check.

        A check that is already completed returns its stored result flagged
        ``already_completed`` before the answers are validated.

        Raises:
            NotFoundError: module unknown or without a knowledge check
            InvalidRequestError: answer count differs from question count, or
                question ids are unknown or repeated (nothing is written)
        """
        _, kc = _knowledge_check_for(course, module_slug)

        existing = self.store.get_kc_session(user_id, course.slug, module_slug)
        if existing is not None and existing.status == ProgressStatus.COMPLETED.value:
            logger.info(f"Knowledge check already completed: {user_id} {course.slug}/{module_slug}")
            return self._stored_result(course, user_id, module_slug, kc)

        submitted = _coerce_answers(answers)
        if len(submitted) != len(kc.questions):
            raise InvalidRequestError(
                f"Expected {len(kc.questions)} answers for {course.slug}/{module_slug}, got {len(submitted)}"
            )
        seen: set[str] = set()
        for item in submitted:
            if kc.get_question(item.question_id) is None:
                raise InvalidRequestError(f"Unknown question '{item.question_id}' for {course.slug}/{module_slug}")
            if item.question_id in seen:
                raise InvalidRequestError(f"Duplicate answer for question '{item.question_id}'")
            seen.add(item.question_id)

        by_id = {item.question_id: item.answer for item in submitted}
        graded = [(q.id, by_id[q.id], check_answer(q, by_id[q.id])) for q in kc.questions]

        won = self.store.finalize_knowledge_check(
            user_id, course.slug, module_slug, graded, now or datetime.now(timezone.utc)
        )
        if not won:
            logger.info(f"Knowledge check finalized concurrently: {user_id} {course.slug}/{module_slug}")
            return self._stored_result(course, user_id, module_slug, kc)

        result = build_result(kc, {qid: ok for qid, _, ok in graded})
        logger.info(
            f"Knowledge check completed: {user_id} {course.slug}/{module_slug} "
            f"{result.correct}/{result.total} ({result.score_percent}%)"
        )
        if self.completion is not None:
            result.course_completed = self.completion.recompute(course, user_id)
        return result
