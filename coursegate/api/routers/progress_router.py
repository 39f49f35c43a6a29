"""
Learner progress router.

Endpoints for:
- Course progress and navigation (with locks)
- Heartbeats and lesson completion
- Lesson access checks
- Knowledge check drafts, resume state and submission

Every endpoint acts for the learner named in the ``X-User-Id`` header.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from coursegate.errors import CoursegateError, StorageError
from coursegate.knowledge_check.engine import SubmittedAnswer
from coursegate.service import ProgressService

from ..deps import get_service, get_user_id, http_error

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class HeartbeatRequest(BaseModel):
    """Time elapsed on a lesson since the previous heartbeat."""

    module_slug: str
    lesson_slug: str
    delta_seconds: float = Field(..., description="Seconds since the previous heartbeat")
    active_delta_seconds: float | None = Field(None, description="Active portion of delta_seconds (defaults to all of it)")
    scroll_depth: float | None = Field(None, description="Scroll depth percentage (0-100)")


class HeartbeatResponse(BaseModel):
    recorded: bool
    time_spent_seconds: int | None = None
    active_time_seconds: int | None = None
    max_scroll_depth: int | None = None


class CompleteLessonRequest(BaseModel):
    module_slug: str


class CompleteLessonResponse(BaseModel):
    module_slug: str
    lesson_slug: str
    newly_completed: bool
    course_completed: bool


class LessonAccessResponse(BaseModel):
    module_slug: str
    lesson_slug: str
    locked: bool
    min_time_remaining_seconds: int


class DraftAnswerRequest(BaseModel):
    question_id: str
    answer: Any = None


class DraftAnswerResponse(BaseModel):
    question_id: str
    correct: bool
    already_completed: bool


class SubmitRequest(BaseModel):
    answers: list[SubmittedAnswer]


class QuestionResultResponse(BaseModel):
    question_id: str
    correct: bool
    lesson_link: str | None = None
    lesson_link_label: str | None = None


class SubmitResponse(BaseModel):
    total: int
    correct: int
    score_percent: int
    results: list[QuestionResultResponse]
    already_completed: bool
    course_completed: bool


class LessonProgressResponse(BaseModel):
    module_slug: str
    lesson_slug: str
    status: str
    time_spent_seconds: int
    active_time_seconds: int
    max_scroll_depth: int
    first_viewed_at: datetime | None
    completed_at: datetime | None


class KnowledgeCheckSummaryResponse(BaseModel):
    module_slug: str
    total_questions: int
    correct_answers: int
    score: int
    attempted_at: datetime | None


class CourseProgressResponse(BaseModel):
    course_slug: str
    status: str
    current_module_slug: str | None
    current_lesson_slug: str | None
    started_at: datetime | None
    completed_at: datetime | None
    total_time_seconds: int
    lessons: list[LessonProgressResponse]
    knowledge_checks: list[KnowledgeCheckSummaryResponse]


# ========================================
# Progress Endpoints
# ========================================


@router.get("/{course_slug}", response_model=CourseProgressResponse)
def get_course_progress(
    course_slug: str,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> CourseProgressResponse:
    """Course status with per-lesson entries and finalized knowledge check summaries."""
    try:
        return CourseProgressResponse(**service.get_course_progress(user_id, course_slug).to_dict())
    except CoursegateError as e:
        raise http_error(e)


@router.get("/{course_slug}/navigation")
def get_navigation(
    course_slug: str,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> dict[str, Any]:
    """
    Navigation tree with lesson/module statuses and lock state.

    **Response:**
    - `tree`: modules -> lessons with statuses, `has_knowledge_check`, `knowledge_check_completed`
    - `locks`: `locked_lessons` ({module_slug, lesson_slug}) and `locked_knowledge_checks` (module slugs)
    """
    try:
        tree, locks = service.get_navigation(user_id, course_slug)
        return {"tree": tree.to_dict(), "locks": locks.to_dict()}
    except CoursegateError as e:
        raise http_error(e)


@router.post("/{course_slug}/heartbeat", response_model=HeartbeatResponse)
def heartbeat(
    course_slug: str,
    request: HeartbeatRequest,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> HeartbeatResponse:
    """
    Record time on a lesson.

    Heartbeats are best effort: a store outage is logged and reported as
    `recorded: false` rather than failing the client.
    """
    try:
        row = service.apply_heartbeat(
            user_id,
            course_slug,
            request.module_slug,
            request.lesson_slug,
            request.delta_seconds,
            request.active_delta_seconds,
            request.scroll_depth,
        )
    except StorageError as e:
        logger.warning(f"Heartbeat dropped for {user_id} {course_slug}: {e}")
        return HeartbeatResponse(recorded=False)
    except CoursegateError as e:
        raise http_error(e)

    return HeartbeatResponse(
        recorded=True,
        time_spent_seconds=row.time_spent_seconds,
        active_time_seconds=row.active_time_seconds,
        max_scroll_depth=row.max_scroll_depth,
    )


@router.post("/{course_slug}/lessons/{lesson_slug}/complete", response_model=CompleteLessonResponse)
def complete_lesson(
    course_slug: str,
    lesson_slug: str,
    request: CompleteLessonRequest,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> CompleteLessonResponse:
    """Mark a lesson completed and report whether that completed the course."""
    try:
        result = service.complete_lesson(user_id, course_slug, request.module_slug, lesson_slug)
    except CoursegateError as e:
        raise http_error(e)
    return CompleteLessonResponse(
        module_slug=result.module_slug,
        lesson_slug=result.lesson_slug,
        newly_completed=result.newly_completed,
        course_completed=result.course_completed,
    )


@router.get("/{course_slug}/modules/{module_slug}/lessons/{lesson_slug}/access", response_model=LessonAccessResponse)
def check_lesson_access(
    course_slug: str,
    module_slug: str,
    lesson_slug: str,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> LessonAccessResponse:
    """Server-side access check for a lesson (same rules as the navigation locks)."""
    try:
        access = service.check_lesson_access(user_id, course_slug, module_slug, lesson_slug)
    except CoursegateError as e:
        raise http_error(e)
    return LessonAccessResponse(
        module_slug=module_slug,
        lesson_slug=lesson_slug,
        locked=access.locked,
        min_time_remaining_seconds=access.min_time_remaining_seconds,
    )


# ========================================
# Knowledge Check Endpoints
# ========================================


@router.post("/{course_slug}/modules/{module_slug}/check/draft", response_model=DraftAnswerResponse)
def save_draft_answer(
    course_slug: str,
    module_slug: str,
    request: DraftAnswerRequest,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> DraftAnswerResponse:
    """Save one answer so the knowledge check can be resumed."""
    try:
        result = service.save_draft_answer(user_id, course_slug, module_slug, request.question_id, request.answer)
    except CoursegateError as e:
        raise http_error(e)
    return DraftAnswerResponse(**result.to_dict())


@router.get("/{course_slug}/modules/{module_slug}/check/answers")
def get_session_state(
    course_slug: str,
    module_slug: str,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> dict[str, Any]:
    """Session status, saved answers and resume index (plus the stored result once completed)."""
    try:
        return service.get_session_state(user_id, course_slug, module_slug).to_dict()
    except CoursegateError as e:
        raise http_error(e)


@router.post("/{course_slug}/modules/{module_slug}/check", response_model=SubmitResponse)
def submit_knowledge_check(
    course_slug: str,
    module_slug: str,
    request: SubmitRequest,
    user_id: str = Depends(get_user_id),
    service: ProgressService = Depends(get_service),
) -> SubmitResponse:
    """
    Grade and finalize a knowledge check.

    A repeated submission returns the stored result with `already_completed: true`.
    """
    try:
        result = service.submit_knowledge_check(user_id, course_slug, module_slug, request.answers)
    except CoursegateError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Knowledge check submission failed")
        raise HTTPException(status_code=500, detail=str(e))
    return SubmitResponse(**result.to_dict())
