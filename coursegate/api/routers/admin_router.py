"""
Admin router.

Endpoints for:
- Dashboard metrics (status breakdown, averages, module funnel)
- Per-learner module analytics
- Enrollments
- Course gating setting overrides
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from coursegate.errors import CoursegateError
from coursegate.service import ProgressService

from ..deps import get_service, http_error

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ModuleFunnelResponse(BaseModel):
    module_slug: str
    module_title: str
    completion_pct: int


class DashboardResponse(BaseModel):
    """Aggregated learner metrics."""

    total_users: int
    completed: int
    in_progress: int
    not_started: int
    avg_completion_pct: int
    avg_time_to_completion_seconds: int
    avg_kc_score: int
    module_funnel: list[ModuleFunnelResponse]


class EnrollRequest(BaseModel):
    user_ids: list[str] = Field(..., min_length=1)
    enrolled_by: str | None = None


class EnrollResponse(BaseModel):
    course_slug: str
    enrolled: int


class CourseSettingRequest(BaseModel):
    key: str = Field(..., description="navigation_mode, ordered_lessons, require_knowledge_checks or min_lesson_time_seconds")
    value: Any = Field(None, description="New value; null removes the override")


# ========================================
# Dashboard Endpoints
# ========================================


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    course_slug: str | None = Query(None, description="Scope to one course"),
    user_id: list[str] | None = Query(None, description="Scope to these users (repeatable)"),
    service: ProgressService = Depends(get_service),
) -> DashboardResponse:
    """Dashboard metrics, optionally scoped to a course and/or a set of users."""
    try:
        metrics = service.get_dashboard_metrics(course_slug, user_id)
    except CoursegateError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception("Dashboard metrics failed")
        raise HTTPException(status_code=500, detail=str(e))
    return DashboardResponse(**metrics.to_dict())


@router.get("/courses/{course_slug}/users/analytics")
def get_users_analytics(
    course_slug: str,
    service: ProgressService = Depends(get_service),
) -> list[dict[str, Any]]:
    """Per-learner progress broken down by module."""
    try:
        return [entry.to_dict() for entry in service.get_users_module_progress(course_slug)]
    except CoursegateError as e:
        raise http_error(e)


# ========================================
# Enrollment Endpoints
# ========================================


@router.post("/courses/{course_slug}/enrollments", response_model=EnrollResponse)
def enroll_users(
    course_slug: str,
    request: EnrollRequest,
    service: ProgressService = Depends(get_service),
) -> EnrollResponse:
    try:
        added = service.enroll_users(course_slug, request.user_ids, request.enrolled_by)
    except CoursegateError as e:
        raise http_error(e)
    return EnrollResponse(course_slug=course_slug, enrolled=added)


@router.delete("/courses/{course_slug}/enrollments/{user_id}")
def unenroll_user(
    course_slug: str,
    user_id: str,
    service: ProgressService = Depends(get_service),
) -> dict[str, Any]:
    try:
        removed = service.unenroll_user(course_slug, user_id)
    except CoursegateError as e:
        raise http_error(e)
    if not removed:
        raise HTTPException(status_code=404, detail=f"enrollment not found: {course_slug}/{user_id}")
    return {"course_slug": course_slug, "user_id": user_id, "removed": True}


# ========================================
# Course Settings Endpoints
# ========================================


@router.get("/courses/{course_slug}/settings")
def get_course_settings(
    course_slug: str,
    service: ProgressService = Depends(get_service),
) -> dict[str, Any]:
    try:
        return service.get_course_settings(course_slug)
    except CoursegateError as e:
        raise http_error(e)


@router.put("/courses/{course_slug}/settings")
def update_course_setting(
    course_slug: str,
    request: CourseSettingRequest,
    service: ProgressService = Depends(get_service),
) -> dict[str, Any]:
    """Override one gating setting; the response holds the effective settings."""
    try:
        return service.set_course_setting(course_slug, request.key, request.value)
    except CoursegateError as e:
        raise http_error(e)
