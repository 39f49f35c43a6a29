"""
Progress store models.

Implements:
- LessonProgress: time/scroll accounting per (user, course, module, lesson)
- CourseProgress: cached course-level derivation per (user, course)
- KnowledgeCheckSession: per-module quiz session; its status is the finalize point
- KnowledgeCheckAnswer: one saved answer per question (draft or final)
- Enrollment: learner population per course
- PlatformSetting: admin key/value overrides (course.<slug>.<setting>)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, SmallInteger, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from coursegate.status import ProgressStatus

from .base import Base


class LessonProgress(Base):
    """
    Engagement state for one lesson.

    time_spent_seconds and active_time_seconds only ever grow; max_scroll_depth
    is a running maximum (0-100).
    """

    __tablename__ = "lesson_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    module_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    lesson_slug: Mapped[str] = mapped_column(String(128), nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=ProgressStatus.IN_PROGRESS.value)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)
    active_time_seconds: Mapped[int] = mapped_column(Integer, default=0)
    max_scroll_depth: Mapped[int] = mapped_column(SmallInteger, default=0)

    first_viewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "course_slug", "module_slug", "lesson_slug", name="uq_lesson_progress"),
    )

    def __repr__(self) -> str:
        return (
            f"<LessonProgress user={self.user_id} lesson={self.course_slug}/{self.module_slug}/{self.lesson_slug} "
            f"status={self.status} time={self.time_spent_seconds}>"
        )


class CourseProgress(Base):
    """Cached course-level status, rewritten by the completion recompute."""

    __tablename__ = "course_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_slug: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(16), default=ProgressStatus.NOT_STARTED.value)
    current_module_slug: Mapped[str | None] = mapped_column(String(128))
    current_lesson_slug: Mapped[str | None] = mapped_column(String(128))
    total_time_seconds: Mapped[int] = mapped_column(Integer, default=0)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("user_id", "course_slug", name="uq_course_progress"),)

    def __repr__(self) -> str:
        return f"<CourseProgress user={self.user_id} course={self.course_slug} status={self.status}>"


class KnowledgeCheckSession(Base):
    """
    Quiz session for one module.

    status moves not_started -> in_progress -> completed. The move to
    completed is a conditional UPDATE (only where not already completed),
    performed in the same transaction that marks every answer final.
    """

    __tablename__ = "knowledge_check_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    module_slug: Mapped[str] = mapped_column(String(128), nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=ProgressStatus.IN_PROGRESS.value)
    total_questions: Mapped[int | None] = mapped_column(Integer)
    correct_answers: Mapped[int | None] = mapped_column(Integer)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "course_slug", "module_slug", name="uq_knowledge_check_session"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeCheckSession user={self.user_id} module={self.course_slug}/{self.module_slug} status={self.status}>"


class KnowledgeCheckAnswer(Base):
    """Saved answer for one question. is_final is shared by every answer of a finalized session."""

    __tablename__ = "knowledge_check_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    module_slug: Mapped[str] = mapped_column(String(128), nullable=False)
    question_id: Mapped[str] = mapped_column(String(128), nullable=False)

    selected_answer: Mapped[Any] = mapped_column(JSON, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    is_final: Mapped[bool] = mapped_column(Boolean, default=False)
    attempted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "course_slug", "module_slug", "question_id", name="uq_knowledge_check_answer"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeCheckAnswer user={self.user_id} question={self.question_id} correct={self.is_correct}>"


class Enrollment(Base):
    """A learner enrolled in a course."""

    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    course_slug: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    enrolled_by: Mapped[str | None] = mapped_column(String(128))
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "course_slug", name="uq_enrollment"),)


class PlatformSetting(Base):
    """Admin-editable setting. Course overrides use keys 'course.<slug>.<name>'."""

    __tablename__ = "platform_settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())
