"""
Progress store repository.

Every component reads and writes progress through ProgressStore. Each
public method runs in its own transaction (``session_scope``) and returns
detached ORM rows. SQLAlchemy failures surface as StorageError; the only
IntegrityErrors handled here are row-creation races on unique keys.

Counters are advanced with SQL-side increments so concurrent heartbeats
for the same lesson never lose time, and status transitions to completed
are conditional UPDATEs whose affected-row count tells the caller whether
this call made the transition.
"""
from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import case, delete, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from coursegate.errors import StorageError
from coursegate.status import ProgressStatus

from .database import session_scope
from .models import (
    CourseProgress,
    Enrollment,
    KnowledgeCheckAnswer,
    KnowledgeCheckSession,
    LessonProgress,
    PlatformSetting,
)

COMPLETED = ProgressStatus.COMPLETED.value
IN_PROGRESS = ProgressStatus.IN_PROGRESS.value


def _get_or_create(session: Session, model: Any, defaults: dict[str, Any], **keys: Any) -> tuple[Any, bool]:
    """Fetch the row for a unique key, inserting it when absent.

    The insert runs in a savepoint; losing a creation race to another
    writer re-reads the winner's row.
    """
    stmt = select(model).filter_by(**keys)
    row = session.scalars(stmt).one_or_none()
    if row is not None:
        return row, False
    try:
        with session.begin_nested():
            row = model(**keys, **defaults)
            session.add(row)
    except IntegrityError:
        logger.debug(f"Lost creation race for {model.__tablename__} {keys}")
        return session.scalars(stmt).one(), False
    return row, True


class ProgressStore:
    """Repository over the progress tables."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    @contextmanager
    def _scope(self) -> Generator[Session, None, None]:
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Progress store failure: {e}")
            raise StorageError(f"Progress store unavailable: {e}") from e

    def ping(self) -> None:
        """Round trip to the database; raises StorageError when it is unreachable."""
        with self._scope() as session:
            session.execute(text("SELECT 1"))

    # ========================================
    # Lesson progress
    # ========================================

    def apply_lesson_increment(
        self,
        user_id: str,
        course_slug: str,
        module_slug: str,
        lesson_slug: str,
        total_delta: int,
        active_delta: int,
        scroll_depth: int | None,
        now: datetime,
    ) -> LessonProgress:
        """Add time to a lesson, creating its row (in progress) on first contact."""
        with self._scope() as session:
            row, created = _get_or_create(
                session,
                LessonProgress,
                {
                    "status": IN_PROGRESS,
                    "time_spent_seconds": 0,
                    "active_time_seconds": 0,
                    "max_scroll_depth": 0,
                    "first_viewed_at": now,
                    "updated_at": now,
                },
                user_id=user_id,
                course_slug=course_slug,
                module_slug=module_slug,
                lesson_slug=lesson_slug,
            )
            values: dict[str, Any] = {
                "time_spent_seconds": LessonProgress.time_spent_seconds + total_delta,
                "active_time_seconds": LessonProgress.active_time_seconds + active_delta,
                "updated_at": now,
            }
            if scroll_depth is not None:
                values["max_scroll_depth"] = case(
                    (LessonProgress.max_scroll_depth < scroll_depth, scroll_depth),
                    else_=LessonProgress.max_scroll_depth,
                )
            session.execute(
                update(LessonProgress)
                .where(LessonProgress.id == row.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            session.flush()
            session.refresh(row)
            if created:
                logger.debug(f"Lesson progress started: {user_id} {course_slug}/{module_slug}/{lesson_slug}")
            return row

    def mark_lesson_completed(
        self, user_id: str, course_slug: str, module_slug: str, lesson_slug: str, now: datetime
    ) -> tuple[LessonProgress, bool]:
        """Mark a lesson completed. Returns the row and whether this call completed it."""
        with self._scope() as session:
            row, _ = _get_or_create(
                session,
                LessonProgress,
                {
                    "status": IN_PROGRESS,
                    "time_spent_seconds": 0,
                    "active_time_seconds": 0,
                    "max_scroll_depth": 0,
                    "first_viewed_at": now,
                    "updated_at": now,
                },
                user_id=user_id,
                course_slug=course_slug,
                module_slug=module_slug,
                lesson_slug=lesson_slug,
            )
            result = session.execute(
                update(LessonProgress)
                .where(LessonProgress.id == row.id, LessonProgress.status != COMPLETED)
                .values(status=COMPLETED, completed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            session.flush()
            session.refresh(row)
            return row, result.rowcount > 0

    def get_lesson_progress(
        self, user_id: str, course_slug: str, module_slug: str, lesson_slug: str
    ) -> LessonProgress | None:
        with self._scope() as session:
            return session.scalars(
                select(LessonProgress).filter_by(
                    user_id=user_id, course_slug=course_slug, module_slug=module_slug, lesson_slug=lesson_slug
                )
            ).one_or_none()

    def list_lesson_progress(
        self, course_slug: str | None = None, user_ids: Iterable[str] | None = None
    ) -> list[LessonProgress]:
        """Lesson rows, optionally scoped to a course and/or a set of users."""
        with self._scope() as session:
            stmt = select(LessonProgress).order_by(LessonProgress.id)
            if course_slug is not None:
                stmt = stmt.where(LessonProgress.course_slug == course_slug)
            if user_ids is not None:
                stmt = stmt.where(LessonProgress.user_id.in_(list(user_ids)))
            return list(session.scalars(stmt))

    # ========================================
    # Course progress
    # ========================================

    def get_course_progress(self, user_id: str, course_slug: str) -> CourseProgress | None:
        with self._scope() as session:
            return session.scalars(
                select(CourseProgress).filter_by(user_id=user_id, course_slug=course_slug)
            ).one_or_none()

    def list_course_progress(
        self, course_slug: str | None = None, user_ids: Iterable[str] | None = None
    ) -> list[CourseProgress]:
        with self._scope() as session:
            stmt = select(CourseProgress).order_by(CourseProgress.id)
            if course_slug is not None:
                stmt = stmt.where(CourseProgress.course_slug == course_slug)
            if user_ids is not None:
                stmt = stmt.where(CourseProgress.user_id.in_(list(user_ids)))
            return list(session.scalars(stmt))

    def save_course_progress(
        self,
        user_id: str,
        course_slug: str,
        status: ProgressStatus,
        total_time_seconds: int,
        now: datetime,
    ) -> tuple[CourseProgress, bool]:
        """
        Write the derived course status.

        A completed row never moves back. Returns the row and whether this
        call moved it to completed.
        """
        status = ProgressStatus(status)
        with self._scope() as session:
            row, _ = _get_or_create(
                session,
                CourseProgress,
                {"status": ProgressStatus.NOT_STARTED.value, "total_time_seconds": 0, "updated_at": now},
                user_id=user_id,
                course_slug=course_slug,
            )
            values: dict[str, Any] = {"total_time_seconds": total_time_seconds, "updated_at": now}
            if status != ProgressStatus.NOT_STARTED and row.started_at is None:
                values["started_at"] = now
            session.execute(
                update(CourseProgress)
                .where(CourseProgress.id == row.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            transitioned = False
            if status == ProgressStatus.COMPLETED:
                result = session.execute(
                    update(CourseProgress)
                    .where(CourseProgress.id == row.id, CourseProgress.status != COMPLETED)
                    .values(status=COMPLETED, completed_at=now)
                    .execution_options(synchronize_session=False)
                )
                transitioned = result.rowcount > 0
            else:
                session.execute(
                    update(CourseProgress)
                    .where(CourseProgress.id == row.id, CourseProgress.status != COMPLETED)
                    .values(status=status.value)
                    .execution_options(synchronize_session=False)
                )
            session.flush()
            session.refresh(row)
            return row, transitioned

    def set_current_position(
        self, user_id: str, course_slug: str, module_slug: str, lesson_slug: str, now: datetime
    ) -> None:
        """Record the learner's last active lesson."""
        with self._scope() as session:
            row, _ = _get_or_create(
                session,
                CourseProgress,
                {"status": ProgressStatus.NOT_STARTED.value, "total_time_seconds": 0, "updated_at": now},
                user_id=user_id,
                course_slug=course_slug,
            )
            row.current_module_slug = module_slug
            row.current_lesson_slug = lesson_slug
            row.updated_at = now

    # ========================================
    # Knowledge checks
    # ========================================

    def get_kc_session(self, user_id: str, course_slug: str, module_slug: str) -> KnowledgeCheckSession | None:
        with self._scope() as session:
            return session.scalars(
                select(KnowledgeCheckSession).filter_by(
                    user_id=user_id, course_slug=course_slug, module_slug=module_slug
                )
            ).one_or_none()

    def list_kc_sessions(
        self,
        course_slug: str | None = None,
        user_ids: Iterable[str] | None = None,
        completed_only: bool = False,
    ) -> list[KnowledgeCheckSession]:
        with self._scope() as session:
            stmt = select(KnowledgeCheckSession).order_by(KnowledgeCheckSession.id)
            if course_slug is not None:
                stmt = stmt.where(KnowledgeCheckSession.course_slug == course_slug)
            if user_ids is not None:
                stmt = stmt.where(KnowledgeCheckSession.user_id.in_(list(user_ids)))
            if completed_only:
                stmt = stmt.where(KnowledgeCheckSession.status == COMPLETED)
            return list(session.scalars(stmt))

    def completed_kc_modules(self, user_id: str, course_slug: str) -> set[str]:
        """Module slugs whose knowledge check this learner has finalized."""
        return {
            s.module_slug for s in self.list_kc_sessions(course_slug, [user_id], completed_only=True)
        }

    def list_answers(self, user_id: str, course_slug: str, module_slug: str) -> list[KnowledgeCheckAnswer]:
        with self._scope() as session:
            return list(
                session.scalars(
                    select(KnowledgeCheckAnswer)
                    .filter_by(user_id=user_id, course_slug=course_slug, module_slug=module_slug)
                    .order_by(KnowledgeCheckAnswer.id)
                )
            )

    def list_final_answers(
        self, course_slug: str | None = None, user_ids: Iterable[str] | None = None
    ) -> list[KnowledgeCheckAnswer]:
        with self._scope() as session:
            stmt = select(KnowledgeCheckAnswer).where(KnowledgeCheckAnswer.is_final.is_(True))
            if course_slug is not None:
                stmt = stmt.where(KnowledgeCheckAnswer.course_slug == course_slug)
            if user_ids is not None:
                stmt = stmt.where(KnowledgeCheckAnswer.user_id.in_(list(user_ids)))
            return list(session.scalars(stmt.order_by(KnowledgeCheckAnswer.id)))

    def save_draft_answer(
        self,
        user_id: str,
        course_slug: str,
        module_slug: str,
        question_id: str,
        answer: Any,
        is_correct: bool,
        now: datetime,
    ) -> KnowledgeCheckAnswer | None:
        """
        Upsert one draft answer, opening the session on first use.

        Returns None (and writes nothing) when the session is already
        completed or the answer row is already final. The session row is
        locked for the rest of the transaction so a concurrent finalize
        cannot interleave with the upsert.
        """
        with self._scope() as session:
            kc_session, _ = _get_or_create(
                session,
                KnowledgeCheckSession,
                {"status": IN_PROGRESS, "started_at": now},
                user_id=user_id,
                course_slug=course_slug,
                module_slug=module_slug,
            )
            status = session.scalar(
                select(KnowledgeCheckSession.status)
                .where(KnowledgeCheckSession.id == kc_session.id)
                .with_for_update()
            )
            if status == COMPLETED:
                return None

            row, created = _get_or_create(
                session,
                KnowledgeCheckAnswer,
                {"selected_answer": answer, "is_correct": is_correct, "is_final": False, "attempted_at": now},
                user_id=user_id,
                course_slug=course_slug,
                module_slug=module_slug,
                question_id=question_id,
            )
            if not created:
                # Final rows are never rewritten by a draft
                result = session.execute(
                    update(KnowledgeCheckAnswer)
                    .where(KnowledgeCheckAnswer.id == row.id, KnowledgeCheckAnswer.is_final.is_(False))
                    .values(selected_answer=answer, is_correct=is_correct, attempted_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    logger.warning(f"Draft for {user_id} {course_slug}/{module_slug} {question_id} hit a final answer")
                    return None
                session.refresh(row)
            session.flush()
            return row

    def finalize_knowledge_check(
        self,
        user_id: str,
        course_slug: str,
        module_slug: str,
        graded: list[tuple[str, Any, bool]],
        now: datetime,
    ) -> bool:
        """
        Complete a knowledge check session and write its final answers.

        ``graded`` holds (question_id, answer, is_correct) per question. The
        session moves to completed through a conditional UPDATE; if another
        writer already completed it, nothing is written and False is returned.
        """
        correct = sum(1 for _, _, ok in graded if ok)
        with self._scope() as session:
            kc_session, _ = _get_or_create(
                session,
                KnowledgeCheckSession,
                {"status": IN_PROGRESS, "started_at": now},
                user_id=user_id,
                course_slug=course_slug,
                module_slug=module_slug,
            )
            result = session.execute(
                update(KnowledgeCheckSession)
                .where(KnowledgeCheckSession.id == kc_session.id, KnowledgeCheckSession.status != COMPLETED)
                .values(
                    status=COMPLETED,
                    finalized_at=now,
                    total_questions=len(graded),
                    correct_answers=correct,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return False

            session.execute(
                delete(KnowledgeCheckAnswer).where(
                    KnowledgeCheckAnswer.user_id == user_id,
                    KnowledgeCheckAnswer.course_slug == course_slug,
                    KnowledgeCheckAnswer.module_slug == module_slug,
                )
            )
            session.add_all(
                KnowledgeCheckAnswer(
                    user_id=user_id,
                    course_slug=course_slug,
                    module_slug=module_slug,
                    question_id=question_id,
                    selected_answer=answer,
                    is_correct=is_correct,
                    is_final=True,
                    attempted_at=now,
                )
                for question_id, answer, is_correct in graded
            )
            return True

    # ========================================
    # Enrollments
    # ========================================

    def enroll(self, user_ids: Iterable[str], course_slug: str, enrolled_by: str | None, now: datetime) -> int:
        """Enroll users in a course. Returns how many were newly enrolled."""
        added = 0
        with self._scope() as session:
            for user_id in dict.fromkeys(user_ids):
                _, created = _get_or_create(
                    session,
                    Enrollment,
                    {"enrolled_by": enrolled_by, "enrolled_at": now},
                    user_id=user_id,
                    course_slug=course_slug,
                )
                added += int(created)
        return added

    def unenroll(self, user_id: str, course_slug: str) -> bool:
        with self._scope() as session:
            result = session.execute(
                delete(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_slug == course_slug)
            )
            return result.rowcount > 0

    def list_enrollments(
        self, course_slug: str | None = None, user_ids: Iterable[str] | None = None
    ) -> list[Enrollment]:
        with self._scope() as session:
            stmt = select(Enrollment).order_by(Enrollment.id)
            if course_slug is not None:
                stmt = stmt.where(Enrollment.course_slug == course_slug)
            if user_ids is not None:
                stmt = stmt.where(Enrollment.user_id.in_(list(user_ids)))
            return list(session.scalars(stmt))

    # ========================================
    # Platform settings
    # ========================================

    def get_settings_with_prefix(self, prefix: str) -> dict[str, str]:
        """Settings whose key starts with ``prefix``, keyed by the remainder."""
        with self._scope() as session:
            rows = session.scalars(select(PlatformSetting).where(PlatformSetting.key.startswith(prefix, autoescape=True)))
            return {row.key[len(prefix):]: row.value for row in rows}

    def set_setting(self, key: str, value: str, now: datetime) -> None:
        with self._scope() as session:
            row, created = _get_or_create(session, PlatformSetting, {"value": value, "updated_at": now}, key=key)
            if not created:
                row.value = value
                row.updated_at = now

    def delete_setting(self, key: str) -> bool:
        with self._scope() as session:
            result = session.execute(delete(PlatformSetting).where(PlatformSetting.key == key))
            return result.rowcount > 0
