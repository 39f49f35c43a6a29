"""
Heartbeat aggregation.

Clients report elapsed time for the lesson they are viewing: periodically
(every ``heartbeat_interval_seconds``), when the page is hidden, and when
the lesson unmounts. Each heartbeat carries the time since the previous
one, split into total and active seconds.

Deltas are additive. A duplicated or reordered heartbeat can only add
non-negative, capped time; it can never move a counter backwards.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from loguru import logger

from config import get_settings
from coursegate.db.models import LessonProgress
from coursegate.db.store import ProgressStore
from coursegate.errors import InvalidRequestError


@dataclass(frozen=True)
class HeartbeatSample:
    """A validated, clamped heartbeat."""

    total_delta_seconds: int
    active_delta_seconds: int
    scroll_depth: int | None = None


def clamp_scroll_depth(scroll_depth: float | None) -> int | None:
    """Round to an integer percentage within [0, 100]; None means not reported."""
    if scroll_depth is None:
        return None
    if not math.isfinite(scroll_depth):
        raise InvalidRequestError("Scroll depth must be a finite number")
    return max(0, min(100, int(round(scroll_depth))))


def normalize_heartbeat(
    total_delta_seconds: float,
    active_delta_seconds: float | None = None,
    scroll_depth: float | None = None,
    max_delta_seconds: int | None = None,
) -> HeartbeatSample:
    """
    Validate and clamp raw heartbeat values.

    Raises:
        InvalidRequestError: non-finite or negative deltas, or active time exceeding total time
    """
    if max_delta_seconds is None:
        max_delta_seconds = get_settings().heartbeat_max_delta_seconds
    if active_delta_seconds is None:
        active_delta_seconds = total_delta_seconds

    if not (math.isfinite(total_delta_seconds) and math.isfinite(active_delta_seconds)):
        raise InvalidRequestError("Heartbeat deltas must be finite numbers")
    if total_delta_seconds < 0 or active_delta_seconds < 0:
        raise InvalidRequestError("Heartbeat deltas must be non-negative")

    total = min(int(round(total_delta_seconds)), max_delta_seconds)
    active = min(int(round(active_delta_seconds)), max_delta_seconds)
    if active > total:
        raise InvalidRequestError(
            f"Active delta ({active}s) exceeds total delta ({total}s)"
        )
    return HeartbeatSample(total, active, clamp_scroll_depth(scroll_depth))


def split_idle_time(
    last_beat_at: datetime,
    last_interaction_at: datetime,
    now: datetime,
    idle_threshold_seconds: int | None = None,
    max_delta_seconds: int | None = None,
) -> tuple[int, int]:
    """
    Split the time since the last heartbeat into (total, active) seconds.

    While the learner is interacting, all elapsed time is active. Once the
    last interaction is older than the idle threshold, only the time up to
    that interaction counts as active. Both values are capped.
    """
    settings = get_settings()
    if idle_threshold_seconds is None:
        idle_threshold_seconds = settings.idle_threshold_seconds
    if max_delta_seconds is None:
        max_delta_seconds = settings.heartbeat_max_delta_seconds

    def _clamp(seconds: float) -> int:
        return max(0, min(max_delta_seconds, int(round(seconds))))

    total = _clamp((now - last_beat_at).total_seconds())
    idle_for = (now - last_interaction_at).total_seconds()
    if idle_for > idle_threshold_seconds:
        active = _clamp((last_interaction_at - last_beat_at).total_seconds())
    else:
        active = total
    return total, min(active, total)


class HeartbeatAggregator:
    """Applies heartbeats to LessonProgress rows."""

    def __init__(self, store: ProgressStore, max_delta_seconds: int | None = None):
        self.store = store
        self.max_delta_seconds = (
            max_delta_seconds if max_delta_seconds is not None else get_settings().heartbeat_max_delta_seconds
        )

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
        """
        Record one heartbeat against a lesson.

        Touches only the lesson's own row. Course-level recompute is the
        caller's job.

        Returns:
            The updated LessonProgress row
        """
        sample = normalize_heartbeat(
            total_delta_seconds, active_delta_seconds, scroll_depth, self.max_delta_seconds
        )
        row = self.store.apply_lesson_increment(
            user_id,
            course_slug,
            module_slug,
            lesson_slug,
            sample.total_delta_seconds,
            sample.active_delta_seconds,
            sample.scroll_depth,
            now or datetime.now(timezone.utc),
        )
        logger.debug(
            f"Heartbeat {user_id} {course_slug}/{module_slug}/{lesson_slug}: "
            f"+{sample.total_delta_seconds}s (+{sample.active_delta_seconds}s active), "
            f"total={row.time_spent_seconds}s"
        )
        return row
