"""Lesson-level progress: heartbeat time accounting and lesson completion."""

from .heartbeat import HeartbeatAggregator, HeartbeatSample, normalize_heartbeat, split_idle_time
from .lessons import LessonTracker, min_time_remaining

__all__ = [
    "HeartbeatAggregator",
    "HeartbeatSample",
    "LessonTracker",
    "min_time_remaining",
    "normalize_heartbeat",
    "split_idle_time",
]
