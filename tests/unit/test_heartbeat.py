"""
Unit tests for heartbeat aggregation.
"""
from datetime import timedelta

import pytest

from coursegate.errors import InvalidRequestError
from coursegate.progress.heartbeat import (
    HeartbeatAggregator,
    clamp_scroll_depth,
    normalize_heartbeat,
    split_idle_time,
)
from coursegate.status import ProgressStatus


class TestNormalizeHeartbeat:
    def test_active_defaults_to_total(self):
        sample = normalize_heartbeat(45, max_delta_seconds=120)
        assert sample.total_delta_seconds == 45
        assert sample.active_delta_seconds == 45
        assert sample.scroll_depth is None

    def test_deltas_clamped_to_cap(self):
        sample = normalize_heartbeat(600, 300, max_delta_seconds=120)
        assert sample.total_delta_seconds == 120
        assert sample.active_delta_seconds == 120

    def test_negative_total_rejected(self):
        with pytest.raises(InvalidRequestError):
            normalize_heartbeat(-5, max_delta_seconds=120)

    def test_negative_active_rejected(self):
        with pytest.raises(InvalidRequestError):
            normalize_heartbeat(30, -1, max_delta_seconds=120)

    @pytest.mark.parametrize("total, active", [(float("nan"), None), (float("inf"), None), (30, float("nan"))])
    def test_non_finite_deltas_rejected(self, total, active):
        with pytest.raises(InvalidRequestError):
            normalize_heartbeat(total, active, max_delta_seconds=120)

    @pytest.mark.parametrize("raw", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_scroll_depth_rejected(self, raw):
        with pytest.raises(InvalidRequestError):
            clamp_scroll_depth(raw)

    def test_active_above_total_rejected(self):
        with pytest.raises(InvalidRequestError):
            normalize_heartbeat(30, 40, max_delta_seconds=120)

    @pytest.mark.parametrize(
        "raw,expected",
        [(None, None), (42.4, 42), (-3, 0), (104.6, 100), (100, 100)],
    )
    def test_scroll_depth_rounded_and_clamped(self, raw, expected):
        assert clamp_scroll_depth(raw) == expected


class TestSplitIdleTime:
    def test_all_active_while_interacting(self, now):
        total, active = split_idle_time(
            now, now + timedelta(seconds=50), now + timedelta(seconds=60),
            idle_threshold_seconds=120, max_delta_seconds=120,
        )
        assert (total, active) == (60, 60)

    def test_idle_counts_only_up_to_last_interaction(self, now):
        total, active = split_idle_time(
            now, now + timedelta(seconds=10), now + timedelta(seconds=200),
            idle_threshold_seconds=120, max_delta_seconds=120,
        )
        assert (total, active) == (120, 10)

    def test_interaction_before_last_beat(self, now):
        total, active = split_idle_time(
            now, now - timedelta(seconds=300), now + timedelta(seconds=60),
            idle_threshold_seconds=120, max_delta_seconds=120,
        )
        assert (total, active) == (60, 0)


class TestHeartbeatAggregator:
    @pytest.fixture
    def aggregator(self, store):
        return HeartbeatAggregator(store, max_delta_seconds=120)

    def beat(self, aggregator, now, total, active=None, scroll=None):
        return aggregator.apply_heartbeat("u1", "intro", "basics", "welcome", total, active, scroll, now)

    def test_first_heartbeat_creates_row(self, aggregator, now):
        row = self.beat(aggregator, now, 30)
        assert row.status == ProgressStatus.IN_PROGRESS.value
        assert row.time_spent_seconds == 30
        assert row.active_time_seconds == 30
        assert row.first_viewed_at is not None

    def test_time_is_sum_of_deltas(self, aggregator, now):
        for delta in (30, 60, 10):
            row = self.beat(aggregator, now, delta)
        assert row.time_spent_seconds == 100

    def test_oversized_delta_adds_cap(self, aggregator, now):
        self.beat(aggregator, now, 20)
        row = self.beat(aggregator, now, 3600)
        assert row.time_spent_seconds == 140

    def test_active_time_never_exceeds_total(self, aggregator, now):
        self.beat(aggregator, now, 60, 60)
        row = self.beat(aggregator, now, 60, 5)
        assert row.active_time_seconds == 65
        assert row.active_time_seconds <= row.time_spent_seconds

    def test_scroll_depth_is_running_max(self, aggregator, now):
        assert self.beat(aggregator, now, 10, scroll=40).max_scroll_depth == 40
        assert self.beat(aggregator, now, 10, scroll=20).max_scroll_depth == 40
        assert self.beat(aggregator, now, 10).max_scroll_depth == 40
        assert self.beat(aggregator, now, 10, scroll=150).max_scroll_depth == 100

    def test_rejected_heartbeat_writes_nothing(self, aggregator, store, now):
        with pytest.raises(InvalidRequestError):
            self.beat(aggregator, now, -10)
        assert store.get_lesson_progress("u1", "intro", "basics", "welcome") is None

    def test_heartbeat_keeps_completed_status(self, aggregator, store, now):
        store.mark_lesson_completed("u1", "intro", "basics", "welcome", now)
        row = self.beat(aggregator, now, 30)
        assert row.status == ProgressStatus.COMPLETED.value
        assert row.time_spent_seconds == 30

    def test_lessons_are_independent(self, aggregator, store, now):
        self.beat(aggregator, now, 30)
        aggregator.apply_heartbeat("u1", "intro", "basics", "setup", 50, now=now)
        aggregator.apply_heartbeat("u2", "intro", "basics", "welcome", 70, now=now)
        assert store.get_lesson_progress("u1", "intro", "basics", "welcome").time_spent_seconds == 30
        assert store.get_lesson_progress("u1", "intro", "basics", "setup").time_spent_seconds == 50
        assert store.get_lesson_progress("u2", "intro", "basics", "welcome").time_spent_seconds == 70
