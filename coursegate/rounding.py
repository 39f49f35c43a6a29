"""Percent helpers shared by scoring and analytics."""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def percent(part: float, whole: float) -> int:
    """Integer percentage of part/whole; 0 when whole is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)
