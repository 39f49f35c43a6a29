"""Lesson and knowledge-check locking."""

from .resolver import LockState, compute_locks

__all__ = ["LockState", "compute_locks"]
