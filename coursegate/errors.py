"""
Error taxonomy for the progress engine.

- InvalidRequestError: malformed input, rejected before any state change
- NotFoundError: course/module/lesson/question the caller referenced does not exist
- StorageError: progress store unavailable (retryable)

A second knowledge-check submission is not an error; results carry
``already_completed`` instead.
"""

from __future__ import annotations


class CoursegateError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False


class InvalidRequestError(CoursegateError):
    """Raised when input fails validation. No state was mutated."""


class NotFoundError(CoursegateError):
    """Raised when a referenced course, module, lesson or question is unknown."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class StorageError(CoursegateError):
    """Raised when the progress store fails. Safe to retry."""

    retryable = True
