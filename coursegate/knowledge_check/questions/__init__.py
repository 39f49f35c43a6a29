"""
Question type handlers for knowledge checks.

Each question type has its own module with:
- validate(): Structural checks of the question definition
- check(): Decide whether a learner answer is correct
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import QuestionHandler


class QuestionKind(str, Enum):
    """Supported knowledge check question types."""
    SINGLE_CHOICE = "multiple-choice-single"
    MULTI_CHOICE = "multiple-choice-multi"
    TRUE_FALSE = "true-false"
    MATCHING = "matching"
    DRAG_TO_RANK = "drag-to-rank"
    FILL_IN_BLANK = "fill-in-blank"


# Handler registry - populated by @register decorator
HANDLERS: dict[QuestionKind, "QuestionHandler"] = {}


def register(kind: QuestionKind):
    """Decorator to register a question handler."""
    def decorator(cls):
        HANDLERS[kind] = cls()
        return cls
    return decorator


def get_handler(kind: str | QuestionKind) -> "QuestionHandler | None":
    """Get the handler for a question type."""
    if isinstance(kind, str):
        try:
            kind = QuestionKind(kind.lower())
        except ValueError:
            return None
    return HANDLERS.get(kind)


def check_answer(question: Any, answer: Any) -> bool:
    """Validate a learner answer against its question. Unknown types are never correct."""
    handler = get_handler(question.type)
    if handler is None:
        return False
    return handler.check(question, answer)


def validate_question(question: Any) -> list[str]:
    """Return structural problems with a question definition (empty if valid)."""
    handler = get_handler(question.type)
    if handler is None:
        return [f"unsupported question type: {question.type}"]
    return handler.validate(question)


# Import handlers to trigger registration
from . import single_choice
from . import multi_choice
from . import true_false
from . import matching
from . import drag_to_rank
from . import fill_in_blank

__all__ = [
    "QuestionKind",
    "HANDLERS",
    "check_answer",
    "get_handler",
    "register",
    "validate_question",
]
