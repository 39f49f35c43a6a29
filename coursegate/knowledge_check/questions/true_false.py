"""
True/False handler.
"""

from typing import Any

from . import QuestionKind, register


@register(QuestionKind.TRUE_FALSE)
class TrueFalseHandler:
    """Handler for true-false questions."""

    def validate(self, question: Any) -> list[str]:
        return []

    def check(self, question: Any, answer: Any) -> bool:
        # bool only: 1/0 and "true" are not answers
        return isinstance(answer, bool) and answer == question.correct_answer
