"""
Single-answer multiple choice handler.

Correct when the selected option id equals ``correct_option``.
"""

from typing import Any

from . import QuestionKind, register
from .base import option_problems


@register(QuestionKind.SINGLE_CHOICE)
class SingleChoiceHandler:
    """Handler for multiple-choice-single questions."""

    def validate(self, question: Any) -> list[str]:
        problems = []
        if len(question.options) < 2:
            problems.append("needs at least 2 options")
        problems += option_problems([o.id for o in question.options], [question.correct_option], "correct_option")
        return problems

    def check(self, question: Any, answer: Any) -> bool:
        return isinstance(answer, str) and answer == question.correct_option
