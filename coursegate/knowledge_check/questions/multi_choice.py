"""
Multi-answer multiple choice handler.

Set equality: the selected option ids must equal the correct options,
ignoring order and repeats. No partial credit.
"""

from typing import Any

from . import QuestionKind, register
from .base import option_problems


@register(QuestionKind.MULTI_CHOICE)
class MultiChoiceHandler:
    """Handler for multiple-choice-multi questions."""

    def validate(self, question: Any) -> list[str]:
        problems = []
        if len(question.options) < 2:
            problems.append("needs at least 2 options")
        if not question.correct_options:
            problems.append("needs at least 1 correct option")
        problems += option_problems([o.id for o in question.options], question.correct_options, "correct_options")
        return problems

    def check(self, question: Any, answer: Any) -> bool:
        if not isinstance(answer, (list, tuple)) or not all(isinstance(a, str) for a in answer):
            return False
        return set(answer) == set(question.correct_options)
