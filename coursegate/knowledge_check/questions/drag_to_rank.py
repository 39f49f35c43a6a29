"""
Drag-to-rank handler.

Not order-insensitive: the submitted id list must equal ``correct_order``
element for element.
"""

from typing import Any

from . import QuestionKind, register
from .base import option_problems


@register(QuestionKind.DRAG_TO_RANK)
class DragToRankHandler:
    """Handler for drag-to-rank questions."""

    def validate(self, question: Any) -> list[str]:
        problems = []
        item_ids = [i.id for i in question.items]
        if len(item_ids) < 2:
            problems.append("needs at least 2 items")
        if sorted(question.correct_order) != sorted(item_ids):
            problems.append("correct_order must be a permutation of the item ids")
        problems += option_problems(item_ids, [], "correct_order")
        return problems

    def check(self, question: Any, answer: Any) -> bool:
        if not isinstance(answer, (list, tuple)):
            return False
        return list(answer) == list(question.correct_order)
