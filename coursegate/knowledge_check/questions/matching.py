"""
Matching handler.

The learner answer maps each pair's id (the left item) to the id of the
pair whose right item they selected. A pair is matched when it maps to
itself; the question is correct only when every pair is matched.
"""

from typing import Any

from . import QuestionKind, register


@register(QuestionKind.MATCHING)
class MatchingHandler:
    """Handler for matching questions."""

    def validate(self, question: Any) -> list[str]:
        problems = []
        ids = [p.id for p in question.pairs]
        if len(ids) < 2:
            problems.append("needs at least 2 pairs")
        if len(set(ids)) != len(ids):
            problems.append("duplicate pair ids")
        return problems

    def check(self, question: Any, answer: Any) -> bool:
        if not isinstance(answer, dict):
            return False
        return all(answer.get(pair.id) == pair.id for pair in question.pairs)
