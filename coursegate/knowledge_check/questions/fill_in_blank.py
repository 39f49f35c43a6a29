"""
Fill-in-blank handler.

Blanks are numbered 0..n-1 in segment order. Each learner entry is
trimmed and lower-cased and must be one of the blank's accepted answers
(case-insensitive), or its canonical value when no accept-list is given.
"""

from typing import Any

from . import QuestionKind, register


def _entry(answer: Any, index: int) -> str:
    """Learner text for blank ``index``; JSON round-trips turn int keys into strings."""
    if isinstance(answer, dict):
        value = answer.get(index, answer.get(str(index), ""))
    elif isinstance(answer, (list, tuple)):
        value = answer[index] if index < len(answer) else ""
    else:
        return ""
    return value if isinstance(value, str) else ""


@register(QuestionKind.FILL_IN_BLANK)
class FillInBlankHandler:
    """Handler for fill-in-blank questions."""

    def validate(self, question: Any) -> list[str]:
        problems = []
        blanks = question.blanks()
        if not blanks:
            problems.append("needs at least 1 blank segment")
        for idx, blank in enumerate(blanks):
            if not blank.value and not blank.accept:
                problems.append(f"blank {idx} has no value or accepted answers")
        return problems

    def check(self, question: Any, answer: Any) -> bool:
        if not isinstance(answer, (dict, list, tuple)):
            return False
        for idx, blank in enumerate(question.blanks()):
            if _entry(answer, idx).strip().lower() not in blank.accepted_answers():
                return False
        return True
