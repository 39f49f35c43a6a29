"""
Base protocol for question handlers.
"""

from typing import Any, Protocol


class QuestionHandler(Protocol):
    """Protocol for question type handlers."""

    def validate(self, question: Any) -> list[str]:
        """Check the question definition. Returns a list of problems (empty if valid)."""
        ...

    def check(self, question: Any, answer: Any) -> bool:
        """Return True if the answer is correct. Malformed answers are incorrect."""
        ...


def option_problems(option_ids: list[str], referenced: list[str], field: str) -> list[str]:
    """Report ids in ``referenced`` that are not among ``option_ids``."""
    known = set(option_ids)
    problems = []
    if len(known) != len(option_ids):
        problems.append("duplicate option ids")
    for ref in referenced:
        if ref not in known:
            problems.append(f"{field} references unknown option '{ref}'")
    return problems
