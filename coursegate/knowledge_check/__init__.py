"""
Knowledge check definitions and answer validation.

The session engine lives in ``coursegate.knowledge_check.engine`` and is
imported from there directly.
"""

from .models import (
    DragToRankQuestion,
    FillInBlankQuestion,
    FillInBlankSegment,
    KnowledgeCheckDefinition,
    KnowledgeCheckQuestion,
    MatchingPair,
    MatchingQuestion,
    MultiChoiceQuestion,
    QuestionOption,
    SingleChoiceQuestion,
    TrueFalseQuestion,
)
from .questions import QuestionKind, check_answer, get_handler, validate_question

__all__ = [
    "DragToRankQuestion",
    "FillInBlankQuestion",
    "FillInBlankSegment",
    "KnowledgeCheckDefinition",
    "KnowledgeCheckQuestion",
    "MatchingPair",
    "MatchingQuestion",
    "MultiChoiceQuestion",
    "QuestionKind",
    "QuestionOption",
    "SingleChoiceQuestion",
    "TrueFalseQuestion",
    "check_answer",
    "get_handler",
    "validate_question",
]
