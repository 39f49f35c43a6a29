"""
Knowledge check question definitions.

Question Types (discriminated by ``type``):
- multiple-choice-single: one correct option id
- multiple-choice-multi: set of correct option ids, no partial credit
- true-false: boolean answer
- matching: pairs; the learner selection for each pair must be the pair's own id
- drag-to-rank: ordered list of item ids
- fill-in-blank: text/blank segments, blanks numbered in segment order

Each question may carry a ``lesson_link`` that results surface as a
remediation reference when the answer is wrong.
"""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, model_validator


class QuestionOption(BaseModel):
    id: str
    text: str = ""


class MatchingPair(BaseModel):
    id: str
    left: str
    right: str


class FillInBlankSegment(BaseModel):
    type: Literal["text", "blank"]
    value: str = ""
    accept: list[str] | None = None

    def accepted_answers(self) -> list[str]:
        """Normalized accepted answers; the canonical value when no accept-list is defined."""
        candidates = self.accept if self.accept else [self.value]
        return [c.strip().lower() for c in candidates]


class BaseQuestion(BaseModel):
    id: str
    question: str = ""
    explanation: str = ""
    lesson_link: str | None = None
    lesson_link_label: str | None = None


class SingleChoiceQuestion(BaseQuestion):
    type: Literal["multiple-choice-single"]
    options: list[QuestionOption]
    correct_option: str


class MultiChoiceQuestion(BaseQuestion):
    type: Literal["multiple-choice-multi"]
    options: list[QuestionOption]
    correct_options: list[str]


class TrueFalseQuestion(BaseQuestion):
    type: Literal["true-false"]
    correct_answer: bool


class MatchingQuestion(BaseQuestion):
    type: Literal["matching"]
    pairs: list[MatchingPair]


class DragToRankQuestion(BaseQuestion):
    type: Literal["drag-to-rank"]
    items: list[QuestionOption]
    correct_order: list[str]


class FillInBlankQuestion(BaseQuestion):
    type: Literal["fill-in-blank"]
    segments: list[FillInBlankSegment]
    word_bank: list[str] | None = None

    def blanks(self) -> list[FillInBlankSegment]:
        """Blank segments in order; list position is the blank index."""
        return [seg for seg in self.segments if seg.type == "blank"]


KnowledgeCheckQuestion = Annotated[
    Union[
        SingleChoiceQuestion,
        MultiChoiceQuestion,
        TrueFalseQuestion,
        MatchingQuestion,
        DragToRankQuestion,
        FillInBlankQuestion,
    ],
    Field(discriminator="type"),
]


class KnowledgeCheckDefinition(BaseModel):
    """Ordered question set attached to a module."""

    title: str = ""
    description: str = ""
    questions: list[KnowledgeCheckQuestion] = Field(min_length=1)

    @model_validator(mode="after")
    def _unique_question_ids(self) -> "KnowledgeCheckDefinition":
        seen: set[str] = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"duplicate question id: {q.id}")
            seen.add(q.id)
        return self

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]

    def get_question(self, question_id: str) -> KnowledgeCheckQuestion | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None
