"""Pydantic models for quizzes, answers and scores.

These are the shapes the scoring engine and the quiz generator work with.
DB models live under app.core.db.schemas.quiz; the service layer converts
rows to these models before scoring.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


OPTION_LABELS = ("A", "B", "C", "D")

# Question counts the generator accepts.
ALLOWED_QUESTION_COUNTS = (10, 15, 20, 30, 40, 50, 100)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"
    EXTREME = "extreme"


class QuestionOptions(BaseModel):
    A: str = Field(..., min_length=1)
    B: str = Field(..., min_length=1)
    C: str = Field(..., min_length=1)
    D: str = Field(..., min_length=1)


class Question(BaseModel):
    """A single multiple-choice question with four labeled options."""

    question_id: int = Field(..., ge=1)
    question_text: str = Field(..., min_length=1)
    options: QuestionOptions
    correct_answer: str
    explanation: str = Field(..., min_length=1)

    @field_validator("correct_answer")
    @classmethod
    def _check_label(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in OPTION_LABELS:
            raise ValueError("correct_answer must be A, B, C, or D")
        return value


class QuizContent(BaseModel):
    """Quiz metadata plus its ordered questions."""

    quiz_title: str = Field(..., min_length=3, max_length=200)
    topic: str = Field(..., min_length=1)
    difficulty: Difficulty
    timer_in_minutes: int = Field(..., ge=1, le=300)
    additional_description: Optional[str] = Field(None, max_length=500)
    questions: list[Question] = Field(..., min_length=1)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @model_validator(mode="after")
    def _check_question_ids(self) -> "QuizContent":
        ids = [q.question_id for q in self.questions]
        if ids != list(range(1, len(ids) + 1)):
            raise ValueError("question ids must be sequential starting at 1")
        return self


class QuizSnapshot(BaseModel):
    """Quiz metadata frozen onto an attempt at submission time."""

    quiz_title: str
    topic: str
    difficulty: str
    total_questions: int
    timer_in_minutes: int


class UserAnswer(BaseModel):
    question_id: int
    selected_answer: Optional[str] = None
    is_correct: bool = False
    time_taken: float = Field(default=0, ge=0)

    @field_validator("selected_answer")
    @classmethod
    def _check_selected(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        value = value.strip().upper()
        if value not in OPTION_LABELS:
            raise ValueError("selected_answer must be A, B, C, D or null")
        return value


class Score(BaseModel):
    total: int = 0
    correct: int = 0
    wrong: int = 0
    unattempted: int = 0
    percentage: float = Field(default=0, ge=0, le=100)
