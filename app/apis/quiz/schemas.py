from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.modules.quiz.models import (
    ALLOWED_QUESTION_COUNTS,
    Difficulty,
    Question,
    QuizContent,
)


class GenerateQuizRequest(BaseModel):
    topic: str = Field(..., min_length=2, max_length=100)
    difficulty: Difficulty
    number_of_questions: int = Field(..., description="One of 10, 15, 20, 30, 40, 50, 100")
    timer_in_minutes: int = Field(..., ge=1, le=300)
    additional_description: Optional[str] = Field(None, max_length=500)

    @field_validator("topic")
    @classmethod
    def _strip_topic(cls, value: str) -> str:
        return value.strip()

    @field_validator("number_of_questions")
    @classmethod
    def _check_count(cls, value: int) -> int:
        if value not in ALLOWED_QUESTION_COUNTS:
            allowed = ", ".join(str(n) for n in ALLOWED_QUESTION_COUNTS)
            raise ValueError(f"number_of_questions must be one of {allowed}")
        return value


class CreateQuizRequest(QuizContent):
    """Manually authored quiz; same shape the generator produces."""


class QuizSummary(BaseModel):
    id: int
    quiz_title: str
    topic: str
    difficulty: str
    total_questions: int
    timer_in_minutes: int
    additional_description: Optional[str] = None
    generated_by: str
    created_by: Optional[int] = None
    created_at: str


class QuizRead(QuizSummary):
    questions: list[Question] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class QuizListResponse(BaseModel):
    quizzes: list[QuizSummary] = Field(default_factory=list)
    pagination: Pagination


class QuizStatsResponse(BaseModel):
    total_quizzes: int
    avg_questions: int
    by_difficulty: dict[str, int] = Field(default_factory=dict)
