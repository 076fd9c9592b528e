from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.modules.quiz.models import QuestionOptions, QuizSnapshot, Score, UserAnswer


class SubmitAttemptRequest(BaseModel):
    quiz_id: int
    user_answers: list[UserAnswer] = Field(default_factory=list)
    time_taken: int = Field(..., ge=0, description="Seconds spent on the quiz")
    is_auto_submitted: bool = False


class SubmitAttemptResponse(BaseModel):
    attempt_id: int
    score: Score
    grade: str
    time_taken: int
    submitted_at: str
    is_auto_submitted: bool


class AttemptSummary(BaseModel):
    id: int
    quiz_id: Optional[int] = None
    room_id: Optional[int] = None
    quiz_snapshot: QuizSnapshot
    score: Score
    grade: str
    time_taken: int
    submitted_at: str
    is_auto_submitted: bool


class AttemptRead(AttemptSummary):
    user_id: Optional[int] = None
    time_remaining: int
    user_answers: list[UserAnswer] = Field(default_factory=list)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class AttemptHistoryResponse(BaseModel):
    attempts: list[AttemptSummary] = Field(default_factory=list)
    pagination: Pagination


class ReviewItem(BaseModel):
    question_id: int
    question_text: str
    options: QuestionOptions
    correct_answer: str
    user_answer: Optional[str] = None
    is_correct: bool
    explanation: str


class AttemptReviewResponse(BaseModel):
    attempt_id: int
    quiz_snapshot: QuizSnapshot
    score: Score
    grade: str
    review: list[ReviewItem] = Field(default_factory=list)


class OverallStats(BaseModel):
    total_attempts: int
    average_score: float
    highest_score: float
    lowest_score: float


class PerformancePoint(BaseModel):
    attempt_id: int
    percentage: float
    submitted_at: str


class AttemptStatsResponse(BaseModel):
    overall: OverallStats
    recent: list[AttemptSummary] = Field(default_factory=list)
    performance: list[PerformancePoint] = Field(default_factory=list)
