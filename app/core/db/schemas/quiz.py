from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.base import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class QuizRecord(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    quiz_title: Mapped[str] = mapped_column(String(200), nullable=False)
    topic: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    timer_in_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )
    # Ordered list of Question dicts; immutable after creation
    questions: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    generated_by: Mapped[str] = mapped_column(String(50), nullable=False, default="LLM")
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, index=True
    )


class QuizAttemptRecord(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    quiz_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quizzes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    room_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Frozen quiz metadata so later quiz edits/deletes keep history intact
    quiz_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    user_answers: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    score_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_wrong: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_unattempted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    time_taken: Mapped[int] = mapped_column(Integer, nullable=False)
    time_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, index=True
    )
    is_auto_submitted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    user_ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


__all__ = [
    "QuizRecord",
    "QuizAttemptRecord",
]
