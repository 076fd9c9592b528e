from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fastapi_users_db_sqlalchemy import SQLAlchemyBaseUserTable

from app.core.db.base import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLAlchemyBaseUserTable[int], Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(
        String(30), nullable=False, unique=True, index=True
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bio: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    avatar: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Aggregate stats
    total_quizzes_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_quizzes_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    highest_score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    total_rooms_joined: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rooms_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


__all__ = ["User"]
