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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db.base import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RoomRecord(Base):
    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_code: Mapped[str] = mapped_column(
        String(6), nullable=False, unique=True, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    host_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    quiz_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quizzes.id", ondelete="SET NULL"), nullable=True
    )

    # Settings
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_member_invite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    show_leaderboard_during_quiz: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="waiting", index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )
    # Optimistic concurrency counter checked on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    members: Mapped[list["RoomMemberRecord"]] = relationship(
        "RoomMemberRecord",
        back_populates="room",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RoomMemberRecord.id",
    )
    participants: Mapped[list["RoomParticipantRecord"]] = relationship(
        "RoomParticipantRecord",
        back_populates="room",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RoomParticipantRecord.id",
    )

    __mapper_args__ = {"version_id_col": version}


class RoomMemberRecord(Base):
    __tablename__ = "room_members"
    __table_args__ = (UniqueConstraint("room_id", "user_id", name="uq_room_member"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    role: Mapped[str] = mapped_column(String(10), nullable=False, default="member")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc
    )

    room: Mapped["RoomRecord"] = relationship("RoomRecord", back_populates="members")


class RoomParticipantRecord(Base):
    __tablename__ = "room_participants"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_room_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("rooms.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    attempt_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("quiz_attempts.id", ondelete="SET NULL"), nullable=True
    )
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    room: Mapped["RoomRecord"] = relationship(
        "RoomRecord", back_populates="participants"
    )


__all__ = [
    "RoomRecord",
    "RoomMemberRecord",
    "RoomParticipantRecord",
]
