from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from app.modules.quiz.models import Score, UserAnswer
from app.modules.rooms.models import (
    DEFAULT_MAX_MEMBERS,
    MAX_MAX_MEMBERS,
    MIN_MAX_MEMBERS,
)


class RoomSettingsPayload(BaseModel):
    max_members: int = Field(DEFAULT_MAX_MEMBERS, ge=MIN_MAX_MEMBERS, le=MAX_MAX_MEMBERS)
    is_private: bool = False
    allow_member_invite: bool = True
    show_leaderboard_during_quiz: bool = False


class CreateRoomRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: str = Field("", max_length=500)
    quiz_id: Optional[int] = None
    settings: RoomSettingsPayload = Field(default_factory=RoomSettingsPayload)


class AddMemberRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30)


class StartRoomRequest(BaseModel):
    quiz_id: Optional[int] = Field(
        None, description="Quiz to run; defaults to the quiz attached at creation"
    )


class RoomSubmitRequest(BaseModel):
    user_answers: list[UserAnswer] = Field(default_factory=list)
    time_taken: int = Field(..., ge=0)
    is_auto_submitted: bool = False


class UserSummary(BaseModel):
    id: int
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None


class MemberRead(BaseModel):
    user: UserSummary
    role: str
    joined_at: str


class ParticipantRead(BaseModel):
    user: UserSummary
    attempt_id: Optional[int] = None
    score: float
    rank: int
    completed_at: Optional[str] = None


class RoomSessionRead(BaseModel):
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    participants: list[ParticipantRead] = Field(default_factory=list)


class RoomRead(BaseModel):
    id: int
    room_code: str
    name: str
    description: str
    host: UserSummary
    status: str
    quiz_id: Optional[int] = None
    settings: RoomSettingsPayload
    member_count: int
    members: list[MemberRead] = Field(default_factory=list)
    session: RoomSessionRead
    created_at: str


class JoinRoomResponse(BaseModel):
    joined: bool
    room: RoomRead


class LeaderboardItem(BaseModel):
    rank: int
    user: UserSummary
    score: float
    completed_at: str


class LeaderboardResponse(BaseModel):
    room_id: int
    status: str
    leaderboard: list[LeaderboardItem] = Field(default_factory=list)


class RoomSubmitResponse(BaseModel):
    attempt_id: int
    score: Score
    grade: str
    rank: int
    room_status: str
