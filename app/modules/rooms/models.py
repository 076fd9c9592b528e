"""Room aggregate used by the membership policy and the ranking engine.

The aggregate is a plain in-memory value: the service layer builds it from
DB rows, hands it to the policy/engine functions, and writes the mutated
state back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class RoomStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    CLOSED = "closed"


class MemberRole(str, Enum):
    HOST = "host"
    MEMBER = "member"


DEFAULT_MAX_MEMBERS = 50
MIN_MAX_MEMBERS = 2
MAX_MAX_MEMBERS = 100


@dataclass
class RoomSettings:
    max_members: int = DEFAULT_MAX_MEMBERS
    is_private: bool = False
    allow_member_invite: bool = True
    show_leaderboard_during_quiz: bool = False


@dataclass
class Member:
    user_id: int
    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime = field(default_factory=_now_utc)


@dataclass
class Participant:
    user_id: int
    attempt_id: Optional[int] = None
    score: float = 0
    rank: int = 0
    completed_at: Optional[datetime] = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


@dataclass
class LeaderboardEntry:
    user_id: int
    score: float
    rank: int
    completed_at: datetime


@dataclass
class RoomSession:
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    participants: list[Participant] = field(default_factory=list)

    def participant(self, user_id: int) -> Optional[Participant]:
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None


@dataclass
class Room:
    room_code: str
    name: str
    host_id: int
    description: str = ""
    id: Optional[int] = None
    members: list[Member] = field(default_factory=list)
    settings: RoomSettings = field(default_factory=RoomSettings)
    status: RoomStatus = RoomStatus.WAITING
    quiz_id: Optional[int] = None
    session: RoomSession = field(default_factory=RoomSession)
    created_at: datetime = field(default_factory=_now_utc)

    @classmethod
    def create(
        cls,
        *,
        room_code: str,
        name: str,
        host_id: int,
        description: str = "",
        settings: Optional[RoomSettings] = None,
        quiz_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "Room":
        """New room in ``waiting`` with the host as its only member."""
        joined = now or _now_utc()
        return cls(
            room_code=room_code.upper(),
            name=name,
            host_id=host_id,
            description=description,
            settings=settings or RoomSettings(),
            quiz_id=quiz_id,
            members=[Member(user_id=host_id, role=MemberRole.HOST, joined_at=joined)],
            created_at=joined,
        )

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def is_full(self) -> bool:
        return len(self.members) >= self.settings.max_members

    def is_member(self, user_id: int) -> bool:
        return any(m.user_id == user_id for m in self.members)
