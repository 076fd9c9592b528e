from .errors import (
    DuplicateMemberError,
    InvalidStateTransitionError,
    NotAParticipantError,
    RoomClosedError,
    RoomError,
    RoomFullError,
)
from .models import (
    LeaderboardEntry,
    Member,
    MemberRole,
    Participant,
    Room,
    RoomSession,
    RoomSettings,
    RoomStatus,
)

__all__ = [
    "DuplicateMemberError",
    "InvalidStateTransitionError",
    "NotAParticipantError",
    "RoomClosedError",
    "RoomError",
    "RoomFullError",
    "LeaderboardEntry",
    "Member",
    "MemberRole",
    "Participant",
    "Room",
    "RoomSession",
    "RoomSettings",
    "RoomStatus",
]
