"""Validation failures raised by the room policy and ranking engine."""

from __future__ import annotations


class RoomError(ValueError):
    """Base class; ``code`` is a stable identifier for API error mapping."""

    code = "room_error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class DuplicateMemberError(RoomError):
    code = "duplicate_member"


class RoomFullError(RoomError):
    code = "room_full"


class RoomClosedError(RoomError):
    code = "room_closed"


class InvalidStateTransitionError(RoomError):
    code = "invalid_state_transition"


class NotAParticipantError(RoomError):
    code = "not_a_participant"


__all__ = [
    "RoomError",
    "DuplicateMemberError",
    "RoomFullError",
    "RoomClosedError",
    "InvalidStateTransitionError",
    "NotAParticipantError",
]
