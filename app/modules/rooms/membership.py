"""Membership rules for a room's member list."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app.modules.rooms.errors import (
    DuplicateMemberError,
    RoomClosedError,
    RoomFullError,
)
from app.modules.rooms.models import Member, MemberRole, Room, RoomStatus


def is_host(room: Room, user_id: int) -> bool:
    return room.host_id == user_id


def add_member(room: Room, user_id: int, *, now: Optional[datetime] = None) -> Room:
    """Append ``user_id`` as a plain member.

    Checks run in order: duplicate, capacity, closed.
    """
    if room.is_member(user_id):
        raise DuplicateMemberError("User is already a member of this room")
    if len(room.members) >= room.settings.max_members:
        raise RoomFullError("Room is full")
    if room.status == RoomStatus.CLOSED:
        raise RoomClosedError("Room is closed")

    room.members.append(
        Member(
            user_id=user_id,
            role=MemberRole.MEMBER,
            joined_at=now or datetime.now(timezone.utc),
        )
    )
    return room


def remove_member(room: Room, user_id: int) -> Room:
    """Drop every member entry for ``user_id``; a no-op for non-members.

    Host removal must be rejected by the caller.
    """
    room.members = [m for m in room.members if m.user_id != user_id]
    return room


def join_by_code(
    room: Room, user_id: int, *, now: Optional[datetime] = None
) -> tuple[Room, bool]:
    """Join flow for a room found by code.

    Returns ``(room, joined)``; ``joined`` is False when the user already
    belonged to the room, in which case the room is returned untouched.
    """
    if room.status == RoomStatus.CLOSED:
        raise RoomClosedError("Room is closed")
    if room.is_member(user_id):
        return room, False
    add_member(room, user_id, now=now)
    return room, True
