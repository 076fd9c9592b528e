"""Room status transitions and leaderboard ranking.

States: waiting -> active -> completed, with closed reachable from any
non-closed state by an explicit host action. Closed is terminal. A room
only completes once every participant snapshotted at start has submitted.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from app.modules.rooms.errors import (
    InvalidStateTransitionError,
    NotAParticipantError,
    RoomClosedError,
)
from app.modules.rooms.models import (
    LeaderboardEntry,
    Participant,
    Room,
    RoomStatus,
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def start_quiz(room: Room, quiz_id: int, *, now: Optional[datetime] = None) -> Room:
    """Move ``waiting -> active`` and snapshot current members as participants."""
    if room.status != RoomStatus.WAITING:
        raise InvalidStateTransitionError(
            "Quiz can only be started from waiting status"
        )
    room.quiz_id = quiz_id
    room.status = RoomStatus.ACTIVE
    room.session.started_at = now or _now_utc()
    room.session.completed_at = None
    room.session.participants = [
        Participant(user_id=m.user_id, score=0, rank=0, completed_at=None)
        for m in room.members
    ]
    return room


def calculate_ranks(room: Room) -> Room:
    """Rank completed participants by score desc, then earlier completion.

    ``sorted`` is stable, so exact ties keep participant order.
    """
    finished = sorted(
        (p for p in room.session.participants if p.completed_at is not None),
        key=lambda p: (-p.score, p.completed_at),
    )
    for position, participant in enumerate(finished, start=1):
        participant.rank = position
    return room


def submit_attempt(
    room: Room,
    user_id: int,
    attempt_id: Optional[int],
    score: float,
    *,
    now: Optional[datetime] = None,
) -> Room:
    """Record a participant's result, re-rank, and complete the room if everyone is done."""
    if room.status == RoomStatus.CLOSED:
        raise RoomClosedError("Room is closed")
    participant = room.session.participant(user_id)
    if participant is None:
        raise NotAParticipantError("User is not a participant in this quiz")

    stamp = now or _now_utc()
    participant.attempt_id = attempt_id
    participant.score = score
    participant.completed_at = stamp

    calculate_ranks(room)

    if all(p.completed_at is not None for p in room.session.participants):
        room.status = RoomStatus.COMPLETED
        room.session.completed_at = stamp
    return room


def get_leaderboard(room: Room) -> list[LeaderboardEntry]:
    entries = [p for p in room.session.participants if p.completed_at is not None]
    entries.sort(key=lambda p: p.rank)
    return [
        LeaderboardEntry(
            user_id=p.user_id,
            score=p.score,
            rank=p.rank,
            completed_at=p.completed_at,  # type: ignore[arg-type]
        )
        for p in entries
    ]


def close_room(room: Room) -> Room:
    if room.status == RoomStatus.CLOSED:
        raise InvalidStateTransitionError("Room is already closed")
    room.status = RoomStatus.CLOSED
    return room
