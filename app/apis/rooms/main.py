from __future__ import annotations

from datetime import datetime
from typing import Annotated, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.db.schemas.room import RoomRecord
from app.core.db_services import (
    AttemptService,
    QuizService,
    RoomConflictError,
    RoomService,
    UserService,
    room_from_record,
)
from app.core.logging import bind, get_logger
from app.modules.auth import current_active_user
from app.modules.quiz.scoring import grade
from app.modules.rooms import membership, ranking
from app.modules.rooms.codes import is_valid_room_code
from app.modules.rooms.errors import NotAParticipantError, RoomClosedError, RoomError
from app.modules.rooms.models import Room, RoomSettings, RoomStatus
from .schemas import (
    AddMemberRequest,
    CreateRoomRequest,
    JoinRoomResponse,
    LeaderboardItem,
    LeaderboardResponse,
    MemberRead,
    ParticipantRead,
    RoomRead,
    RoomSessionRead,
    RoomSettingsPayload,
    RoomSubmitRequest,
    RoomSubmitResponse,
    StartRoomRequest,
    UserSummary,
)


router = APIRouter()
logger = get_logger(__name__)

CurrentUser = Annotated[User, Depends(current_active_user)]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _room_error(e: RoomError) -> NoReturn:
    code = (
        status.HTTP_403_FORBIDDEN
        if isinstance(e, NotAParticipantError)
        else status.HTTP_400_BAD_REQUEST
    )
    raise HTTPException(status_code=code, detail={"code": e.code, "message": str(e)})


def _conflict(e: RoomConflictError) -> NoReturn:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _forbidden(message: str) -> NoReturn:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


async def _load_or_404(db: RoomService, room_id: int) -> tuple[RoomRecord, Room]:
    loaded = await db.load(room_id)
    if loaded is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return loaded


async def _save(db: RoomService, record: RoomRecord, room: Room) -> Room:
    try:
        return await db.save(record, room)
    except RoomConflictError as e:
        _conflict(e)


async def _render(session: AsyncSession, room: Room) -> RoomRead:
    ids = {room.host_id}
    ids.update(m.user_id for m in room.members)
    ids.update(p.user_id for p in room.session.participants)
    users = await UserService(session).by_ids(ids)

    def summary(user_id: int) -> UserSummary:
        user = users.get(user_id)
        if user is None:
            return UserSummary(id=user_id)
        return UserSummary(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            avatar=user.avatar,
        )

    return RoomRead(
        id=room.id,  # type: ignore[arg-type]
        room_code=room.room_code,
        name=room.name,
        description=room.description,
        host=summary(room.host_id),
        status=room.status.value,
        quiz_id=room.quiz_id,
        settings=RoomSettingsPayload(
            max_members=room.settings.max_members,
            is_private=room.settings.is_private,
            allow_member_invite=room.settings.allow_member_invite,
            show_leaderboard_during_quiz=room.settings.show_leaderboard_during_quiz,
        ),
        member_count=room.member_count,
        members=[
            MemberRead(
                user=summary(m.user_id),
                role=m.role.value,
                joined_at=m.joined_at.isoformat(),
            )
            for m in room.members
        ],
        session=RoomSessionRead(
            started_at=_iso(room.session.started_at),
            completed_at=_iso(room.session.completed_at),
            participants=[
                ParticipantRead(
                    user=summary(p.user_id),
                    attempt_id=p.attempt_id,
                    score=p.score,
                    rank=p.rank,
                    completed_at=_iso(p.completed_at),
                )
                for p in room.session.participants
            ],
        ),
        created_at=room.created_at.isoformat(),
    )


@router.post(
    f"/{settings.app.version}/rooms",
    response_model=RoomRead,
    status_code=status.HTTP_201_CREATED,
    tags=["rooms"],
)
async def create_room(
    req: CreateRoomRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    if req.quiz_id is not None and await QuizService(session).get(req.quiz_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    try:
        _, room = await RoomService(session).create(
            host_id=user.id,
            name=req.name.strip(),
            description=req.description.strip(),
            settings=RoomSettings(**req.settings.model_dump()),
            quiz_id=req.quiz_id,
        )
    except RoomConflictError as e:
        _conflict(e)
    return await _render(session, room)


@router.get(
    f"/{settings.app.version}/rooms/mine",
    response_model=list[RoomRead],
    tags=["rooms"],
)
async def my_rooms(
    user: CurrentUser, session: AsyncSession = Depends(get_session)
) -> list[RoomRead]:
    rooms = await RoomService(session).for_member(user.id)
    return [await _render(session, room) for room in rooms]


@router.post(
    f"/{settings.app.version}/rooms/join/{{room_code}}",
    response_model=JoinRoomResponse,
    tags=["rooms"],
)
async def join_room(
    room_code: str,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> JoinRoomResponse:
    if not is_valid_room_code(room_code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Room code must be 6 letters or digits",
        )
    db = RoomService(session)
    record = await db.get_by_code(room_code)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    room = room_from_record(record)

    try:
        room, joined = membership.join_by_code(room, user.id)
    except RoomError as e:
        _room_error(e)

    if joined:
        await UserService(session).increment(user.id, "total_rooms_joined")
        room = await _save(db, record, room)
        bind(logger, room=room.room_code, user=user.id).info("Member joined")
    return JoinRoomResponse(joined=joined, room=await _render(session, room))


@router.post(
    f"/{settings.app.version}/rooms/{{room_id}}/members",
    response_model=RoomRead,
    tags=["rooms"],
)
async def add_member(
    room_id: int,
    req: AddMemberRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    db = RoomService(session)
    record, room = await _load_or_404(db, room_id)
    if not membership.is_host(room, user.id):
        _forbidden("Only the host can add members")

    users = UserService(session)
    target = await users.get_by_username(req.username)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    try:
        membership.add_member(room, target.id)
    except RoomError as e:
        _room_error(e)

    await users.increment(target.id, "total_rooms_joined")
    room = await _save(db, record, room)
    bind(logger, room=room.room_code, user=target.id).info("Member added by host")
    return await _render(session, room)


@router.post(
    f"/{settings.app.version}/rooms/{{room_id}}/leave",
    response_model=RoomRead,
    tags=["rooms"],
)
async def leave_room(
    room_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    db = RoomService(session)
    record, room = await _load_or_404(db, room_id)
    if membership.is_host(room, user.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Host cannot leave the room; close it instead",
        )
    membership.remove_member(room, user.id)
    room = await _save(db, record, room)
    bind(logger, room=room.room_code, user=user.id).info("Member left")
    return await _render(session, room)


@router.post(
    f"/{settings.app.version}/rooms/{{room_id}}/start",
    response_model=RoomRead,
    tags=["rooms"],
)
async def start_room(
    room_id: int,
    user: CurrentUser,
    req: Optional[StartRoomRequest] = None,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    db = RoomService(session)
    record, room = await _load_or_404(db, room_id)
    if not membership.is_host(room, user.id):
        _forbidden("Only the host can start the quiz")

    quiz_id = (req.quiz_id if req else None) or room.quiz_id
    if quiz_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Room has no quiz to start"
        )
    if await QuizService(session).get(quiz_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

    try:
        ranking.start_quiz(room, quiz_id)
    except RoomError as e:
        _room_error(e)

    room = await _save(db, record, room)
    bind(logger, room=room.room_code, user=user.id).info(
        "Quiz %s started with %d participants", quiz_id, len(room.session.participants)
    )
    return await _render(session, room)


@router.post(
    f"/{settings.app.version}/rooms/{{room_id}}/submit",
    response_model=RoomSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["rooms"],
)
async def submit_room_attempt(
    room_id: int,
    req: RoomSubmitRequest,
    request: Request,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomSubmitResponse:
    db = RoomService(session)
    record, room = await _load_or_404(db, room_id)
    if room.status == RoomStatus.CLOSED:
        _room_error(RoomClosedError("Room is closed"))
    if room.session.participant(user.id) is None:
        _room_error(NotAParticipantError("User is not a participant in this quiz"))
    quiz = await QuizService(session).get(room.quiz_id) if room.quiz_id else None
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

    attempt, result = await AttemptService(session).submit(
        quiz,
        req.user_answers,
        time_taken=req.time_taken,
        is_auto_submitted=req.is_auto_submitted,
        user_id=user.id,
        room_id=room.id,
        user_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        commit=False,
    )

    try:
        ranking.submit_attempt(room, user.id, attempt.id, result.percentage)
    except RoomError as e:
        _room_error(e)

    room = await _save(db, record, room)
    participant = room.session.participant(user.id)
    bind(logger, room=room.room_code, user=user.id).info(
        "Room attempt %s scored %.2f%%, room now %s",
        attempt.id,
        result.percentage,
        room.status.value,
    )
    return RoomSubmitResponse(
        attempt_id=attempt.id,
        score=result,
        grade=grade(result.percentage),
        rank=participant.rank if participant else 0,
        room_status=room.status.value,
    )


@router.get(
    f"/{settings.app.version}/rooms/{{room_id}}",
    response_model=RoomRead,
    tags=["rooms"],
)
async def get_room(
    room_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    _, room = await _load_or_404(RoomService(session), room_id)
    if not room.is_member(user.id):
        _forbidden("You are not a member of this room")
    return await _render(session, room)


@router.get(
    f"/{settings.app.version}/rooms/{{room_id}}/leaderboard",
    response_model=LeaderboardResponse,
    tags=["rooms"],
)
async def room_leaderboard(
    room_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    _, room = await _load_or_404(RoomService(session), room_id)
    if not room.is_member(user.id):
        _forbidden("You are not a member of this room")

    entries = ranking.get_leaderboard(room)
    users = await UserService(session).by_ids(e.user_id for e in entries)
    items = []
    for entry in entries:
        u = users.get(entry.user_id)
        items.append(
            LeaderboardItem(
                rank=entry.rank,
                user=UserSummary(
                    id=entry.user_id,
                    username=u.username if u else None,
                    display_name=u.display_name if u else None,
                    avatar=u.avatar if u else None,
                ),
                score=entry.score,
                completed_at=entry.completed_at.isoformat(),
            )
        )
    return LeaderboardResponse(room_id=room_id, status=room.status.value, leaderboard=items)


@router.delete(
    f"/{settings.app.version}/rooms/{{room_id}}",
    response_model=RoomRead,
    tags=["rooms"],
)
async def close_room(
    room_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_session),
) -> RoomRead:
    db = RoomService(session)
    record, room = await _load_or_404(db, room_id)
    if not membership.is_host(room, user.id):
        _forbidden("Only the host can close the room")
    try:
        ranking.close_room(room)
    except RoomError as e:
        _room_error(e)

    room = await _save(db, record, room)
    bind(logger, room=room.room_code, user=user.id).info("Room closed")
    return await _render(session, room)
