import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.db.base import build_engine, create_all
from app.core.db.schemas.auth import User
from app.core.db_services import (
    AttemptService,
    QuizService,
    RoomConflictError,
    RoomService,
    room_from_record,
)
from app.modules.quiz.models import UserAnswer
from app.modules.rooms import RoomStatus
from app.modules.rooms.membership import add_member, remove_member
from app.modules.rooms.ranking import start_quiz, submit_attempt
from app.modules.quiz.models import QuizContent

from conftest import quiz_payload


async def add_users(session, *names: str) -> list[int]:
    users = [
        User(
            email=f"{name}@example.com",
            hashed_password="x",
            username=name,
            display_name=name.title(),
        )
        for name in names
    ]
    session.add_all(users)
    await session.commit()
    return [u.id for u in users]


async def test_room_round_trip_and_member_sync(session):
    host, guest, other = await add_users(session, "host", "guest", "other")
    db = RoomService(session)

    record, room = await db.create(host_id=host, name="Evening quiz")
    assert len(room.room_code) == 6
    assert record.version == 1

    add_member(room, guest)
    add_member(room, other)
    await db.save(record, room)
    remove_member(room, other)
    await db.save(record, room)

    reloaded = room_from_record(await db.get(room.id))
    assert [m.user_id for m in reloaded.members] == [host, guest]
    assert reloaded.members[0].joined_at.tzinfo is not None
    assert record.version == 3

    found = await db.get_by_code(room.room_code.lower())
    assert found is not None and found.id == room.id


async def test_room_session_persists_ranks(session):
    host, guest = await add_users(session, "host", "guest")
    quiz = await QuizService(session).create(QuizContent(**quiz_payload()), created_by=host)
    db = RoomService(session)
    record, room = await db.create(host_id=host, name="Ranked room", quiz_id=quiz.id)
    add_member(room, guest)
    start_quiz(room, quiz.id)
    await db.save(record, room)

    submit_attempt(room, guest, attempt_id=None, score=66.67)
    await db.save(record, room)

    reloaded = room_from_record(await db.get(room.id))
    assert reloaded.status == RoomStatus.ACTIVE
    participant = reloaded.session.participant(guest)
    assert participant.rank == 1
    assert participant.score == 66.67
    assert reloaded.session.participant(host).completed_at is None

    rooms = await db.for_member(guest)
    assert [r.id for r in rooms] == [room.id]


async def test_attempt_updates_user_stats(session):
    (user_id,) = await add_users(session, "solo")
    quiz = await QuizService(session).create(QuizContent(**quiz_payload()))
    attempts = AttemptService(session)

    await attempts.submit(
        quiz,
        [UserAnswer(question_id=1, selected_answer="A")],
        time_taken=30,
        user_id=user_id,
    )
    record, result = await attempts.submit(
        quiz,
        [UserAnswer(question_id=q, selected_answer=a) for q, a in ((1, "A"), (2, "B"), (3, "C"))],
        time_taken=45,
        user_id=user_id,
    )

    user = await session.get(User, user_id)
    assert result.percentage == 100.0
    assert user.total_quizzes_taken == 2
    assert user.highest_score == 100.0
    assert user.average_score == round((33.33 + 100.0) / 2, 2)
    assert record.time_remaining == 10 * 60 - 45
    assert record.quiz_snapshot["quiz_title"] == "Sample quiz"
    assert record.user_answers[0]["is_correct"] is True


async def test_concurrent_room_update_raises_conflict(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rooms.db'}")
    await create_all(engine)
    maker = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with maker() as setup:
            host, a, b = await add_users(setup, "host", "alice", "bob")
            _, room = await RoomService(setup).create(host_id=host, name="Race")

        async with maker() as first, maker() as second:
            rec1, room1 = await RoomService(first).load(room.id)
            rec2, room2 = await RoomService(second).load(room.id)

            add_member(room1, a)
            await RoomService(first).save(rec1, room1)

            add_member(room2, b)
            with pytest.raises(RoomConflictError):
                await RoomService(second).save(rec2, room2)

        async with maker() as check:
            final = room_from_record(await RoomService(check).get(room.id))
            assert [m.user_id for m in final.members] == [host, a]
    finally:
        await engine.dispose()
