"""Database service classes for quizzes, attempts and rooms.

Services load rows, convert them to the pure domain models, call the scoring
and room engines, and write the results back. They never make HTTP
decisions; lookups return ``None`` when a row is missing.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.db.schemas.auth import User
from app.core.db.schemas.quiz import QuizAttemptRecord, QuizRecord
from app.core.db.schemas.room import (
    RoomMemberRecord,
    RoomParticipantRecord,
    RoomRecord,
)
from app.core.logging import bind, get_logger
from app.modules.quiz.models import (
    Question,
    QuizContent,
    QuizSnapshot,
    Score,
    UserAnswer,
)
from app.modules.quiz.scoring import score as score_answers
from app.modules.rooms.codes import generate_unique_room_code, normalize_room_code
from app.modules.rooms.models import (
    Member,
    MemberRole,
    Participant,
    Room,
    RoomSession,
    RoomSettings,
    RoomStatus,
)

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100
ROOM_CODE_INSERT_RETRIES = 3


class RoomConflictError(RuntimeError):
    """Another request updated the room between our read and write."""


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; everything we store is UTC
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _page(page: int, limit: int) -> tuple[int, int, int]:
    page = max(1, int(page))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit)))
    return page, limit, (page - 1) * limit


def pagination(page: int, limit: int, total: int) -> dict:
    page, limit, _ = _page(page, limit)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }


def record_questions(record: QuizRecord) -> list[Question]:
    return [Question.model_validate(q) for q in (record.questions or [])]


def record_snapshot(record: QuizRecord) -> QuizSnapshot:
    return QuizSnapshot(
        quiz_title=record.quiz_title,
        topic=record.topic,
        difficulty=record.difficulty,
        total_questions=record.total_questions,
        timer_in_minutes=record.timer_in_minutes,
    )


def record_score(record: QuizAttemptRecord) -> Score:
    return Score(
        total=record.score_total,
        correct=record.score_correct,
        wrong=record.score_wrong,
        unattempted=record.score_unattempted,
        percentage=record.score_percentage,
    )


def record_answers(record: QuizAttemptRecord) -> list[UserAnswer]:
    return [UserAnswer.model_validate(a) for a in (record.user_answers or [])]


class UserService:
    """Lookups and counter updates on users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.username == username.strip().lower())
        )
        return result.scalar_one_or_none()

    async def username_available(self, username: str) -> bool:
        return await self.get_by_username(username) is None

    async def by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {u.id: u for u in result.scalars().all()}

    async def increment(self, user_id: int, counter: str, by: int = 1) -> None:
        column = getattr(User, counter)
        await self.session.execute(
            update(User).where(User.id == user_id).values({counter: column + by})
        )

    async def record_attempt(self, user_id: int, percentage: float) -> None:
        user = await self.session.get(User, user_id)
        if user is None:
            return
        taken = user.total_quizzes_taken or 0
        user.average_score = round(
            ((user.average_score or 0) * taken + percentage) / (taken + 1), 2
        )
        user.total_quizzes_taken = taken + 1
        user.highest_score = max(user.highest_score or 0, percentage)


class QuizService:
    """Quiz persistence: create, read, list, stats, delete."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        content: QuizContent,
        *,
        created_by: Optional[int] = None,
        generated_by: str = "LLM",
    ) -> QuizRecord:
        record = QuizRecord(
            quiz_title=content.quiz_title,
            topic=content.topic,
            difficulty=content.difficulty.value,
            total_questions=content.total_questions,
            timer_in_minutes=content.timer_in_minutes,
            additional_description=content.additional_description,
            questions=[q.model_dump() for q in content.questions],
            generated_by=generated_by,
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(record)
        if created_by is not None:
            await UserService(self.session).increment(created_by, "total_quizzes_created")
        await self.session.commit()
        logger.info("Quiz saved: %s (%d questions)", record.id, record.total_questions)
        return record

    async def get(self, quiz_id: int) -> Optional[QuizRecord]:
        return await self.session.get(QuizRecord, quiz_id)

    async def search(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> tuple[Sequence[QuizRecord], int]:
        filters = []
        if topic:
            filters.append(QuizRecord.topic.ilike(f"%{topic}%"))
        if difficulty:
            filters.append(QuizRecord.difficulty == difficulty.lower())

        _, limit, offset = _page(page, limit)
        rows = await self.session.execute(
            select(QuizRecord)
            .where(*filters)
            .order_by(QuizRecord.created_at.desc(), QuizRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.scalar(
            select(func.count(QuizRecord.id)).where(*filters)
        )
        return rows.scalars().all(), int(total or 0)

    async def stats(self) -> dict:
        total, avg_questions = (
            await self.session.execute(
                select(func.count(QuizRecord.id), func.avg(QuizRecord.total_questions))
            )
        ).one()
        by_difficulty = await self.session.execute(
            select(QuizRecord.difficulty, func.count(QuizRecord.id)).group_by(
                QuizRecord.difficulty
            )
        )
        return {
            "total_quizzes": int(total or 0),
            "avg_questions": round(float(avg_questions or 0)),
            "by_difficulty": {d: int(c) for d, c in by_difficulty.all()},
        }

    async def delete(self, quiz_id: int) -> bool:
        record = await self.get(quiz_id)
        if record is None:
            return False
        await self.session.delete(record)
        await self.session.commit()
        return True


class AttemptService:
    """Scores and stores quiz attempts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def submit(
        self,
        quiz: QuizRecord,
        answers: list[UserAnswer],
        *,
        time_taken: int,
        is_auto_submitted: bool = False,
        user_id: Optional[int] = None,
        room_id: Optional[int] = None,
        user_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        commit: bool = True,
    ) -> tuple[QuizAttemptRecord, Score]:
        result = score_answers(record_questions(quiz), answers)
        record = QuizAttemptRecord(
            quiz_id=quiz.id,
            user_id=user_id,
            room_id=room_id,
            quiz_snapshot=record_snapshot(quiz).model_dump(),
            user_answers=[a.model_dump() for a in answers],
            score_total=result.total,
            score_correct=result.correct,
            score_wrong=result.wrong,
            score_unattempted=result.unattempted,
            score_percentage=result.percentage,
            time_taken=time_taken,
            time_remaining=quiz.timer_in_minutes * 60 - time_taken,
            submitted_at=datetime.now(timezone.utc),
            is_auto_submitted=is_auto_submitted,
            user_ip=user_ip,
            user_agent=user_agent,
        )
        self.session.add(record)
        if user_id is not None:
            await UserService(self.session).record_attempt(user_id, result.percentage)
        await self.session.flush()
        if commit:
            await self.session.commit()
        logger.info(
            "Attempt saved: %s score %d/%d (%.2f%%)",
            record.id,
            result.correct,
            result.total,
            result.percentage,
        )
        return record, result

    async def get(self, attempt_id: int) -> Optional[QuizAttemptRecord]:
        return await self.session.get(QuizAttemptRecord, attempt_id)

    async def delete(self, attempt_id: int) -> bool:
        record = await self.get(attempt_id)
        if record is None:
            return False
        await self.session.delete(record)
        await self.session.commit()
        return True

    async def history(
        self, *, page: int = 1, limit: int = 10
    ) -> tuple[Sequence[QuizAttemptRecord], int]:
        _, limit, offset = _page(page, limit)
        rows = await self.session.execute(
            select(QuizAttemptRecord)
            .order_by(QuizAttemptRecord.submitted_at.desc(), QuizAttemptRecord.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self.session.scalar(select(func.count(QuizAttemptRecord.id)))
        return rows.scalars().all(), int(total or 0)

    async def by_quiz(self, quiz_id: int) -> Sequence[QuizAttemptRecord]:
        rows = await self.session.execute(
            select(QuizAttemptRecord)
            .where(QuizAttemptRecord.quiz_id == quiz_id)
            .order_by(QuizAttemptRecord.submitted_at.desc(), QuizAttemptRecord.id.desc())
        )
        return rows.scalars().all()

    async def stats(self) -> dict:
        pct = QuizAttemptRecord.score_percentage
        total, avg, high, low = (
            await self.session.execute(
                select(
                    func.count(QuizAttemptRecord.id),
                    func.avg(pct),
                    func.max(pct),
                    func.min(pct),
                )
            )
        ).one()
        recent = await self.session.execute(
            select(QuizAttemptRecord)
            .order_by(QuizAttemptRecord.submitted_at.desc(), QuizAttemptRecord.id.desc())
            .limit(5)
        )
        performance = await self.session.execute(
            select(QuizAttemptRecord)
            .order_by(QuizAttemptRecord.submitted_at.asc(), QuizAttemptRecord.id.asc())
            .limit(20)
        )
        return {
            "overall": {
                "total_attempts": int(total or 0),
                "average_score": round(float(avg or 0), 2),
                "highest_score": float(high or 0),
                "lowest_score": float(low or 0),
            },
            "recent": recent.scalars().all(),
            "performance": performance.scalars().all(),
        }


def room_from_record(record: RoomRecord) -> Room:
    return Room(
        id=record.id,
        room_code=record.room_code,
        name=record.name,
        description=record.description or "",
        host_id=record.host_id,
        quiz_id=record.quiz_id,
        status=RoomStatus(record.status),
        settings=RoomSettings(
            max_members=record.max_members,
            is_private=record.is_private,
            allow_member_invite=record.allow_member_invite,
            show_leaderboard_during_quiz=record.show_leaderboard_during_quiz,
        ),
        members=[
            Member(
                user_id=m.user_id,
                role=MemberRole(m.role),
                joined_at=_aware(m.joined_at),  # type: ignore[arg-type]
            )
            for m in record.members
        ],
        session=RoomSession(
            started_at=_aware(record.started_at),
            completed_at=_aware(record.completed_at),
            participants=[
                Participant(
                    user_id=p.user_id,
                    attempt_id=p.attempt_id,
                    score=p.score,
                    rank=p.rank,
                    completed_at=_aware(p.completed_at),
                )
                for p in record.participants
            ],
        ),
        created_at=_aware(record.created_at),  # type: ignore[arg-type]
    )


def _apply_room(record: RoomRecord, room: Room) -> None:
    record.name = room.name
    record.description = room.description
    record.host_id = room.host_id
    record.quiz_id = room.quiz_id
    record.status = room.status.value
    record.max_members = room.settings.max_members
    record.is_private = room.settings.is_private
    record.allow_member_invite = room.settings.allow_member_invite
    record.show_leaderboard_during_quiz = room.settings.show_leaderboard_during_quiz
    record.started_at = room.session.started_at
    record.completed_at = room.session.completed_at
    # Always dirty the parent row so the version check runs
    record.updated_at = datetime.now(timezone.utc)

    wanted_members = {m.user_id: m for m in room.members}
    for rec in list(record.members):
        if rec.user_id not in wanted_members:
            record.members.remove(rec)
    existing_members = {rec.user_id: rec for rec in record.members}
    for m in room.members:
        rec = existing_members.get(m.user_id)
        if rec is None:
            record.members.append(
                RoomMemberRecord(user_id=m.user_id, role=m.role.value, joined_at=m.joined_at)
            )
        else:
            rec.role = m.role.value

    wanted_participants = {p.user_id: p for p in room.session.participants}
    for rec in list(record.participants):
        if rec.user_id not in wanted_participants:
            record.participants.remove(rec)
    existing_participants = {rec.user_id: rec for rec in record.participants}
    for p in room.session.participants:
        rec = existing_participants.get(p.user_id)
        if rec is None:
            rec = RoomParticipantRecord(user_id=p.user_id)
            record.participants.append(rec)
        rec.attempt_id = p.attempt_id
        rec.score = p.score
        rec.rank = p.rank
        rec.completed_at = p.completed_at


class RoomService:
    """Loads and saves the room aggregate."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def code_exists(self, code: str) -> bool:
        found = await self.session.scalar(
            select(RoomRecord.id).where(RoomRecord.room_code == code)
        )
        return found is not None

    async def create(
        self,
        *,
        host_id: int,
        name: str,
        description: str = "",
        settings: Optional[RoomSettings] = None,
        quiz_id: Optional[int] = None,
    ) -> tuple[RoomRecord, Room]:
        last_error: Optional[IntegrityError] = None
        for _ in range(ROOM_CODE_INSERT_RETRIES):
            code = await generate_unique_room_code(self.code_exists)
            room = Room.create(
                room_code=code,
                name=name,
                host_id=host_id,
                description=description,
                settings=settings,
                quiz_id=quiz_id,
            )
            record = RoomRecord(
                room_code=room.room_code,
                host_id=host_id,
                created_at=room.created_at,
            )
            _apply_room(record, room)
            self.session.add(record)
            try:
                await self.session.flush()
            except IntegrityError as e:
                # Lost a race on the room code; resample
                await self.session.rollback()
                last_error = e
                continue
            await UserService(self.session).increment(host_id, "total_rooms_created")
            await self.session.commit()
            room.id = record.id
            bind(logger, room=room.room_code, user=host_id).info("Room created")
            return record, room
        raise RoomConflictError("Could not allocate a unique room code") from last_error

    async def get(self, room_id: int) -> Optional[RoomRecord]:
        return await self.session.get(RoomRecord, room_id)

    async def get_by_code(self, code: str) -> Optional[RoomRecord]:
        result = await self.session.execute(
            select(RoomRecord).where(RoomRecord.room_code == normalize_room_code(code))
        )
        return result.scalar_one_or_none()

    async def load(self, room_id: int) -> Optional[tuple[RoomRecord, Room]]:
        record = await self.get(room_id)
        if record is None:
            return None
        return record, room_from_record(record)

    async def save(self, record: RoomRecord, room: Room) -> Room:
        """Write ``room`` back; raises RoomConflictError on a concurrent update."""
        _apply_room(record, room)
        try:
            await self.session.flush()
        except StaleDataError as e:
            await self.session.rollback()
            raise RoomConflictError("Room was modified concurrently, retry") from e
        await self.session.commit()
        return room

    async def for_member(self, user_id: int) -> list[Room]:
        rows = await self.session.execute(
            select(RoomRecord)
            .join(RoomMemberRecord, RoomMemberRecord.room_id == RoomRecord.id)
            .where(
                RoomMemberRecord.user_id == user_id,
                RoomRecord.status != RoomStatus.CLOSED.value,
            )
            .order_by(RoomRecord.created_at.desc(), RoomRecord.id.desc())
        )
        return [room_from_record(r) for r in rows.scalars().unique().all()]
