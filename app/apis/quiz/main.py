from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.db.schemas.quiz import QuizRecord
from app.core.db_services import QuizService, pagination, record_questions
from app.core.logging import get_logger
from app.modules.auth import optional_current_user
from app.modules.quiz.generator import QuizGenerationError, QuizGenerator
from app.modules.quiz.models import QuizContent
from .schemas import (
    CreateQuizRequest,
    GenerateQuizRequest,
    Pagination,
    QuizListResponse,
    QuizRead,
    QuizStatsResponse,
    QuizSummary,
)


router = APIRouter()
logger = get_logger(__name__)

MaybeUser = Annotated[Optional[User], Depends(optional_current_user)]


def get_quiz_generator() -> QuizGenerator:
    return QuizGenerator()


def _summary(record: QuizRecord) -> QuizSummary:
    return QuizSummary(
        id=record.id,
        quiz_title=record.quiz_title,
        topic=record.topic,
        difficulty=record.difficulty,
        total_questions=record.total_questions,
        timer_in_minutes=record.timer_in_minutes,
        additional_description=record.additional_description,
        generated_by=record.generated_by,
        created_by=record.created_by,
        created_at=record.created_at.isoformat(),
    )


def _read(record: QuizRecord) -> QuizRead:
    return QuizRead(
        **_summary(record).model_dump(),
        questions=record_questions(record),
    )


async def _get_or_404(db: QuizService, quiz_id: int) -> QuizRecord:
    record = await db.get(quiz_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return record


@router.post(
    f"/{settings.app.version}/quiz/generate",
    response_model=QuizRead,
    status_code=status.HTTP_201_CREATED,
    tags=["quiz"],
)
async def generate_quiz(
    req: GenerateQuizRequest,
    user: MaybeUser,
    generator: QuizGenerator = Depends(get_quiz_generator),
    session: AsyncSession = Depends(get_session),
) -> QuizRead:
    try:
        draft = await generator.generate(
            topic=req.topic,
            difficulty=req.difficulty,
            number_of_questions=req.number_of_questions,
            additional_description=req.additional_description,
        )
    except QuizGenerationError as e:
        logger.error("Quiz generation failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Failed to generate quiz", **e.details},
        )

    try:
        content = QuizContent(
            quiz_title=draft.quiz_title,
            topic=draft.topic,
            difficulty=draft.difficulty,
            timer_in_minutes=req.timer_in_minutes,
            additional_description=req.additional_description,
            questions=draft.questions,
        )
    except ValidationError as e:
        logger.error("Generated quiz rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": "Generated quiz was malformed", "errors": [str(e)]},
        )
    record = await QuizService(session).create(
        content, created_by=user.id if user else None, generated_by="LLM"
    )
    return _read(record)


@router.post(
    f"/{settings.app.version}/quiz",
    response_model=QuizRead,
    status_code=status.HTTP_201_CREATED,
    tags=["quiz"],
)
async def create_quiz(
    req: CreateQuizRequest,
    user: MaybeUser,
    session: AsyncSession = Depends(get_session),
) -> QuizRead:
    record = await QuizService(session).create(
        req, created_by=user.id if user else None, generated_by="manual"
    )
    return _read(record)


@router.get(
    f"/{settings.app.version}/quiz",
    response_model=QuizListResponse,
    tags=["quiz"],
)
async def list_quizzes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
) -> QuizListResponse:
    records, total = await QuizService(session).search(
        page=page, limit=limit, topic=topic, difficulty=difficulty
    )
    return QuizListResponse(
        quizzes=[_summary(r) for r in records],
        pagination=Pagination(**pagination(page, limit, total)),
    )


@router.get(
    f"/{settings.app.version}/quiz/stats",
    response_model=QuizStatsResponse,
    tags=["quiz"],
)
async def quiz_stats(session: AsyncSession = Depends(get_session)) -> QuizStatsResponse:
    return QuizStatsResponse(**await QuizService(session).stats())


@router.get(
    f"/{settings.app.version}/quiz/{{quiz_id}}",
    response_model=QuizRead,
    tags=["quiz"],
)
async def get_quiz(quiz_id: int, session: AsyncSession = Depends(get_session)) -> QuizRead:
    return _read(await _get_or_404(QuizService(session), quiz_id))


@router.get(
    f"/{settings.app.version}/quiz/{{quiz_id}}/preview",
    response_model=QuizSummary,
    tags=["quiz"],
)
async def preview_quiz(
    quiz_id: int, session: AsyncSession = Depends(get_session)
) -> QuizSummary:
    return _summary(await _get_or_404(QuizService(session), quiz_id))


@router.delete(
    f"/{settings.app.version}/quiz/{{quiz_id}}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["quiz"],
)
async def delete_quiz(quiz_id: int, session: AsyncSession = Depends(get_session)) -> Response:
    if not await QuizService(session).delete(quiz_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
