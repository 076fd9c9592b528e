from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.db.schemas.quiz import QuizAttemptRecord
from app.core.db_services import (
    AttemptService,
    QuizService,
    pagination,
    record_answers,
    record_questions,
    record_score,
)
from app.modules.auth import optional_current_user
from app.modules.quiz.models import QuizSnapshot
from app.modules.quiz.scoring import grade
from .schemas import (
    AttemptHistoryResponse,
    AttemptRead,
    AttemptReviewResponse,
    AttemptStatsResponse,
    AttemptSummary,
    OverallStats,
    Pagination,
    PerformancePoint,
    ReviewItem,
    SubmitAttemptRequest,
    SubmitAttemptResponse,
)


router = APIRouter()

MaybeUser = Annotated[Optional[User], Depends(optional_current_user)]


def _summary(record: QuizAttemptRecord) -> AttemptSummary:
    result = record_score(record)
    return AttemptSummary(
        id=record.id,
        quiz_id=record.quiz_id,
        room_id=record.room_id,
        quiz_snapshot=QuizSnapshot.model_validate(record.quiz_snapshot),
        score=result,
        grade=grade(result.percentage),
        time_taken=record.time_taken,
        submitted_at=record.submitted_at.isoformat(),
        is_auto_submitted=record.is_auto_submitted,
    )


async def _get_or_404(db: AttemptService, attempt_id: int) -> QuizAttemptRecord:
    record = await db.get(attempt_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
    return record


@router.post(
    f"/{settings.app.version}/attempts/submit",
    response_model=SubmitAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["attempts"],
)
async def submit_attempt(
    req: SubmitAttemptRequest,
    request: Request,
    user: MaybeUser,
    session: AsyncSession = Depends(get_session),
) -> SubmitAttemptResponse:
    quiz = await QuizService(session).get(req.quiz_id)
    if quiz is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

    record, result = await AttemptService(session).submit(
        quiz,
        req.user_answers,
        time_taken=req.time_taken,
        is_auto_submitted=req.is_auto_submitted,
        user_id=user.id if user else None,
        user_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return SubmitAttemptResponse(
        attempt_id=record.id,
        score=result,
        grade=grade(result.percentage),
        time_taken=record.time_taken,
        submitted_at=record.submitted_at.isoformat(),
        is_auto_submitted=record.is_auto_submitted,
    )


@router.get(
    f"/{settings.app.version}/attempts/history",
    response_model=AttemptHistoryResponse,
    tags=["attempts"],
)
async def attempt_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> AttemptHistoryResponse:
    records, total = await AttemptService(session).history(page=page, limit=limit)
    return AttemptHistoryResponse(
        attempts=[_summary(r) for r in records],
        pagination=Pagination(**pagination(page, limit, total)),
    )


@router.get(
    f"/{settings.app.version}/attempts/stats",
    response_model=AttemptStatsResponse,
    tags=["attempts"],
)
async def attempt_stats(session: AsyncSession = Depends(get_session)) -> AttemptStatsResponse:
    stats = await AttemptService(session).stats()
    return AttemptStatsResponse(
        overall=OverallStats(**stats["overall"]),
        recent=[_summary(r) for r in stats["recent"]],
        performance=[
            PerformancePoint(
                attempt_id=r.id,
                percentage=r.score_percentage,
                submitted_at=r.submitted_at.isoformat(),
            )
            for r in stats["performance"]
        ],
    )


@router.get(
    f"/{settings.app.version}/attempts/quiz/{{quiz_id}}",
    response_model=list[AttemptSummary],
    tags=["attempts"],
)
async def attempts_for_quiz(
    quiz_id: int, session: AsyncSession = Depends(get_session)
) -> list[AttemptSummary]:
    return [_summary(r) for r in await AttemptService(session).by_quiz(quiz_id)]


@router.get(
    f"/{settings.app.version}/attempts/{{attempt_id}}",
    response_model=AttemptRead,
    tags=["attempts"],
)
async def get_attempt(
    attempt_id: int, session: AsyncSession = Depends(get_session)
) -> AttemptRead:
    record = await _get_or_404(AttemptService(session), attempt_id)
    return AttemptRead(
        **_summary(record).model_dump(),
        user_id=record.user_id,
        time_remaining=record.time_remaining,
        user_answers=record_answers(record),
    )


@router.get(
    f"/{settings.app.version}/attempts/{{attempt_id}}/review",
    response_model=AttemptReviewResponse,
    tags=["attempts"],
)
async def review_attempt(
    attempt_id: int, session: AsyncSession = Depends(get_session)
) -> AttemptReviewResponse:
    record = await _get_or_404(AttemptService(session), attempt_id)
    quiz = await QuizService(session).get(record.quiz_id) if record.quiz_id else None
    if quiz is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Quiz no longer available"
        )

    answers = {a.question_id: a for a in record_answers(record)}
    review: list[ReviewItem] = []
    for question in record_questions(quiz):
        answer = answers.get(question.question_id)
        review.append(
            ReviewItem(
                question_id=question.question_id,
                question_text=question.question_text,
                options=question.options,
                correct_answer=question.correct_answer,
                user_answer=answer.selected_answer if answer else None,
                is_correct=answer.is_correct if answer else False,
                explanation=question.explanation,
            )
        )

    summary = _summary(record)
    return AttemptReviewResponse(
        attempt_id=record.id,
        quiz_snapshot=summary.quiz_snapshot,
        score=summary.score,
        grade=summary.grade,
        review=review,
    )


@router.delete(
    f"/{settings.app.version}/attempts/{{attempt_id}}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["attempts"],
)
async def delete_attempt(
    attempt_id: int, session: AsyncSession = Depends(get_session)
) -> Response:
    if not await AttemptService(session).delete(attempt_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
