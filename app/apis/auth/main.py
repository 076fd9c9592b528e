from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.db_services import UserService
from app.modules.auth import (
    current_active_user,
    fastapi_users,
    auth_backend,
    UserRead,
    UserCreate,
    UserUpdate,
)
from app.modules.auth.users import USERNAME_RE, get_jwt_strategy


router = APIRouter()

CurrentUser = Annotated[User, Depends(current_active_user)]


class UserStats(BaseModel):
    total_quizzes_taken: int
    total_quizzes_created: int
    average_score: float
    highest_score: float
    total_rooms_joined: int
    total_rooms_created: int


class ProfileResponse(BaseModel):
    id: int
    email: str
    username: str
    display_name: str
    bio: str
    avatar: Optional[str] = None
    stats: UserStats
    created_at: Optional[str] = None
    last_login: Optional[str] = None


class UsernameAvailability(BaseModel):
    username: str
    available: bool


@router.get(f"/{settings.app.version}/auth/.well-known/jwks.json", tags=["auth"])
async def jwks():
    """JWKS endpoint for public key distribution"""
    return JSONResponse(content=get_jwt_strategy().get_jwks())


@router.get(
    f"/{settings.app.version}/auth/me",
    response_model=ProfileResponse,
    tags=["auth"],
)
async def me(user: CurrentUser) -> ProfileResponse:
    return ProfileResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        display_name=user.display_name,
        bio=user.bio or "",
        avatar=user.avatar,
        stats=UserStats(
            total_quizzes_taken=user.total_quizzes_taken,
            total_quizzes_created=user.total_quizzes_created,
            average_score=user.average_score,
            highest_score=user.highest_score,
            total_rooms_joined=user.total_rooms_joined,
            total_rooms_created=user.total_rooms_created,
        ),
        created_at=user.created_at.isoformat() if user.created_at else None,
        last_login=user.last_login.isoformat() if user.last_login else None,
    )


@router.get(
    f"/{settings.app.version}/auth/check-username/{{username}}",
    response_model=UsernameAvailability,
    tags=["auth"],
)
async def check_username(
    username: str, session: AsyncSession = Depends(get_session)
) -> UsernameAvailability:
    normalized = username.strip().lower()
    if not USERNAME_RE.match(normalized):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username must be 3-30 characters: letters, numbers, dots, underscores",
        )
    available = await UserService(session).username_available(normalized)
    return UsernameAvailability(username=normalized, available=available)


router.include_router(
    fastapi_users.get_auth_router(auth_backend),
    prefix=f"/{settings.app.version}/auth",
    tags=["auth"],
)

router.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix=f"/{settings.app.version}/auth",
    tags=["auth"],
)

router.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix=f"/{settings.app.version}/users",
    tags=["users"],
)
