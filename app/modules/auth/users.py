import re
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, cast

from fastapi import Depends, Request, Response
from fastapi_users import FastAPIUsers, exceptions
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
)
from fastapi_users.authentication.transport import Transport
from fastapi_users_db_sqlalchemy import SQLAlchemyUserDatabase
from fastapi_users.manager import BaseUserManager, IntegerIDMixin
from fastapi_users import schemas as fa_schemas

from pydantic import EmailStr, Field, field_validator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db.base import get_session
from app.core.db.schemas.auth import User
from app.core.logging import get_logger

logger = get_logger(__name__)

USERNAME_RE = re.compile(r"^[a-z0-9._]{3,30}$")
MIN_PASSWORD_LENGTH = 6


class UserRead(fa_schemas.BaseUser[int]):
    id: int
    email: EmailStr
    username: str
    display_name: str
    bio: str = ""
    avatar: Optional[str] = None


class UserCreate(fa_schemas.BaseUserCreate):
    email: EmailStr
    password: str
    username: str = Field(..., min_length=3, max_length=30)
    display_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("username")
    @classmethod
    def _normalize_username(cls, value: str) -> str:
        value = value.strip().lower()
        if not USERNAME_RE.match(value):
            raise ValueError(
                "Username must be 3-30 characters and contain only letters, "
                "numbers, dots, and underscores"
            )
        return value


class UserUpdate(fa_schemas.BaseUserUpdate):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None


async def get_user_db(
    session: AsyncSession = Depends(get_session),
) -> AsyncIterator[SQLAlchemyUserDatabase]:
    yield SQLAlchemyUserDatabase(session, User)


class UserManager(IntegerIDMixin, BaseUserManager[User, int]):  # type: ignore[type-arg]
    reset_password_token_secret = settings.app.jwt_secret
    verification_token_secret = settings.app.jwt_secret

    async def validate_password(self, password: str, user) -> None:  # type: ignore[override]
        if len(password) < MIN_PASSWORD_LENGTH:
            raise exceptions.InvalidPasswordException(
                reason=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )

    async def create(self, user_create, safe: bool = False, request: Optional[Request] = None):  # type: ignore[override]
        session: AsyncSession = self.user_db.session  # type: ignore[attr-defined]
        taken = await session.execute(
            select(User.id).where(User.username == user_create.username)
        )
        if taken.scalar_one_or_none() is not None:
            raise exceptions.UserAlreadyExists()
        return await super().create(user_create, safe=safe, request=request)

    async def authenticate(self, credentials):  # type: ignore[override]
        """Accept either an email or a username in the login form."""
        identifier = credentials.username.strip().lower()
        if "@" not in identifier:
            session: AsyncSession = self.user_db.session  # type: ignore[attr-defined]
            result = await session.execute(
                select(User.email).where(User.username == identifier)
            )
            email = result.scalar_one_or_none()
            if email is None:
                # Keep timing comparable with a failed password check
                self.password_helper.hash(credentials.password)
                return None
            credentials.username = email
        return await super().authenticate(credentials)

    async def on_after_register(self, user: User, request: Optional[Request] = None) -> None:
        logger.info("User registered: %s", user.username, extra={"user": user.id})

    async def on_after_login(
        self,
        user: User,
        request: Optional[Request] = None,
        response: Optional[Response] = None,
    ) -> None:
        await self.user_db.update(user, {"last_login": datetime.now(timezone.utc)})
        logger.info("Login successful: %s", user.username, extra={"user": user.id})


async def get_user_manager(
    user_db: SQLAlchemyUserDatabase = Depends(get_user_db),
) -> AsyncIterator[UserManager]:
    yield UserManager(user_db)


# Auth backend: JWT over Bearer, using versioned path for login
bearer_transport = BearerTransport(tokenUrl=f"{settings.app.version}/auth/login")


_jwt_strategy = None


def get_jwt_strategy():
    global _jwt_strategy
    if _jwt_strategy is None:
        from app.core.jwt_strategy import RS256JWTStrategyWithKid

        _jwt_strategy = RS256JWTStrategyWithKid(
            lifetime_seconds=settings.jwt.token_lifetime_seconds,
            key_id="v1",
        )
    return _jwt_strategy


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=cast(Transport, bearer_transport),
    get_strategy=get_jwt_strategy,
)


fastapi_users = FastAPIUsers[User, int](  # type: ignore[type-arg]
    get_user_manager,
    [auth_backend],
)

current_active_user = fastapi_users.current_user(active=True)
optional_current_user = fastapi_users.current_user(active=True, optional=True)
