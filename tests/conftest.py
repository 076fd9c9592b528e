import os
import tempfile

# Settings are read at import time, so the environment must be ready first.
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["MODE"] = "test"
os.environ["JWT_KEY_FILE"] = os.path.join(tempfile.mkdtemp(), "jwt_test_key.pem")

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402

from app.core.db.base import build_engine, create_all, get_session  # noqa: E402


def quiz_payload(correct=("A", "B", "C"), **overrides) -> dict:
    questions = [
        {
            "question_id": i,
            "question_text": f"Question {i}?",
            "options": {"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"},
            "correct_answer": answer,
            "explanation": f"Because {answer}.",
        }
        for i, answer in enumerate(correct, start=1)
    ]
    payload = {
        "quiz_title": "Sample quiz",
        "topic": "Python",
        "difficulty": "medium",
        "timer_in_minutes": 10,
        "questions": questions,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite://")
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def app(session_maker):
    from main import create_app

    application = create_app()

    async def _session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    application.dependency_overrides[get_session] = _session
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def register(client):
    """Register a user, log in by username, and return ``(user_id, headers)``."""

    async def _register(username: str, password: str = "secret123"):
        res = await client.post(
            "/v1/auth/register",
            json={
                "email": f"{username}@example.com",
                "password": password,
                "username": username,
                "display_name": username.title(),
            },
        )
        assert res.status_code == 201, res.text
        user_id = res.json()["id"]

        res = await client.post(
            "/v1/auth/login", data={"username": username, "password": password}
        )
        assert res.status_code == 200, res.text
        token = res.json()["access_token"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _register


@pytest.fixture
def create_quiz(client):
    async def _create(headers=None, **overrides) -> int:
        res = await client.post("/v1/quiz", json=quiz_payload(**overrides), headers=headers or {})
        assert res.status_code == 201, res.text
        return res.json()["id"]

    return _create
