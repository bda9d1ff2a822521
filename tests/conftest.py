"""
Pytest configuration and fixtures for TriviaDuel tests.
"""
import os
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

# Set test environment BEFORE importing app modules
os.environ["TESTING"] = "1"

# Clear any cached settings to ensure test config is used
from triviaduel.config import get_settings
get_settings.cache_clear()

from triviaduel.database import Base, get_db, engine, async_session_maker
from triviaduel.main import app
from triviaduel.models.user import User
from triviaduel.services.auth import AuthService
from triviaduel.client.api import TriviaDuelClient


SAMPLE_QUESTIONS = [
    {
        "question": f"Question {i}?",
        "correct_answer": f"Right {i}",
        "answers": [f"Wrong {i}a", f"Right {i}", f"Wrong {i}b", f"Wrong {i}c"],
    }
    for i in range(10)
]


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema and session for each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Services commit and roll back on their own, so no outer transaction here
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db_session: AsyncSession, username: str) -> User:
    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=f"{username}@example.com",
        password_hash=AuthService.hash_password("testpass123"),
        is_active=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """The challenger in most tests."""
    return await _make_user(db_session, "alice")


@pytest_asyncio.fixture
async def test_user2(db_session: AsyncSession) -> User:
    """The challenged player in most tests."""
    return await _make_user(db_session, "bob")


@pytest_asyncio.fixture
async def outsider(db_session: AsyncSession) -> User:
    """A user who is not part of the challenge."""
    return await _make_user(db_session, "mallory")


def get_auth_header(user: User) -> dict:
    """Generate auth header for a user."""
    token = AuthService.create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_for(client: AsyncClient):
    """
    Build a TriviaDuelClient for a user that talks to the app in-process.
    Closed by the test via `async with` or left to garbage collection.
    """
    def _factory(user: User) -> TriviaDuelClient:
        token = AuthService.create_access_token(user.id)
        return TriviaDuelClient(
            "http://test", token=token, transport=ASGITransport(app=app)
        )
    return _factory


class FakeQuestionSource:
    """Stands in for Open Trivia DB; counts how often it was asked."""

    def __init__(self, questions=None):
        self.questions = questions if questions is not None else SAMPLE_QUESTIONS
        self.calls = 0

    async def fetch_questions(self, category, difficulty):
        self.calls += 1
        return [dict(q) for q in self.questions]


class FakeSleep:
    """Records requested delays instead of waiting; optional hook runs on each call."""

    def __init__(self, hook=None):
        self.delays = []
        self.hook = hook

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.hook is not None:
            await self.hook(len(self.delays))
