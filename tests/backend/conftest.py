"""
Pytest configuration and fixtures for Double M Arena tests.

Services run against a throwaway SQLite database (aiosqlite); API tests
drive the FastAPI app through httpx with the session dependency overridden.
"""

import os

# Set testing environment before importing app
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_REQUESTS"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import create_engine_for, create_session_factory, init_db
from app.core.dependencies import get_db_session
from app.main import app as fastapi_app
from app.models.user import User
from app.services.auth_service import create_access_token, get_password_hash
from app.services.email_service import get_email_service

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
async def engine(tmp_path):
    """Fresh on-disk SQLite database per test."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_stub():
    """Mail sender double recording verification emails."""
    stub = MagicMock()
    stub.send_verification_email = AsyncMock(return_value=True)
    return stub


@pytest.fixture
async def client(session_factory, email_stub):
    """HTTP client bound to the app, one database session per request."""

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_db_session] = override_get_db_session
    fastapi_app.dependency_overrides[get_email_service] = lambda: email_stub

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


async def create_user(
    session: AsyncSession,
    name: str,
    email: str | None = None,
    role: str = "user",
    is_verified: bool = True,
) -> User:
    """Insert a user whose password is PASSWORD."""
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        password_hash=PASSWORD_HASH,
        role=role,
        is_verified=is_verified,
        other_games=[],
        fav_guns=[],
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def auth_headers():
    """Build a Bearer Authorization header for a user."""

    def build(user: User) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture
def make_user(db_session):
    """Factory fixture: await make_user("Name", role="admin")."""

    async def factory(name: str, **kwargs) -> User:
        return await create_user(db_session, name, **kwargs)

    return factory
