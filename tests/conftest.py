"""
Shared fixtures: a throwaway SQLite database per test, the FastAPI app with
the session factory, secrets and clock overridden, and user helpers.
"""

import os

# Keep bcrypt cheap for every hash made through the settings default.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from auth.dependencies import get_clock, get_secrets
from auth.models import Secrets
from auth.password import hash_password, legacy_sha256
from database.models import Base, User
from database.session import get_session_factory
from main import create_app
from tests.helpers import PASSWORD, TEST_TTL, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def secrets():
    return Secrets(jwt_secret="test-secret", token_ttl_seconds=TEST_TTL)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # File-backed so every connection in the pool sees the same database.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def app(session_factory, secrets, clock):
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_secrets] = lambda: secrets
    app.dependency_overrides[get_clock] = lambda: clock
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def create_user(session_factory):
    async def _create(
        email: str,
        role: str = "lecturer",
        password: str = PASSWORD,
        *,
        legacy: bool = False,
        is_active: bool = True,
        **fields,
    ) -> User:
        digest = legacy_sha256(password) if legacy else hash_password(password, rounds=4)
        async with session_factory() as session:
            user = User(
                email=email,
                password_hash=digest,
                name=fields.pop("name", email.split("@")[0].title()),
                role=role,
                is_active=is_active,
                **fields,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _create


@pytest.fixture
def login(client):
    async def _login(email: str, password: str = PASSWORD) -> str:
        resp = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _login


@pytest.fixture
def user_token(create_user, login):
    """Create a user with ``role`` and return ``(user, token)``."""

    async def _make(email: str, role: str = "lecturer"):
        user = await create_user(email, role=role)
        return user, await login(email)

    return _make
