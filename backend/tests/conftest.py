"""
Shared fixtures: in-memory SQLite per test, the FastAPI app with get_db
overridden, and helpers to create accounts and bearer headers.
"""
import os
import sys
import tempfile
from datetime import date, timedelta

# settings and the engine are built at import time
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("STATIC_DIR", tempfile.mkdtemp(prefix="mindcare-static-"))

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from mindcare.db import Base, get_db
from mindcare.main import app
from mindcare.services.accounts import create_account
from mindcare.services.auth_service import token_for
import mindcare.models  # noqa: F401

TEST_DATABASE_URL = "sqlite+aiosqlite://"
PASSWORD = "secret123"


@pytest_asyncio.fixture
async def engine(request, tmp_path):
    if request.node.get_closest_marker("file_db"):
        # one connection per session, so writers really contend on sqlite locks
        eng = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'mindcare.db'}",
            connect_args={"timeout": 15},
        )
    else:
        eng = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


def next_weekday(weekday: int, min_days_ahead: int = 1) -> date:
    """Next date on `weekday` (0 = Monday) at least `min_days_ahead` days from today."""
    d = date.today() + timedelta(days=min_days_ahead)
    while d.weekday() != weekday:
        d += timedelta(days=1)
    return d


def therapist_profile(**overrides) -> dict:
    profile = {
        "license_number": "LIC-123",
        "specializations": ["anxiety", "depression"],
        "languages": ["English"],
        "education": [{"degree": "PhD", "institution": "State University", "year": 2010}],
        "experience": 8,
        "bio": "Licensed therapist with experience in anxiety, stress and mood difficulties.",
        "hourly_rate": 100,
    }
    profile.update(overrides)
    return profile


@pytest_asyncio.fixture
async def make_account(db):
    counter = {"n": 0}

    async def _make(role: str = "user", verified: bool = True, **profile_overrides):
        counter["n"] += 1
        data = {
            "email": f"{role}{counter['n']}@example.com",
            "password": PASSWORD,
            "first_name": role.capitalize(),
            "last_name": f"Number{counter['n']}",
        }
        profile = therapist_profile(**profile_overrides) if role == "therapist" else None
        user = await create_account(db, role, data, profile)
        if role == "therapist" and verified:
            user.therapist_profile.is_verified = True
            await db.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def patient(make_account):
    return await make_account("user")


@pytest_asyncio.fixture
async def therapist(make_account):
    return await make_account("therapist")


@pytest_asyncio.fixture
async def admin(make_account):
    return await make_account("admin")
