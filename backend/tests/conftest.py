"""
Baby Diary Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment overrides are applied BEFORE any babydiary import so the
       settings singleton picks them up. API tests run the real FastAPI app
       against a fresh in-memory SQLite database per test (aiosqlite with a
       StaticPool, so every session shares the one connection), with
       `get_db_session` overridden to use it.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock session for service unit tests
    ├── temp_storage: temporary upload root
    ├── sample_image_bytes / sample_png_bytes: real images made with Pillow
    ├── db_engine → session_factory → app → client
    └── register / auth_headers helpers for API tests
"""

import io
import os
import tempfile
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="babydiary_test_")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import babydiary.models  # noqa: F401
from babydiary.database import Base, get_db_session
from babydiary.main import create_app


# ══════════════════════════════════════════════════════════════════════════
# Unit-test Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession.

    Usage:
        mock_db_session.execute.return_value.first.return_value = (author_id, family_id)
        await authorize_post(mock_db_session, post_id, user_id, AccessMode.READ)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "uploads"
    storage_dir.mkdir()
    return str(storage_dir)


def make_image_bytes(size=(2400, 1200), fmt="JPEG", mode="RGB", color=(200, 120, 80)) -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, fmt)
    return buffer.getvalue()


@pytest.fixture
def sample_image_bytes():
    """A 2400x1200 JPEG: larger than the 1920 bound on one side."""
    return make_image_bytes()


@pytest.fixture
def sample_png_bytes():
    """A small RGBA PNG with transparency."""
    return make_image_bytes(size=(300, 200), fmt="PNG", mode="RGBA", color=(0, 128, 255, 128))


# ══════════════════════════════════════════════════════════════════════════
# Database & API Client Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def app(session_factory):
    application = create_app()

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = override_get_db_session
    return application


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ══════════════════════════════════════════════════════════════════════════
# API Helpers
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def auth_headers():
    """Builds the Authorization header for a token: auth_headers(data["token"])."""

    def _headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def register(client):
    """
    Registers a user and returns the response `data` block.

    Usage:
        alice = await register("alice@example.com", "Alice")
        bob = await register("bob@example.com", "Bob", invite_code=alice["family"]["inviteCode"])
    """

    async def _register(
        email: str,
        name: str,
        password: str = "secret123",
        invite_code: Optional[str] = None,
        family_name: Optional[str] = None,
    ) -> dict:
        body = {"email": email, "password": password, "name": name}
        if invite_code is not None:
            body["inviteCode"] = invite_code
        if family_name is not None:
            body["familyName"] = family_name
        response = await client.post("/api/auth/register", json=body)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _register
