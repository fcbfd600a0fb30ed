"""
Vistagram Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before anything from `vistagram` is
       imported, so the settings singleton, the engine and the module-level
       services are all built against test values.

Fixture Hierarchy:
    Function-scoped:
    ├── mock_db_session: AsyncMock session (service unit tests)
    ├── db_engine / session_factory: in-memory SQLite (aiosqlite + StaticPool)
    ├── db_session: one session on that database
    ├── stub_llm / stub_media: stand-ins for Gemini and media re-hosting
    ├── app: create_app() wired to the test database and stubs
    ├── test_client: HTTPX AsyncClient over ASGITransport
    └── register_and_login: async helper returning (access_token, response)
"""

import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (BEFORE any vistagram import)
# ══════════════════════════════════════════════════════════════════════════

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="vistagram_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["APP_ENV"] = "test"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["CRON_ENABLED"] = "false"
os.environ["CRON_TRIGGER_TOKEN"] = ""
os.environ["MIN_USERS"] = "5"
os.environ["MIN_POSTS"] = "10"
os.environ["SEED_POST_DELAY_SECONDS"] = "0"
os.environ["RETRY_MAX_ATTEMPTS"] = "1"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "100000"

from typing import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from vistagram.database import Base, get_db_session  # noqa: E402
from vistagram.exceptions import FileStorageError  # noqa: E402
from vistagram.services.llm_base import LLMService  # noqa: E402
import vistagram.models  # noqa: E402,F401


# ══════════════════════════════════════════════════════════════════════════
# Stubs
# ══════════════════════════════════════════════════════════════════════════

class StubLLM(LLMService):
    """Deterministic LLM: numbered usernames, fixed caption."""

    def __init__(self):
        self.usernames_issued = 0
        self.captions_issued = 0

    async def generate_username(self) -> str:
        self.usernames_issued += 1
        return f"seeded_user_{self.usernames_issued}"

    async def caption_image(self, image_url: str) -> str:
        self.captions_issued += 1
        return "Golden hour over the hills"

    async def health_check(self) -> bool:
        return True


class StubMedia:
    """Re-hosting always fails, so seeded posts keep their source URL."""

    async def store_remote_image(self, url: str) -> str:
        raise FileStorageError(message="re-hosting disabled in tests")


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """AsyncMock standing in for AsyncSession (no database needed)."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Smallest JPEG-looking byte string: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test; StaticPool keeps one shared connection."""
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


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def stub_llm():
    return StubLLM()


@pytest.fixture
def stub_media():
    return StubMedia()


@pytest.fixture
def seeding_service(stub_llm, stub_media, session_factory):
    from vistagram.services.seeding_service import SeedingService
    return SeedingService(llm=stub_llm, media=stub_media, session_factory=session_factory)


@pytest.fixture
def scheduler_service(seeding_service):
    from vistagram.services.scheduler_service import SchedulerService
    service = SchedulerService(seeding=seeding_service)
    yield service
    service.stop_all_jobs()


@pytest.fixture
def app(session_factory, scheduler_service):
    """
    A fresh application per test: its own rate limiter state, its own
    scheduler, and get_db_session pointed at the in-memory database.
    """
    from vistagram.main import create_app

    application = create_app(scheduler=scheduler_service)

    async def override_get_db_session():
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
async def test_client(app):
    """
    HTTPX client talking to the app in-process.

    raise_app_exceptions=False: the catch-all 500 handler's response is
    returned instead of the exception being re-raised into the test.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Helper Fixtures
# ══════════════════════════════════════════════════════════════════════════

async def _register_and_login(client, username="alice", email="alice@example.com", password="secret123"):
    await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["accessToken"], response


@pytest.fixture
def register_and_login():
    """Async helper: register + login; returns (access_token, login response)."""
    return _register_and_login
