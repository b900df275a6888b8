"""pytest fixtures for the reconciliation backend tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- session_factory: Function-scoped in-memory SQLite database with all tables created
- session: Function-scoped database session on that database
- uow_factory: Function-scoped UnitOfWork factory
- settings: Test settings with both providers configured
- postgres_container: Session-scoped testcontainer PostgreSQL instance (race tests only)
- make_job / make_profile: Seed helpers committing through their own Unit of Work
"""

import os

# genrecon.app builds the application at import time
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import subprocess  # noqa: E402
from datetime import timedelta  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import AsyncGenerator  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import genrecon.models  # noqa: E402, F401
from genrecon.core.config import Settings  # noqa: E402
from genrecon.core.database import create_engine  # noqa: E402
from genrecon.core.timezone import utcnow  # noqa: E402
from genrecon.models.generation_job import GenerationJob, JobStatus, MediaClass  # noqa: E402
from genrecon.models.profile import Profile  # noqa: E402
from genrecon.uow import create_uow_factory  # noqa: E402

BACKEND_DIR = Path(__file__).resolve().parent.parent
TEST_JWT_SECRET = "test-secret-for-bearer-tokens-0123456789"


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container with migrations applied.

    Skips dependent tests when Docker is not available. Migrations are applied
    using subprocess to avoid asyncio event loop conflicts.
    """
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer(
            image="postgres:17",
            username="test",
            password="test",
            dbname="test_genrecon",
        )
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        env = os.environ.copy()
        env["DATABASE_URL"] = container.get_connection_url(driver="psycopg")
        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            capture_output=True,
            text=True,
            env=env,
            cwd=BACKEND_DIR,
        )
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a fresh in-memory database per test.

    All sessions share one SQLite connection (StaticPool), so tests that write
    through several Units of Work run reconciliation with concurrency 1.
    """
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow_factory(session_factory):
    return create_uow_factory(session_factory)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        APP_ENV="test",
        AUTH_JWT_SECRET=TEST_JWT_SECRET,
        FAL_API_KEY="fal-test-key",
        KIE_API_KEY="kie-test-key",
        FAL_BASE_URL="https://queue.fal.test",
        KIE_BASE_URL="https://api.kie.test",
        RECONCILE_CONCURRENCY=1,
        RECONCILE_PASS_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_job(uow_factory, owner_id):
    """Persist a GenerationJob and return it (detached, attributes loaded)."""

    async def _make_job(
        age: timedelta = timedelta(minutes=1),
        **fields,
    ) -> GenerationJob:
        values = {
            "owner_id": owner_id,
            "media_class": MediaClass.IMAGE,
            "provider_endpoint": "kie:kie-4o-image",
            "model": "kie-4o-image",
            "external_task_id": f"task-{uuid4().hex[:12]}",
            "status": JobStatus.PENDING,
            "credits_reserved": 10,
            "prompt": "a lighthouse at dusk",
            "created_at": utcnow() - age,
        }
        values.update(fields)
        job = GenerationJob(**values)
        async with await uow_factory() as uow:
            await uow.generation_jobs.add(job)
        return job

    return _make_job


@pytest.fixture
def make_profile(uow_factory, owner_id):
    async def _make_profile(credits: int = 100, subscription_status: str | None = None, **fields):
        profile = Profile(
            owner_id=fields.pop("owner_id", owner_id),
            credits=credits,
            subscription_status=subscription_status,
        )
        async with await uow_factory() as uow:
            await uow.profiles.add(profile)
        return profile

    return _make_profile


@pytest.fixture
def load_job(uow_factory):
    async def _load_job(job_id: UUID) -> GenerationJob | None:
        async with await uow_factory() as uow:
            return await uow.generation_jobs.get_by_id(job_id)

    return _load_job


@pytest.fixture
def load_profile(uow_factory):
    async def _load_profile(owner_id: UUID) -> Profile | None:
        async with await uow_factory() as uow:
            return await uow.profiles.get_by_owner(owner_id)

    return _load_profile

