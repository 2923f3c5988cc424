"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from portal_catalog.api.deps import get_job_context, get_portal
from portal_catalog.core.config import (
    CacheSettings,
    DiscoverySettings,
    PortalSettings,
    Settings,
    SyncSettings,
)
from portal_catalog.database import get_db
from portal_catalog.main import app
from portal_catalog.services.cache import MemoryCache, PortalCache, get_cache
from portal_catalog.services.job_runner import JobRunner, get_job_runner
from portal_catalog.services.jobs import JobContext
from fakes import FakePortalClient

# Test database URL (using SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# ============================================================================
# JSONB → JSON compatibility for SQLite
# SQLite doesn't have JSONB, so we need to render it as JSON (which is TEXT)
# ============================================================================
from sqlalchemy.dialects.sqlite.base import SQLiteTypeCompiler


# Patch SQLite's type compiler to handle JSONB
def _visit_JSONB(self, type_, **kw):
    return "JSON"


SQLiteTypeCompiler.visit_JSONB = _visit_JSONB


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with fast retries and small limits."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        debug=True,
        portal=PortalSettings(max_retries=1, retry_backoff=0),
        discovery=DiscoverySettings(categories=["الاقتصاد"], seed_terms=["م"]),
        sync=SyncSettings(failure_cooldown_hours=6.0, max_failures=3),
    )


@pytest.fixture
async def test_engine(tmp_path):
    """Create a fresh SQLite database file per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        future=True,
    )

    # Import models explicitly to ensure they're registered with SQLModel.metadata
    from portal_catalog.models.dataset import Dataset  # noqa: F401
    from portal_catalog.models.sync_log import SyncLog  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def memory_backend() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def cache(memory_backend: MemoryCache) -> PortalCache:
    return PortalCache(memory_backend, CacheSettings())


@pytest.fixture
def portal() -> FakePortalClient:
    return FakePortalClient()


@pytest.fixture
def job_runner() -> JobRunner:
    return JobRunner()


@pytest.fixture
def job_context(session_factory, portal: FakePortalClient, cache: PortalCache) -> JobContext:
    return JobContext(session_factory=session_factory, client_factory=lambda: portal, cache=cache)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    portal: FakePortalClient,
    cache: PortalCache,
    job_runner: JobRunner,
    job_context: JobContext,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client for testing."""

    async def override_get_db():
        yield db_session

    async def override_get_portal():
        yield portal

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_portal] = override_get_portal
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_job_runner] = lambda: job_runner
    app.dependency_overrides[get_job_context] = lambda: job_context

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    await job_runner.wait_idle()
    app.dependency_overrides.clear()
