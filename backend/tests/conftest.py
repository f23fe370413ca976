"""
Pytest configuration and fixtures for Vitalsman tests.
"""
import os
import uuid as uuid_module
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import JSON
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Disable rate limiting and SQL echo for tests
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"

# IMPORTANT: Patch PostgreSQL types for SQLite compatibility
# Must be done before importing any models
import sqlalchemy.dialects.postgresql as pg_dialect
from sqlalchemy.types import CHAR, TypeDecorator


class SQLiteUUID(TypeDecorator):
    """SQLite-compatible UUID type."""
    impl = CHAR(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return uuid_module.UUID(value)
        return value


pg_dialect.JSONB = JSON
pg_dialect.UUID = SQLiteUUID

from vitalsman.database import get_db
from vitalsman.models.base import Base

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# FastAPI App Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def app(db_session: AsyncSession) -> FastAPI:
    """Create test FastAPI application."""
    from vitalsman.main import app as main_app

    async def override_get_db():
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db

    yield main_app

    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Authentication Fixtures
# ============================================================================

def _headers_for(role: str) -> dict:
    from vitalsman.core.security import create_access_token

    token = create_access_token(data={"sub": "42", "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers() -> dict:
    return _headers_for("administrator")


@pytest.fixture
def editor_headers() -> dict:
    return _headers_for("editor")


@pytest.fixture
def subscriber_headers() -> dict:
    return _headers_for("subscriber")


# ============================================================================
# Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_redis():
    """Mock Redis client with a pipeline for rate limiting tests."""
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 0, 1, True])

    mock = MagicMock()
    mock.pipeline = MagicMock(return_value=pipe)
    mock.zrem = AsyncMock(return_value=1)
    mock.zrange = AsyncMock(return_value=[])
    mock.close = AsyncMock()
    mock.pipe = pipe
    return mock


# ============================================================================
# Sample Data Fixtures
# ============================================================================

@pytest.fixture
def make_metric():
    """Factory for wire-format metric samples."""

    def _make(**overrides) -> dict:
        metric = {
            "name": "LCP",
            "value": 1850.5,
            "rating": "good",
            "delta": 1850.5,
            "id": f"v4-{uuid_module.uuid4().hex[:12]}",
            "pageId": 101,
            "siteId": 1,
            "deviceType": "mobile",
            "connectionType": {
                "effectiveType": "4g",
                "downlink": 10,
                "rtt": 50,
                "saveData": False,
            },
            "timestamp": 1_790_000_000_000,
            "url": "https://example.com/blog/post",
            "navigationType": "navigate",
        }
        metric.update(overrides)
        return metric

    return _make


@pytest.fixture
def batch_meta() -> dict:
    return {
        "userAgent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)",
        "viewport": {"width": 390, "height": 844},
        "screen": {"width": 390, "height": 844},
    }


@pytest.fixture
def make_batch(make_metric, batch_meta):
    """Factory for a wire-format batch."""

    def _make(*metrics: dict) -> dict:
        return {"metrics": list(metrics) or [make_metric()], "meta": batch_meta}

    return _make
