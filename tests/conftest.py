"""Common test fixtures and configuration for pytest.

Settings are read at import time, so the environment is pinned here before
anything from totaldash is imported.
"""

import os

os.environ["SQLALCHEMY_ASYNC_DATABASE_URI"] = "sqlite+aiosqlite://"
os.environ["AUTH_ENABLED"] = "false"
os.environ["LOCAL_DEVELOPMENT"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("STRIPE_WEBHOOK_SECRET", None)
os.environ.pop("NOTIFICATION_SERVICE_URL", None)

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from totaldash.models._base import Base  # noqa: E402

# Import all fixtures so they are automatically available for all tests
from tests.fixtures.common import (  # noqa: E402, F401
    api_client,
    mock_notifier,
    mock_stripe,
    starter_plan,
    super_admin,
    tenant_caller,
    tenant_id,
)


# In-memory database shared by every session of one test
@pytest.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database engine for each test function."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for tests."""
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session
