"""Database session configuration."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from totaldash.core.config import settings

# Every entry point is a short unit of work: one status read, one upsert, one
# webhook. A small pool is plenty; overflow absorbs webhook bursts.
POOL_SIZE = 10
MAX_OVERFLOW = POOL_SIZE


def _engine_options(url: str) -> dict:
    """Pool and driver options for the configured database URL."""
    if not url.startswith("postgresql"):
        return {}
    return {
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": 300,  # Recycle connections after 5 minutes
        "pool_timeout": 30,  # Wait up to 30 seconds for a connection
        "isolation_level": "READ COMMITTED",
        "connect_args": {
            "server_settings": {
                "idle_in_transaction_session_timeout": "60000",  # Kill idle transactions after 60s
            },
            "command_timeout": 60,
        },
    }


async_engine = create_async_engine(
    str(settings.SQLALCHEMY_ASYNC_DATABASE_URI),
    **_engine_options(str(settings.SQLALCHEMY_ASYNC_DATABASE_URI)),
)

AsyncSessionLocal = async_sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=async_engine
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session to be used in dependency injection.

    Yields:
    ------
        AsyncSession: An async database session

    """
    async with AsyncSessionLocal() as db:
        try:
            yield db
        finally:
            await db.close()
