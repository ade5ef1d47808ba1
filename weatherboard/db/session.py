from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from weatherboard.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,   # Reconnects dropped connections automatically
    pool_size=10,         # One connection per city during a fan-out
    max_overflow=20,
    echo=settings.debug,  # Log SQL in debug mode
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a database session per request."""
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the session factory.

    The ingestion job opens one session per city, so it needs the factory
    rather than a single request-scoped session.
    """
    return AsyncSessionLocal
