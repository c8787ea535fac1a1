"""Async SQLAlchemy engine and per-request unit of work."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from oidc_core.core.settings import DatabaseSettings


def create_session_factory(
    db: DatabaseSettings | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Build the async session factory for the configured database."""
    db = db or DatabaseSettings()
    engine = create_async_engine(
        db.async_url,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def transaction(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Run one request's reads and writes in a single transaction."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
