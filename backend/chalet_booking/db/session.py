"""
Async engine and session factory.

Each request gets one session; it is committed when the handler returns
and rolled back on any exception. The reservation coordinator commits on
its own, inside the per-listing lock.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from chalet_booking.core.config import get_settings

settings = get_settings()


def build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # SQLite has no server-side pool to tune
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for code that outlives a single request (e.g. websocket watchers)."""
    return SessionLocal
