"""
Async SQLAlchemy engine and session factory.

Production runs on PostgreSQL through ``asyncpg``; the test-suite points
``create_engine`` at a SQLite file through ``aiosqlite``.  Store adapters
open one short session per operation, so the pool only needs to cover
concurrent requests, not long-lived units of work.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from toda_dispatch.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def create_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(
        url, pool_size=20, max_overflow=10, pool_pre_ping=True
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Booking rows are converted to domain values right after commit
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine(settings.database_url)
async_session_factory = make_session_factory(engine)
