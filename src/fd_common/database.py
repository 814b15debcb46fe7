"""Async engine, session factory and unit-of-work helpers.

Request handlers get one AsyncSession per request and the application service
owns commit / rollback. Side writes that must not share that transaction
(notifications) go through `independent_transaction`.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the few ORM-mapped tables (users)."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one AsyncSession per request = one unit of work.

    Application services own the transaction boundary (commit / rollback);
    the session is closed here after the response is produced.
    """
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def independent_transaction(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Fresh session in its own transaction: commits on exit, rolls back on error."""
    factory = session_factory or async_session_factory
    async with factory() as session:
        async with session.begin():
            yield session


async def check_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
