"""
Async SQLAlchemy engine, session factory and unit of work.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.
``session_scope`` commits on success, rolls back on error, and only
after a successful commit hands captured domain events to the bus.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from peerride.config import settings

if TYPE_CHECKING:
    from .events import EventBus

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
    bus: Optional["EventBus"] = None,
) -> AsyncIterator[AsyncSession]:
    """One unit of work: commit on success, rollback on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        if bus is not None:
            await bus.publish_committed(session)
