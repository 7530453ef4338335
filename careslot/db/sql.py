# careslot/db/sql.py
from __future__ import annotations

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from careslot.core.config import settings
from careslot.db.base import Base


def build_engine(dsn: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """
    Create the async engine.
    Pool sizing only applies to server databases; sqlite keeps its default pool.
    """
    dsn = dsn or settings.SQL_DSN
    echo = settings.DB_ECHO if echo is None else echo

    if make_url(dsn).get_backend_name() == "sqlite":
        return create_async_engine(dsn, echo=echo)

    return create_async_engine(
        dsn,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


engine = build_engine()
AsyncSessionLocal = build_session_factory(engine)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """
    Provide a DB session for each request.
    Commit on success, rollback on any error.
    """
    session_factory = request.app.state.services.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine, *, drop: bool = False) -> None:
    """
    Create all tables (drop first when asked).
    """
    # Import all models so they get registered on Base.metadata
    from careslot import models  # noqa: F401

    async with bind.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
