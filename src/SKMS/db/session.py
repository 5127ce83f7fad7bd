# src/SKMS/db/session.py
from __future__ import annotations

import re
from functools import lru_cache
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from SKMS.app_logger import get_logger
from SKMS.core.config import settings

log = get_logger("db")


def _mask(url: str) -> str:
    return re.sub(r'//([^:@/]+)(?::[^@/]+)?@', r'//\1:*****@', url)


def build_engine(url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """
    Create an async engine for `url` (defaults to settings.DATABASE_URL).

    In-memory SQLite gets a StaticPool so every session sees the same database;
    TESTING uses NullPool to avoid sharing driver connections across loops.
    """
    url = url or settings.DATABASE_URL
    u = make_url(url)
    kwargs: dict = {"echo": settings.DB_ECHO if echo is None else echo}

    if u.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if not u.database or u.database == ":memory:":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        if settings.TESTING:
            kwargs["poolclass"] = NullPool

    log.info(
        "DB: engine (driver=%s host=%s db=%s) url=%s",
        f"{u.get_backend_name()}+{u.get_driver_name()}", u.host, u.database, _mask(url),
    )
    return create_async_engine(url, **kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


@lru_cache
def get_engine() -> AsyncEngine:
    return build_engine()


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide async sessionmaker."""
    return build_sessionmaker(get_engine())


async def create_all(engine: AsyncEngine) -> None:
    from SKMS.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------------------------------------------------------------------------
# FastAPI dependency
#   The app lifespan stores an app-scoped sessionmaker on app.state; fall back
#   to the process-wide one when running outside the app (CLI, worker).
# ---------------------------------------------------------------------------

async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    maker = getattr(request.app.state, "async_sessionmaker", None) or get_sessionmaker()
    async with maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
