from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from authme_backend.config import settings
from authme_backend.db_urls import ensure_sqlite_parent_dir, normalize_database_url_for_async

# One engine per DATABASE_URL; disposed together on shutdown.
_engines: dict[str, AsyncEngine] = {}


def _create_async_engine(database_url: str) -> AsyncEngine:
    ensure_sqlite_parent_dir(database_url)
    url = normalize_database_url_for_async(database_url)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    # Keyed by URL so tests can point settings.database_url at a fresh file.
    database_url = settings.database_url
    engine = _engines.get(database_url)
    if engine is None:
        engine = _create_async_engine(database_url)
        _engines[database_url] = engine
    return engine


async def dispose_engine_cache() -> None:
    # Shut down aiosqlite worker threads before the event loop goes away.
    engines = list(_engines.values())
    _engines.clear()
    for engine in engines:
        await engine.dispose()


async def init_db() -> None:
    # Local/test bootstrap only; production schema is owned by Alembic.
    from authme_backend import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    async with _session_maker()() as session:
        yield session
