"""Database connection and session management."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import Table, event, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rateit.config import settings
from rateit.models import Base
from rateit.normalization.trigram import trigram_similarity


def configure_engine(engine: AsyncEngine) -> AsyncEngine:
    """Install dialect-specific hooks on an engine.

    SQLite has no pg_trgm, so the pure-Python trigram function is registered
    as ``similarity()`` on every new connection.
    """
    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _register_similarity(dbapi_connection: Any, connection_record: Any) -> None:  # pyright: ignore[reportUnusedFunction]
            dbapi_connection.create_function("similarity", 2, trigram_similarity)

    return engine


def create_engine(url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """Create a configured async engine (defaults from settings)."""
    engine = create_async_engine(
        url or settings.database_url,
        echo=settings.database_echo if echo is None else echo,
    )
    return configure_engine(engine)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by services and cache stores."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = create_engine()

async_session_factory = create_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session_factory() as session:
        yield session


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    target = bind or engine
    async with target.begin() as conn:
        if conn.dialect.name == "postgresql":
            # Trigram similarity + GIN indexes for candidate search
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))
        await conn.run_sync(Base.metadata.create_all)


def upsert(session: AsyncSession, table: Table) -> Any:
    """Dialect-specific INSERT supporting ``on_conflict_do_*``.

    PostgreSQL and SQLite share the ON CONFLICT syntax, so callers build one
    statement for both.
    """
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(table)
    return sqlite.insert(table)
