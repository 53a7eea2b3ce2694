"""Normalization cache: memoized reasoning-service results, 7-day TTL.

Keyed by ``stable_hash(input)``. Each operation runs in its own short
session so a cache failure never touches the caller's transaction; failures
are logged and read as a miss.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rateit.config import settings
from rateit.db import upsert
from rateit.exceptions import CacheError
from rateit.models.base import utcnow
from rateit.models.cache import NormalizationCacheEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedNormalization:
    """A stored resolution of one raw input."""

    normalized_name: str
    display_name: str | None
    location: str | None
    country: str | None
    used_external: bool


class NormalizationCacheStore(Protocol):
    """Storage contract for normalization results. Must never raise."""

    async def get(self, input_hash: str) -> CachedNormalization | None: ...

    async def put(self, input_hash: str, input_text: str, value: CachedNormalization) -> None: ...


class NormalizationCache:
    """SQL-backed NormalizationCacheStore.

    Usage:
        cache = NormalizationCache(async_session_factory)
        hit = await cache.get(stable_hash("AUI"))
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ttl: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl or timedelta(days=settings.normalization_cache_ttl_days)

    async def get(self, input_hash: str) -> CachedNormalization | None:
        """Return the unexpired entry for ``input_hash``, or None."""
        try:
            async with self._cache_session() as session:
                stmt = select(NormalizationCacheEntry).where(
                    NormalizationCacheEntry.input_hash == input_hash,
                    NormalizationCacheEntry.expires_at > utcnow(),
                )
                entry = (await session.execute(stmt)).scalar_one_or_none()
        except CacheError as exc:
            logger.warning("Normalization cache lookup failed: %s", exc)
            return None

        if entry is None:
            return None

        return CachedNormalization(
            normalized_name=entry.resolved_name,
            display_name=entry.resolved_display_name,
            location=entry.location,
            country=entry.country,
            used_external=entry.used_external,
        )

    async def put(self, input_hash: str, input_text: str, value: CachedNormalization) -> None:
        """Upsert the entry and reset its expiry."""
        expires_at = utcnow() + self._ttl
        try:
            async with self._cache_session() as session:
                table = NormalizationCacheEntry.__table__
                stmt = upsert(session, table).values(
                    input_hash=input_hash,
                    input_text=input_text,
                    resolved_name=value.normalized_name,
                    resolved_display_name=value.display_name,
                    location=value.location,
                    country=value.country,
                    used_external=value.used_external,
                    created_at=utcnow(),
                    expires_at=expires_at,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.input_hash],
                    set_={
                        "input_text": stmt.excluded.input_text,
                        "resolved_name": stmt.excluded.resolved_name,
                        "resolved_display_name": stmt.excluded.resolved_display_name,
                        "location": stmt.excluded.location,
                        "country": stmt.excluded.country,
                        "used_external": stmt.excluded.used_external,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
        except CacheError as exc:
            logger.warning("Normalization cache write failed: %s", exc)

    async def sweep_expired(self) -> int:
        """Delete expired rows. Optional: reads already ignore them.

        Returns the number of rows removed, 0 when the store is unreachable.
        """
        try:
            async with self._cache_session() as session:
                result = await session.execute(
                    delete(NormalizationCacheEntry).where(
                        NormalizationCacheEntry.expires_at <= utcnow()
                    )
                )
        except CacheError as exc:
            logger.warning("Normalization cache sweep failed: %s", exc)
            return 0
        return result.rowcount or 0

    @asynccontextmanager
    async def _cache_session(self) -> AsyncIterator[AsyncSession]:
        """Short committed session; storage errors become CacheError."""
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            raise CacheError(str(exc)) from exc
