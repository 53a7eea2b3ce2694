"""Response cache: generated answers, entity-scoped or global, 24-hour TTL.

Advisory only. Reads and writes run in their own short sessions, failures are
logged and treated as a miss, and answer generation is never blocked by the
cache.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rateit.config import settings
from rateit.db import upsert
from rateit.exceptions import CacheError
from rateit.models.base import utcnow
from rateit.models.cache import AnswerCacheEntry
from rateit.models.enums import CacheScope
from rateit.normalization.normalizer import lowercase_trim, stable_hash

logger = logging.getLogger(__name__)

AnswerBuilder = Callable[[], Awaitable[str]]


@dataclass(frozen=True)
class AnswerCacheKey:
    """Identity of a cached answer.

    Entity scope: ``(entity_id, query_hash)``. Global scope:
    ``(query_hash, region)`` with region case-folded and None when absent.
    """

    scope: CacheScope
    query_hash: str
    entity_id: UUID | None = None
    region: str | None = None
    query_text: str = field(default="", compare=False)

    @classmethod
    def for_entity(cls, entity_id: UUID, query_text: str) -> AnswerCacheKey:
        return cls(
            scope=CacheScope.ENTITY,
            query_hash=stable_hash(query_text),
            entity_id=entity_id,
            query_text=query_text,
        )

    @classmethod
    def for_global(cls, query_text: str, region: str | None = None) -> AnswerCacheKey:
        return cls(
            scope=CacheScope.GLOBAL,
            query_hash=stable_hash(query_text),
            region=lowercase_trim(region or "") or None,
            query_text=query_text,
        )

    @property
    def cache_key(self) -> str:
        """Single-column identity used as the upsert conflict target."""
        if self.scope == CacheScope.ENTITY:
            return f"entity:{self.entity_id}:{self.query_hash}"
        return f"global:{self.query_hash}:{self.region or ''}"


class ResponseCache:
    """Cache-aside store for generated answers.

    Usage:
        cache = ResponseCache(async_session_factory)
        key = AnswerCacheKey.for_entity(entity_id, "How is the food?")
        text = await cache.get_or_build_answer(key, build_answer)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        ttl: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._ttl = ttl or timedelta(hours=settings.answer_cache_ttl_hours)

    async def get(self, key: AnswerCacheKey) -> str | None:
        """Return the unexpired answer for ``key``, or None on miss or failure."""
        try:
            async with self._cache_session() as session:
                stmt = select(AnswerCacheEntry.answer_text).where(
                    AnswerCacheEntry.cache_key == key.cache_key,
                    AnswerCacheEntry.expires_at > utcnow(),
                )
                return (await session.execute(stmt)).scalar_one_or_none()
        except CacheError as exc:
            logger.warning("Answer cache lookup failed for %s: %s", key.cache_key, exc)
            return None

    async def put(self, key: AnswerCacheKey, text: str) -> None:
        """Upsert the answer for ``key`` and reset its TTL."""
        now = utcnow()
        try:
            async with self._cache_session() as session:
                table = AnswerCacheEntry.__table__
                stmt = upsert(session, table).values(
                    cache_key=key.cache_key,
                    scope=key.scope,
                    entity_id=key.entity_id,
                    query_hash=key.query_hash,
                    region=key.region,
                    query_text=key.query_text,
                    answer_text=text,
                    created_at=now,
                    expires_at=now + self._ttl,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[table.c.cache_key],
                    set_={
                        "answer_text": stmt.excluded.answer_text,
                        "query_text": stmt.excluded.query_text,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
        except CacheError as exc:
            logger.warning("Answer cache write failed for %s: %s", key.cache_key, exc)

    async def get_or_build_answer(self, key: AnswerCacheKey, builder: AnswerBuilder) -> str:
        """Return the cached answer, or build, store and return a fresh one.

        Exceptions from ``builder`` propagate and nothing is cached for them.
        """
        cached = await self.get(key)
        if cached is not None:
            logger.debug("Answer cache hit: %s", key.cache_key)
            return cached

        text = await builder()
        await self.put(key, text)
        return text

    async def purge_entity(self, entity_id: UUID) -> None:
        """Drop all entity-scoped answers for ``entity_id``."""
        try:
            async with self._cache_session() as session:
                await purge_entity_answers(session, entity_id)
        except CacheError as exc:
            logger.warning("Answer cache purge failed for entity %s: %s", entity_id, exc)

    async def sweep_expired(self) -> int:
        """Delete expired rows. Optional: reads already ignore them.

        Returns the number of rows removed, 0 when the store is unreachable.
        """
        try:
            async with self._cache_session() as session:
                result = await session.execute(
                    delete(AnswerCacheEntry).where(AnswerCacheEntry.expires_at <= utcnow())
                )
        except CacheError as exc:
            logger.warning("Answer cache sweep failed: %s", exc)
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


async def purge_entity_answers(session: AsyncSession, entity_id: UUID) -> None:
    """Delete entity-scoped answers inside the caller's transaction."""
    await session.execute(
        delete(AnswerCacheEntry).where(
            AnswerCacheEntry.scope == CacheScope.ENTITY,
            AnswerCacheEntry.entity_id == entity_id,
        )
    )
