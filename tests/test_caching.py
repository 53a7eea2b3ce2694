"""Tests for the normalization cache and the response cache."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rateit.caching import (
    AnswerCacheKey,
    CachedNormalization,
    NormalizationCache,
    ResponseCache,
)
from rateit.db import create_session_factory
from rateit.exceptions import ExternalServiceUnavailable
from rateit.models import AnswerCacheEntry, CacheScope, NormalizationCacheEntry
from rateit.models.base import utcnow
from rateit.normalization import stable_hash

if TYPE_CHECKING:
    from conftest import SeedEntity


AUI = CachedNormalization(
    normalized_name="al akhawayn",
    display_name="Al Akhawayn University",
    location="Ifrane",
    country="Morocco",
    used_external=True,
)


async def expire_all(session_factory: async_sessionmaker[AsyncSession], model: type) -> None:
    async with session_factory() as session, session.begin():
        await session.execute(update(model).values(expires_at=utcnow() - timedelta(hours=1)))


@pytest.fixture
async def broken_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a database with no tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    yield create_session_factory(engine)
    await engine.dispose()


# ─────────────────────────────────────────────────────────────────────────────
# Normalization cache
# ─────────────────────────────────────────────────────────────────────────────


class TestNormalizationCache:
    """Tests for NormalizationCache."""

    async def test_put_then_get(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        cache = NormalizationCache(session_factory)

        await cache.put(stable_hash("AUI"), "AUI", AUI)

        assert await cache.get(stable_hash("aui")) == AUI

    async def test_put_overwrites(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        cache = NormalizationCache(session_factory)
        fallback = CachedNormalization("aui", "AUI", None, None, used_external=False)

        await cache.put(stable_hash("AUI"), "AUI", fallback)
        await cache.put(stable_hash("AUI"), "AUI", AUI)

        assert await cache.get(stable_hash("AUI")) == AUI

    async def test_expired_entry_is_a_miss(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = NormalizationCache(session_factory)
        await cache.put(stable_hash("AUI"), "AUI", AUI)

        await expire_all(session_factory, NormalizationCacheEntry)

        assert await cache.get(stable_hash("AUI")) is None
        assert await cache.sweep_expired() == 1

    async def test_sweep_failure_removes_nothing(
        self, broken_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = NormalizationCache(broken_factory)

        assert await cache.sweep_expired() == 0

    async def test_storage_failure_is_a_miss(
        self, broken_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = NormalizationCache(broken_factory)

        await cache.put(stable_hash("AUI"), "AUI", AUI)

        assert await cache.get(stable_hash("AUI")) is None


# ─────────────────────────────────────────────────────────────────────────────
# Response cache
# ─────────────────────────────────────────────────────────────────────────────


class TestAnswerCacheKey:
    """Tests for AnswerCacheKey construction."""

    def test_global_key_ignores_case_and_padding(self) -> None:
        a = AnswerCacheKey.for_global("Best school in Kenya?", " Kenya ")
        b = AnswerCacheKey.for_global("  best school in kenya?", "kenya")

        assert a == b
        assert a.cache_key == b.cache_key

    def test_global_key_without_region(self) -> None:
        key = AnswerCacheKey.for_global("Best school?", None)

        assert key.region is None
        assert key.cache_key == f"global:{stable_hash('Best school?')}:"
        assert AnswerCacheKey.for_global("Best school?", "  ") == key

    def test_regions_are_distinct(self) -> None:
        kenya = AnswerCacheKey.for_global("Best school?", "Kenya")
        morocco = AnswerCacheKey.for_global("Best school?", "Morocco")

        assert kenya.cache_key != morocco.cache_key

    def test_entity_scope_differs_from_global(self) -> None:
        entity_id = uuid4()
        key = AnswerCacheKey.for_entity(entity_id, "How is the food?")

        assert key.scope == CacheScope.ENTITY
        assert key.cache_key == f"entity:{entity_id}:{stable_hash('How is the food?')}"
        assert key.cache_key != AnswerCacheKey.for_global("How is the food?").cache_key


class TestResponseCache:
    """Tests for ResponseCache."""

    async def test_builder_runs_once_until_expiry(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = ResponseCache(session_factory)
        key = AnswerCacheKey.for_global("Best school in Kenya?", "Kenya")
        builder = AsyncMock(return_value="Try Kenya A")

        first = await cache.get_or_build_answer(key, builder)
        second = await cache.get_or_build_answer(key, builder)

        assert first == second == "Try Kenya A"
        assert builder.await_count == 1

        await expire_all(session_factory, AnswerCacheEntry)
        third = await cache.get_or_build_answer(key, builder)

        assert third == "Try Kenya A"
        assert builder.await_count == 2

    async def test_builder_errors_propagate_and_are_not_cached(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = ResponseCache(session_factory)
        key = AnswerCacheKey.for_global("Best school?")
        failing = AsyncMock(side_effect=ExternalServiceUnavailable("down"))

        with pytest.raises(ExternalServiceUnavailable):
            await cache.get_or_build_answer(key, failing)

        assert await cache.get(key) is None

    async def test_put_resets_text(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        cache = ResponseCache(session_factory)
        key = AnswerCacheKey.for_global("Best school?", "Kenya")

        await cache.put(key, "old answer")
        await cache.put(key, "new answer")

        assert await cache.get(key) == "new answer"

    async def test_purge_entity_keeps_global_answers(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        seed_entity: SeedEntity,
    ) -> None:
        entity = await seed_entity("Strathmore University")
        cache = ResponseCache(session_factory)
        entity_key = AnswerCacheKey.for_entity(entity.id, "How is the food?")
        global_key = AnswerCacheKey.for_global("How is the food?")
        await cache.put(entity_key, "Pretty good")
        await cache.put(global_key, "Depends on the school")

        await cache.purge_entity(entity.id)

        assert await cache.get(entity_key) is None
        assert await cache.get(global_key) == "Depends on the school"

    async def test_sweep_expired(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        cache = ResponseCache(session_factory)
        await cache.put(AnswerCacheKey.for_global("one"), "1")
        await cache.put(AnswerCacheKey.for_global("two"), "2")
        await expire_all(session_factory, AnswerCacheEntry)
        await cache.put(AnswerCacheKey.for_global("three"), "3")

        assert await cache.sweep_expired() == 2
        assert await cache.get(AnswerCacheKey.for_global("three")) == "3"

    async def test_storage_failure_still_builds(
        self, broken_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = ResponseCache(broken_factory)
        builder = AsyncMock(return_value="fresh")

        result = await cache.get_or_build_answer(AnswerCacheKey.for_global("q"), builder)

        assert result == "fresh"
        builder.assert_awaited_once()

    async def test_sweep_failure_removes_nothing(
        self, broken_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        cache = ResponseCache(broken_factory)

        assert await cache.sweep_expired() == 0
