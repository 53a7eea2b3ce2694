"""Shared pytest fixtures for RateIt tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock
from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rateit.caching.normalization_cache import CachedNormalization
from rateit.config import settings
from rateit.db import configure_engine, create_session_factory, init_db
from rateit.inference.schemas import OrganizationName
from rateit.models import (
    Base,
    Country,
    Entity,
    EntityAlias,
    EntityStats,
    FeedbackCategory,
    FeedbackItem,
    Location,
    ModerationStatus,
)
from rateit.normalization import normalize
from rateit.schemas import AggregateStats

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a throwaway database engine.

    Uses RATEIT_TEST_DATABASE_URL (PostgreSQL) when set, otherwise a fresh
    SQLite file per test with the trigram function registered.
    """
    url = settings.test_database_url or f"sqlite+aiosqlite:///{tmp_path / 'rateit.db'}"
    engine = configure_engine(create_async_engine(url, echo=False))

    await init_db(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine (used by the caches)."""
    return create_session_factory(test_engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for the code under test. Tests commit explicitly."""
    async with session_factory() as session:
        yield session


# ── Factories ────────────────────────────────────────────────────────────────

SeedEntity = Callable[..., Awaitable[Entity]]
SeedFeedback = Callable[..., Awaitable[FeedbackItem]]


@pytest.fixture
def seed_entity(db_session: AsyncSession) -> SeedEntity:
    """Factory fixture that persists and commits an entity (with empty stats)."""
    countries: dict[str, Country] = {}

    async def _seed(
        display_name: str,
        *,
        normalized_name: str | None = None,
        country: str | None = None,
        location: str | None = None,
        description: str | None = None,
        aliases: tuple[str, ...] = (),
    ) -> Entity:
        location_row = None
        if country:
            country_row = countries.setdefault(country, Country(name=country))
            location_row = Location(name=location or country, country=country_row)
            db_session.add(location_row)

        empty = AggregateStats()
        entity = Entity(
            display_name=display_name,
            canonical_name=display_name,
            normalized_name=normalized_name if normalized_name is not None else normalize(display_name),
            location=location_row,
            description=description,
            stats=EntityStats(
                total_count=0,
                average_rating=0.0,
                category_breakdown=empty.breakdown_json(),
            ),
        )
        db_session.add(entity)
        for alias in aliases:
            db_session.add(
                EntityAlias(entity=entity, alias_name=alias, normalized_alias=normalize(alias))
            )
        await db_session.commit()
        return entity

    return _seed


@pytest.fixture
def seed_feedback(db_session: AsyncSession) -> SeedFeedback:
    """Factory fixture that persists a FeedbackItem directly (no hook)."""

    async def _seed(
        entity_id: UUID,
        rating: int,
        *,
        text: str = "Solid place to study overall",
        category: FeedbackCategory = FeedbackCategory.ACADEMICS,
        status: ModerationStatus = ModerationStatus.APPROVED,
    ) -> FeedbackItem:
        item = FeedbackItem(
            entity_id=entity_id,
            category=category,
            rating=rating,
            text=text,
            moderation_status=status,
        )
        db_session.add(item)
        await db_session.flush()
        return item

    return _seed


# ── Collaborator stubs ───────────────────────────────────────────────────────


class InMemoryNormalizationCache:
    """NormalizationCacheStore kept in a dict, with call counters."""

    def __init__(self) -> None:
        self.entries: dict[str, CachedNormalization] = {}
        self.gets = 0
        self.puts = 0

    async def get(self, input_hash: str) -> CachedNormalization | None:
        self.gets += 1
        return self.entries.get(input_hash)

    async def put(self, input_hash: str, input_text: str, value: CachedNormalization) -> None:
        self.puts += 1
        self.entries[input_hash] = value


@pytest.fixture
def normalization_cache() -> InMemoryNormalizationCache:
    return InMemoryNormalizationCache()


@pytest.fixture
def reasoning() -> AsyncMock:
    """Reasoning service that knows a couple of acronyms."""
    known = {
        "aui": OrganizationName(
            normalized_name="al akhawayn",
            display_name="Al Akhawayn University",
            location="Ifrane",
            country="Morocco",
        ),
        "uon": OrganizationName(
            normalized_name="nairobi",
            display_name="University of Nairobi",
            location="Nairobi",
            country="Kenya",
        ),
    }

    async def _normalize(
        raw_text: str, *, location: str | None = None, country: str | None = None
    ) -> OrganizationName:
        key = raw_text.strip().lower()
        if key in known:
            return known[key]
        return OrganizationName(normalized_name=normalize(raw_text), display_name=raw_text)

    service = AsyncMock()
    service.normalize_organization_name = AsyncMock(side_effect=_normalize)
    return service
