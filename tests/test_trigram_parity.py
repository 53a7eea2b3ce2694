"""pg_trgm parity for the pure-Python trigram similarity.

Run with: RATEIT_TEST_DATABASE_URL=postgresql+asyncpg://... pytest -m integration
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.normalization.trigram import trigram_similarity
from rateit.resolution.similarity_index import SimilarityIndex

if TYPE_CHECKING:
    from conftest import SeedEntity

PAIRS = [
    ("al akhawayn", "al akhawayn"),
    ("al akhawayn", "aui"),
    ("strathmore", "strathmore business"),
    ("nairobi", "narobi"),
    ("daystar", "day star"),
    # Exactly 0.7: 7 shared trigrams out of 10
    ("abcdefg", "abcdefgx"),
]


@pytest.mark.integration
@pytest.mark.parametrize(("left", "right"), PAIRS)
async def test_matches_pg_trgm(db_session: AsyncSession, left: str, right: str) -> None:
    if db_session.get_bind().dialect.name != "postgresql":
        pytest.skip("pg_trgm parity needs RATEIT_TEST_DATABASE_URL pointing at PostgreSQL")

    expected = await db_session.scalar(select(func.similarity(left, right)))

    assert trigram_similarity(left, right) == pytest.approx(expected, abs=1e-6)


@pytest.mark.integration
async def test_exact_threshold_on_pg_trgm(db_session: AsyncSession, seed_entity: SeedEntity) -> None:
    if db_session.get_bind().dialect.name != "postgresql":
        pytest.skip("pg_trgm parity needs RATEIT_TEST_DATABASE_URL pointing at PostgreSQL")

    target = await seed_entity("Abcdefgx", normalized_name="abcdefgx")

    candidates = await SimilarityIndex(db_session).find_candidates("abcdefg", 0.70)

    assert [c.entity_id for c in candidates] == [target.id]
    assert candidates[0].score == 0.7
