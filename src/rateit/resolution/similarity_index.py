"""Candidate search over entity names and aliases via trigram similarity.

Scores come from the store's ``similarity()`` function: pg_trgm on
PostgreSQL, the registered pure-Python equivalent on SQLite. Both the entity's
normalized name and every alias are searched; an entity keeps its best score.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import Float, Numeric, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.config import settings
from rateit.models.alias import EntityAlias
from rateit.models.entity import Entity
from rateit.models.stats import EntityStats

logger = logging.getLogger(__name__)

# pg_trgm returns float4; scores are compared at this precision
SCORE_DECIMALS = 6


def similarity_score(column: Any, query: str) -> Any:
    """SQL similarity rounded so float4 results meet thresholds exactly."""
    return func.round(
        cast(func.similarity(column, query), Numeric), SCORE_DECIMALS, type_=Float
    )


@dataclass
class Candidate:
    """An entity that looks like the query."""

    entity_id: UUID
    name: str
    """Display name of the entity."""

    normalized_name: str
    score: float
    """Best trigram similarity over the name and aliases, in [0, 1]."""

    feedback_count: int = 0
    """Approved feedback volume, used to break exact score ties."""


class SimilarityIndex:
    """Finds existing entities similar to a normalized query.

    Usage:
        async with async_session_factory() as session:
            index = SimilarityIndex(session)
            candidates = await index.find_candidates("al akhawayn", 0.70)
    """

    def __init__(self, session: AsyncSession, *, max_candidates: int | None = None) -> None:
        self._session = session
        self._max_candidates = max_candidates or settings.resolution_max_candidates

    async def find_candidates(self, normalized_query: str, threshold: float) -> list[Candidate]:
        """Return up to ``max_candidates`` entities scoring at least ``threshold``.

        Ordered by score desc, then feedback volume desc, then entity id.
        """
        if not normalized_query:
            return []

        best: dict[UUID, Candidate] = {}
        for row in await self._name_matches(normalized_query, threshold):
            self._keep_best(best, row)
        for row in await self._alias_matches(normalized_query, threshold):
            self._keep_best(best, row)

        candidates = sorted(
            best.values(),
            key=lambda c: (-c.score, -c.feedback_count, str(c.entity_id)),
        )[: self._max_candidates]

        logger.debug(
            "find_candidates(%r, %.2f): %d hit(s), top=%s",
            normalized_query,
            threshold,
            len(candidates),
            f"{candidates[0].name}@{candidates[0].score:.3f}" if candidates else None,
        )
        return candidates

    async def _name_matches(self, query: str, threshold: float) -> list[Any]:
        score = similarity_score(Entity.normalized_name, query)
        stmt = (
            select(
                Entity.id,
                Entity.display_name,
                Entity.normalized_name,
                score.label("score"),
                func.coalesce(EntityStats.total_count, 0).label("volume"),
            )
            .outerjoin(EntityStats, EntityStats.entity_id == Entity.id)
            .where(score >= threshold)
        )
        return list((await self._session.execute(stmt)).all())

    async def _alias_matches(self, query: str, threshold: float) -> list[Any]:
        score = similarity_score(EntityAlias.normalized_alias, query)
        stmt = (
            select(
                Entity.id,
                Entity.display_name,
                Entity.normalized_name,
                func.max(score).label("score"),
                func.coalesce(EntityStats.total_count, 0).label("volume"),
            )
            .join(EntityAlias, EntityAlias.entity_id == Entity.id)
            .outerjoin(EntityStats, EntityStats.entity_id == Entity.id)
            .where(score >= threshold)
            .group_by(
                Entity.id,
                Entity.display_name,
                Entity.normalized_name,
                EntityStats.total_count,
            )
        )
        return list((await self._session.execute(stmt)).all())

    @staticmethod
    def _keep_best(best: dict[UUID, Candidate], row: Any) -> None:
        score = round(float(row.score), SCORE_DECIMALS)
        current = best.get(row.id)
        if current is not None and current.score >= score:
            return
        best[row.id] = Candidate(
            entity_id=row.id,
            name=row.display_name,
            normalized_name=row.normalized_name,
            score=score,
            feedback_count=int(row.volume),
        )
