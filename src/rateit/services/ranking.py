"""Candidate ranking for global questions.

Only entities with at least one approved review are considered. The score
blends rating, review volume, region match and keyword overlap:

    0.4 * average_rating + 0.3 * min(total_count / 10, 2)
        + 1.5 if the entity's country contains the region
        + 1.0 if any query keyword appears in the name or description
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.config import settings
from rateit.models.entity import Entity
from rateit.models.location import Country, Location
from rateit.models.stats import EntityStats
from rateit.schemas import (
    AggregateStats,
    CountryRanking,
    RankedCandidate,
    RankedEntity,
    SentimentDigest,
)

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")

# Keywords must be longer than this
MIN_KEYWORD_LENGTH = 2


def extract_keywords(query_text: str) -> list[str]:
    """Lowercased, punctuation-stripped query tokens longer than two characters."""
    cleaned = _PUNCTUATION_RE.sub("", query_text.lower())
    return [token for token in cleaned.split() if len(token) > MIN_KEYWORD_LENGTH]


def score_candidate(
    *,
    average_rating: float,
    total_count: int,
    country: str | None,
    searchable_text: str,
    region: str | None,
    keywords: list[str],
) -> float:
    """Relevance score for one entity.

    ``searchable_text`` is the lowercased name + description.
    """
    volume = min(total_count / settings.ranking_volume_divisor, settings.ranking_volume_cap)
    score = settings.ranking_rating_weight * average_rating + settings.ranking_volume_weight * volume

    if region and country and region.strip().lower() in country.lower():
        score += settings.ranking_region_bonus

    if any(keyword in searchable_text for keyword in keywords):
        score += settings.ranking_keyword_bonus

    # Rounded so equal inputs tie exactly regardless of float noise
    return round(score, 6)


class CandidateRanker:
    """Selects the entities most relevant to a free-text question.

    Usage:
        async with async_session_factory() as session:
            ranker = CandidateRanker(session)
            candidates = await ranker.rank_for_query("best school in kenya", "Kenya")
    """

    def __init__(self, session: AsyncSession, *, max_candidates: int | None = None) -> None:
        self._session = session
        self._max_candidates = max_candidates or settings.ranking_max_candidates

    async def rank_for_query(
        self, query_text: str, region: str | None = None
    ) -> list[RankedCandidate]:
        """Top candidates by relevance; empty when no entity has feedback."""
        keywords = extract_keywords(query_text)

        stmt = (
            select(Entity, EntityStats)
            .join(EntityStats, EntityStats.entity_id == Entity.id)
            .where(EntityStats.total_count > 0)
        )
        rows = (await self._session.execute(stmt)).all()

        ranked: list[RankedCandidate] = []
        for entity, stats in rows:
            searchable = f"{entity.display_name} {entity.description or ''}".lower()
            digest = (
                SentimentDigest.model_validate(stats.sentiment_digest)
                if stats.sentiment_digest
                else None
            )
            ranked.append(
                RankedCandidate(
                    entity_id=entity.id,
                    name=entity.display_name,
                    description=entity.description,
                    location=entity.location_name,
                    country=entity.country_name,
                    review_count=stats.total_count,
                    average_rating=stats.average_rating,
                    sentiment_digest=digest,
                    relevance_score=score_candidate(
                        average_rating=stats.average_rating,
                        total_count=stats.total_count,
                        country=entity.country_name,
                        searchable_text=searchable,
                        region=region,
                        keywords=keywords,
                    ),
                )
            )

        ranked.sort(key=lambda c: (-c.relevance_score, -c.average_rating, str(c.entity_id)))
        top = ranked[: self._max_candidates]

        logger.debug(
            "rank_for_query(%r, region=%r): %d eligible, returning %d",
            query_text,
            region,
            len(ranked),
            len(top),
        )
        return top

    async def rankings_by_country(self) -> list[CountryRanking]:
        """Every entity with a country, grouped by country.

        Countries are alphabetical; within a country entities are ordered by
        average rating desc, then name. Entities without feedback are listed
        with zero stats.
        """
        stmt = (
            select(Entity, EntityStats, Country.name)
            .join(Location, Location.id == Entity.location_id)
            .join(Country, Country.id == Location.country_id)
            .outerjoin(EntityStats, EntityStats.entity_id == Entity.id)
            .order_by(
                Country.name,
                EntityStats.average_rating.desc().nulls_last(),
                Entity.display_name,
            )
        )
        rows = (await self._session.execute(stmt)).all()

        boards: dict[str, list[RankedEntity]] = {}
        for entity, stats_row, country in rows:
            stats = AggregateStats.from_row(stats_row)
            boards.setdefault(country, []).append(
                RankedEntity(
                    entity_id=entity.id,
                    name=entity.display_name,
                    image_url=entity.image_url,
                    location=entity.location_name,
                    review_count=stats.total_count,
                    average_rating=stats.average_rating,
                    category_averages={
                        category: stat.average for category, stat in stats.categories.items()
                    },
                )
            )

        logger.debug("Rankings cover %d countries, %d entities", len(boards), len(rows))
        return [
            CountryRanking(country=country, entities=entities)
            for country, entities in boards.items()
        ]
