"""Sentiment digest builder: derived per-entity stats and sample phrases.

Recomputation runs inside the caller's session and transaction so the
derived row always matches the committed FeedbackItem set. Only APPROVED
feedback counts.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rateit.config import settings
from rateit.db import upsert
from rateit.models.base import utcnow
from rateit.models.entity import Entity
from rateit.models.enums import FeedbackCategory, ModerationStatus
from rateit.models.feedback import FeedbackItem
from rateit.models.stats import EntityStats
from rateit.schemas import (
    NO_NEGATIVE_SAMPLE,
    NO_POSITIVE_SAMPLE,
    AggregateStats,
    CategoryStat,
    SentimentDigest,
    round_rating,
    tone_for,
)

logger = logging.getLogger(__name__)

# Rating bounds for the sample phrases
POSITIVE_MIN_RATING = 4
NEGATIVE_MAX_RATING = 2


class SentimentDigestBuilder:
    """Recomputes AggregateStats and SentimentDigest for entities.

    Usage:
        async with async_session_factory() as session:
            builder = SentimentDigestBuilder(session)
            stats, digest = await builder.recompute(entity_id)
            await session.commit()
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        sample_size: int | None = None,
        sample_length: int | None = None,
    ) -> None:
        self._session = session
        self._sample_size = sample_size or settings.digest_sample_size
        self._sample_length = sample_length or settings.digest_sample_length

    async def recompute(self, entity_id: UUID) -> tuple[AggregateStats, SentimentDigest]:
        """Rebuild and persist the stats row for one entity."""
        stats = await self._aggregate(entity_id)
        digest = SentimentDigest(
            tone=tone_for(stats.average_rating),
            positive_sample=await self._sample(entity_id, positive=True) or NO_POSITIVE_SAMPLE,
            negative_sample=await self._sample(entity_id, positive=False) or NO_NEGATIVE_SAMPLE,
            last_updated=utcnow(),
        )

        table = EntityStats.__table__
        values = {
            "total_count": stats.total_count,
            "average_rating": stats.average_rating,
            "category_breakdown": stats.breakdown_json(),
            "sentiment_digest": digest.model_dump(mode="json"),
            "last_updated": digest.last_updated,
        }
        stmt = upsert(self._session, table).values(entity_id=entity_id, **values)
        stmt = stmt.on_conflict_do_update(index_elements=[table.c.entity_id], set_=values)
        await self._session.execute(stmt)

        # Keep an already-loaded stats row in step with the upsert
        await self._session.execute(
            select(EntityStats)
            .where(EntityStats.entity_id == entity_id)
            .execution_options(populate_existing=True)
        )

        logger.debug(
            "Recomputed stats for %s: %d approved, avg %.1f, tone %s",
            entity_id,
            stats.total_count,
            stats.average_rating,
            digest.tone.value,
        )
        return stats, digest

    async def recompute_all(self) -> int:
        """Rebuild every entity's stats row. Returns the number of entities."""
        entity_ids = (await self._session.execute(select(Entity.id))).scalars().all()
        for entity_id in entity_ids:
            await self.recompute(entity_id)
        logger.info("Rebuilt sentiment digests for %d entities", len(entity_ids))
        return len(entity_ids)

    async def _aggregate(self, entity_id: UUID) -> AggregateStats:
        approved = (
            FeedbackItem.entity_id == entity_id,
            FeedbackItem.moderation_status == ModerationStatus.APPROVED,
        )

        total = await self._session.execute(
            select(func.count(FeedbackItem.id), func.avg(FeedbackItem.rating)).where(*approved)
        )
        total_count, average = total.one()

        categories = {category: CategoryStat() for category in FeedbackCategory}
        rows = await self._session.execute(
            select(
                FeedbackItem.category,
                func.count(FeedbackItem.id),
                func.avg(FeedbackItem.rating),
            )
            .where(*approved)
            .group_by(FeedbackItem.category)
        )
        for category, count, category_average in rows.all():
            categories[category] = CategoryStat(count=count, average=round_rating(category_average))

        return AggregateStats(
            total_count=total_count or 0,
            average_rating=round_rating(average),
            categories=categories,
        )

    async def _sample(self, entity_id: UUID, *, positive: bool) -> str:
        """Join up to ``sample_size`` truncated texts with " | "."""
        stmt = select(FeedbackItem.text).where(
            FeedbackItem.entity_id == entity_id,
            FeedbackItem.moderation_status == ModerationStatus.APPROVED,
        )
        if positive:
            stmt = stmt.where(FeedbackItem.rating >= POSITIVE_MIN_RATING).order_by(
                FeedbackItem.rating.desc(), FeedbackItem.created_at.desc(), FeedbackItem.id
            )
        else:
            stmt = stmt.where(FeedbackItem.rating <= NEGATIVE_MAX_RATING).order_by(
                FeedbackItem.rating.asc(), FeedbackItem.created_at.desc(), FeedbackItem.id
            )

        texts = (await self._session.execute(stmt.limit(self._sample_size))).scalars().all()
        return " | ".join(text[: self._sample_length] for text in texts)
