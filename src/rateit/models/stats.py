"""Per-entity derived aggregates: AggregateStats and SentimentDigest."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rateit.models.base import Base, utcnow

if TYPE_CHECKING:
    from rateit.models.entity import Entity


class EntityStats(Base):
    """Derived statistics for one entity.

    Never written by request handlers: only SentimentDigestBuilder.recompute()
    updates this row, inside the transaction of the feedback change.

    ``category_breakdown`` holds one ``{"count", "average"}`` entry for every
    FeedbackCategory value; ``sentiment_digest`` holds the serialized
    SentimentDigest or None before the first recompute.
    """

    __tablename__ = "entity_stats"

    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True
    )
    total_count: Mapped[int] = mapped_column(Integer, default=0)
    average_rating: Mapped[float] = mapped_column(Float, default=0.0)
    category_breakdown: Mapped[dict[str, Any]] = mapped_column(default=dict)
    sentiment_digest: Mapped[dict[str, Any] | None] = mapped_column()
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    entity: Mapped[Entity] = relationship(back_populates="stats")
