"""FeedbackItem model: one moderated review of an entity."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from rateit.models.base import Base, utcnow
from rateit.models.enums import FeedbackCategory, ModerationStatus


class FeedbackItem(Base):
    """A single rating + comment for an entity.

    Writes go through FeedbackService so that stats and the sentiment digest
    are recomputed in the same transaction.
    """

    __tablename__ = "feedback_items"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"), index=True
    )
    category: Mapped[FeedbackCategory]
    rating: Mapped[int] = mapped_column(Integer)
    text: Mapped[str] = mapped_column(Text)
    moderation_status: Mapped[ModerationStatus] = mapped_column(
        default=ModerationStatus.APPROVED
    )
    moderation_reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating_range"),
        Index("ix_feedback_entity_created", "entity_id", "created_at"),
    )
