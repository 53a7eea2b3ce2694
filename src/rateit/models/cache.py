"""Cache tables: external normalization results and generated answers.

Expiry is lazy: readers filter on ``expires_at``; rows past expiry may linger
until a sweep deletes them.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rateit.models.base import Base, utcnow
from rateit.models.enums import CacheScope


class NormalizationCacheEntry(Base):
    """Memoized reasoning-service output for one raw input."""

    __tablename__ = "normalization_cache"

    input_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    input_text: Mapped[str] = mapped_column(Text)
    resolved_name: Mapped[str] = mapped_column(String(255))
    resolved_display_name: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str | None] = mapped_column(String(150))
    country: Mapped[str | None] = mapped_column(String(100))
    used_external: Mapped[bool] = mapped_column(Boolean, default=False)
    """False when the stored result is the deterministic fallback."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


class AnswerCacheEntry(Base):
    """Memoized generated answer, entity-scoped or global."""

    __tablename__ = "answer_cache"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    cache_key: Mapped[str] = mapped_column(String(255), unique=True)
    """Derived identity of (scope, key); the upsert conflict target."""

    scope: Mapped[CacheScope]
    entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"), index=True
    )
    query_hash: Mapped[str] = mapped_column(String(64))
    region: Mapped[str | None] = mapped_column(String(100))
    query_text: Mapped[str] = mapped_column(Text)
    answer_text: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
