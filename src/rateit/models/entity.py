"""Entity model: the canonical record for one real-world organization."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rateit.models.base import Base, utcnow

if TYPE_CHECKING:
    from rateit.models.alias import EntityAlias
    from rateit.models.location import Location
    from rateit.models.stats import EntityStats


class Entity(Base):
    """One organization, the unit of deduplication.

    ``normalized_name`` is a matching aid, not a unique key: near-duplicates
    are resolved through trigram similarity over names and aliases.
    """

    __tablename__ = "entities"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    display_name: Mapped[str] = mapped_column(String(255))
    canonical_name: Mapped[str] = mapped_column(String(255))
    normalized_name: Mapped[str] = mapped_column(String(255))
    location_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), index=True
    )
    description: Mapped[str | None] = mapped_column(Text)
    niche_details: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # Relationships
    location: Mapped[Location | None] = relationship(lazy="joined")
    stats: Mapped[EntityStats | None] = relationship(
        back_populates="entity", lazy="joined", cascade="all, delete-orphan"
    )
    aliases: Mapped[list[EntityAlias]] = relationship(
        back_populates="entity", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index(
            "ix_entities_normalized_name_trgm",
            "normalized_name",
            postgresql_using="gin",
            postgresql_ops={"normalized_name": "gin_trgm_ops"},
        ),
    )

    @property
    def location_name(self) -> str | None:
        return self.location.name if self.location else None

    @property
    def country_name(self) -> str | None:
        return self.location.country.name if self.location else None
