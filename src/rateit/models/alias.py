"""Alias model: alternate spellings and acronyms of an entity."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rateit.models.base import Base, utcnow

if TYPE_CHECKING:
    from rateit.models.entity import Entity


class EntityAlias(Base):
    """A known spelling of an entity, created whenever input resolves to it.

    Each alias belongs to exactly one entity. The same raw text may be
    recorded against an entity only once; repeated inserts are no-ops.
    """

    __tablename__ = "entity_aliases"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"))
    alias_name: Mapped[str] = mapped_column(String(255))
    normalized_alias: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    entity: Mapped[Entity] = relationship(back_populates="aliases")

    __table_args__ = (
        Index("ix_entity_aliases_owner_name", "entity_id", "alias_name", unique=True),
        Index(
            "ix_entity_aliases_normalized_trgm",
            "normalized_alias",
            postgresql_using="gin",
            postgresql_ops={"normalized_alias": "gin_trgm_ops"},
        ),
    )
