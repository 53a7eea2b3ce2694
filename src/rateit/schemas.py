"""Pydantic value objects exchanged between the core and its callers.

These are the compact artifacts handed to the answer collaborator (stats,
digest, ranked candidates) and the validated inputs accepted at the edge of
the core (resolve requests, feedback submissions).
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from rateit.config import settings
from rateit.models.enums import FeedbackCategory, SentimentTone

if TYPE_CHECKING:
    from rateit.models.stats import EntityStats

NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

NO_POSITIVE_SAMPLE = "No positive reviews yet"
NO_NEGATIVE_SAMPLE = "No negative reviews yet"


def round_rating(value: float | None) -> float:
    """Round an average rating to one decimal, half-up (4.25 → 4.3)."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def tone_for(average_rating: float) -> SentimentTone:
    """Map an average rating onto a SentimentTone."""
    if average_rating >= 4.0:
        return SentimentTone.POSITIVE
    if average_rating >= 3.0:
        return SentimentTone.MIXED
    return SentimentTone.CRITICAL


class CategoryStat(BaseModel):
    """Count and average rating within one category."""

    count: int = 0
    average: float = 0.0


class AggregateStats(BaseModel):
    """Derived per-entity statistics.

    ``categories`` always carries an entry for every FeedbackCategory so
    consumers never deal with missing keys.
    """

    total_count: int = 0
    average_rating: float = 0.0
    categories: dict[FeedbackCategory, CategoryStat] = Field(
        default_factory=lambda: {category: CategoryStat() for category in FeedbackCategory}
    )

    @classmethod
    def from_row(cls, row: EntityStats | None) -> AggregateStats:
        """Rebuild from a persisted EntityStats row (empty stats if None)."""
        if row is None:
            return cls()
        categories = {category: CategoryStat() for category in FeedbackCategory}
        for name, data in (row.category_breakdown or {}).items():
            categories[FeedbackCategory(name)] = CategoryStat.model_validate(data)
        return cls(
            total_count=row.total_count,
            average_rating=row.average_rating,
            categories=categories,
        )

    def breakdown_json(self) -> dict[str, Any]:
        """Serialize ``categories`` for the JSON column, keyed by category value."""
        return {
            category.value: stat.model_dump(mode="json")
            for category, stat in self.categories.items()
        }


class SentimentDigest(BaseModel):
    """Compact tone + sample phrases substituted for raw feedback."""

    tone: SentimentTone
    positive_sample: str = NO_POSITIVE_SAMPLE
    negative_sample: str = NO_NEGATIVE_SAMPLE
    last_updated: datetime


class ResolveRequest(BaseModel):
    """A raw organization submission to resolve into an entity."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: NonBlankStr
    location: str | None = None
    country: str | None = None
    description: str | None = None
    niche_details: str | None = None
    image_url: str | None = None


class FeedbackSubmission(BaseModel):
    """A raw review, validated before moderation."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    category: FeedbackCategory
    rating: int = Field(ge=1, le=5)
    text: str = Field(min_length=settings.feedback_min_text_length)


class RankedCandidate(BaseModel):
    """An entity proposed as relevant to a global question."""

    entity_id: UUID
    name: str
    description: str | None = None
    location: str | None = None
    country: str | None = None
    review_count: int
    average_rating: float
    sentiment_digest: SentimentDigest | None = None
    relevance_score: float


class EntityContext(BaseModel):
    """Everything the answer collaborator may see about a single entity."""

    entity_id: UUID
    name: str
    location: str | None = None
    country: str | None = None
    stats: AggregateStats
    digest: SentimentDigest | None = None


class RankedEntity(BaseModel):
    """One row of the per-country rankings board."""

    entity_id: UUID
    name: str
    image_url: str | None = None
    location: str | None = None
    review_count: int
    average_rating: float
    category_averages: dict[FeedbackCategory, float]


class CountryRanking(BaseModel):
    """Entities of one country, best average rating first."""

    country: str
    entities: list[RankedEntity]
