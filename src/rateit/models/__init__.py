"""Database models for RateIt."""

from rateit.models.alias import EntityAlias
from rateit.models.base import Base
from rateit.models.cache import AnswerCacheEntry, NormalizationCacheEntry
from rateit.models.entity import Entity
from rateit.models.enums import (
    CacheScope,
    FeedbackCategory,
    ModerationStatus,
    ResolutionPhase,
    SentimentTone,
)
from rateit.models.feedback import FeedbackItem
from rateit.models.location import Country, Location
from rateit.models.stats import EntityStats

__all__ = [
    "AnswerCacheEntry",
    "Base",
    "CacheScope",
    "Country",
    "Entity",
    "EntityAlias",
    "EntityStats",
    "FeedbackCategory",
    "FeedbackItem",
    "Location",
    "ModerationStatus",
    "NormalizationCacheEntry",
    "ResolutionPhase",
    "SentimentTone",
]
