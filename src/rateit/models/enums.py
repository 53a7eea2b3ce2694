"""Enumerations for the RateIt data model."""

from enum import Enum


class FeedbackCategory(str, Enum):
    """Closed set of feedback categories.

    Unrecognized categories are rejected at submission time, never inside
    aggregation.
    """

    ACADEMICS = "Academics"
    DORMS = "Dorms & Housing"
    FOOD = "Food & Dining"
    SOCIAL = "Social Life"
    ADMIN = "Administration"
    COST = "Cost of Living"
    SAFETY = "Safety"
    CAREER = "Career Support"
    TRANSPORTATION = "Transportation"
    FACILITIES = "Facilities"
    STUDENT_SERVICES = "Student Services"
    EXTRACURRICULARS = "Extracurriculars"
    OTHER = "Other"


class ModerationStatus(str, Enum):
    """Moderation outcome of a FeedbackItem. Only APPROVED items are aggregated."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class SentimentTone(str, Enum):
    """Overall tone of an entity's feedback, derived from its average rating."""

    POSITIVE = "positive"  # average >= 4.0
    MIXED = "mixed"  # average >= 3.0
    CRITICAL = "critical"  # everything below


class CacheScope(str, Enum):
    """Scope of a cached answer."""

    ENTITY = "entity"  # Keyed by (entity_id, query_hash)
    GLOBAL = "global"  # Keyed by (query_hash, region)


class ResolutionPhase(str, Enum):
    """Which phase of entity resolution produced the outcome."""

    DETERMINISTIC = "deterministic"  # Phase 1: high-confidence match
    LOW_CONFIDENCE = "low_confidence"  # Phase 2: non-ambiguous low-confidence match
    POST_RESOLUTION = "post_resolution"  # Phase 4: match after external resolution
    CREATED = "created"  # Phase 5: new entity
