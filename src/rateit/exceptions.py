class RateItError(Exception):
    """Base exception for the RateIt core."""


class ValidationError(RateItError):
    """Raised when input is missing or malformed."""


class EntityNotFoundError(ValidationError):
    """Raised when a referenced entity does not exist."""


class FeedbackNotFoundError(ValidationError):
    """Raised when a referenced feedback item does not exist."""


class TransientStorageError(RateItError):
    """Raised when the store is unreachable. Safe for the caller to retry."""


class ExternalServiceUnavailable(RateItError):
    """Raised when a reasoning, answer or moderation collaborator fails."""


class CacheError(RateItError):
    """Raised by cache stores. Callers downgrade it to a miss."""


class InsufficientDataError(RateItError):
    """Raised when ranking finds no entity with feedback to talk about."""
