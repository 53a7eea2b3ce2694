"""Advisory caches: normalization results and generated answers."""

from rateit.caching.normalization_cache import (
    CachedNormalization,
    NormalizationCache,
    NormalizationCacheStore,
)
from rateit.caching.response_cache import AnswerCacheKey, ResponseCache, purge_entity_answers

__all__ = [
    "AnswerCacheKey",
    "CachedNormalization",
    "NormalizationCache",
    "NormalizationCacheStore",
    "ResponseCache",
    "purge_entity_answers",
]
