"""Deterministic text handling: normalization, ambiguity and trigram scoring."""

from rateit.normalization.ambiguity import KNOWN_ACRONYMS, is_ambiguous
from rateit.normalization.normalizer import STOP_WORDS, lowercase_trim, normalize, stable_hash
from rateit.normalization.trigram import trigram_similarity

__all__ = [
    "KNOWN_ACRONYMS",
    "STOP_WORDS",
    "is_ambiguous",
    "lowercase_trim",
    "normalize",
    "stable_hash",
    "trigram_similarity",
]
