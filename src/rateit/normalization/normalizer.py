"""Deterministic organization-name canonicalization.

This is the no-I/O baseline of entity resolution: every input gets a
normalized form before any similarity lookup, and it is the fallback when
external reasoning is unavailable.
"""

from __future__ import annotations

import hashlib
import re
from typing import Final

# Organizational-type words, articles/prepositions and qualifiers that carry no
# identity ("University of Nairobi" and "Nairobi University" are one entity).
STOP_WORDS: Final[frozenset[str]] = frozenset(
    {
        # Organization types
        "university",
        "college",
        "institute",
        "school",
        "academy",
        # Articles / prepositions
        "of",
        "the",
        "in",
        "at",
        "for",
        "and",
        # Qualifiers
        "international",
        "national",
        "state",
        "federal",
        "public",
        "private",
        "higher",
        "education",
        "learning",
        "studies",
    }
)

_PUNCTUATION_RE = re.compile(r"[^\w\s-]")
_STOP_WORD_RE = re.compile(r"\b(?:" + "|".join(sorted(STOP_WORDS)) + r")\b")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Canonicalize a raw organization name for matching.

    Lowercases, strips punctuation except hyphens, turns hyphens into spaces,
    removes stop words and collapses whitespace.

    >>> normalize("Al-Akhawayn University")
    'al akhawayn'
    """
    if not text:
        return ""

    result = text.lower()
    result = _PUNCTUATION_RE.sub("", result)
    result = result.replace("-", " ")
    result = _STOP_WORD_RE.sub("", result)
    result = _WHITESPACE_RE.sub(" ", result)
    return result.strip()


def lowercase_trim(text: str) -> str:
    """Lowercase and trim, the identity used for cache keys."""
    return text.strip().lower()


def stable_hash(text: str) -> str:
    """SHA-256 hex digest of ``lowercase_trim(text)``.

    Stable across processes and restarts, unlike ``hash()``.
    """
    return hashlib.sha256(lowercase_trim(text).encode("utf-8")).hexdigest()
