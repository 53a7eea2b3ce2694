"""Trigram similarity compatible with PostgreSQL's pg_trgm extension.

PostgreSQL computes ``similarity()`` server-side; other dialects register
:func:`trigram_similarity` under the same SQL name so candidate queries are
dialect-independent.
"""

from __future__ import annotations

import re

_WORD_RE = re.compile(r"[^\W_]+")


def trigrams(text: str) -> set[str]:
    """Extract the pg_trgm trigram set of ``text``.

    Each alphanumeric word is lowercased and padded with two leading spaces
    and one trailing space before slicing.
    """
    result: set[str] = set()
    for word in _WORD_RE.findall(text.lower()):
        padded = f"  {word} "
        result.update(padded[i : i + 3] for i in range(len(padded) - 2))
    return result


def trigram_similarity(a: str | None, b: str | None) -> float:
    """Shared-trigram ratio of two strings, in [0, 1].

    Identical non-empty strings score 1.0; a missing or empty side scores 0.0.
    """
    if not a or not b:
        return 0.0

    tri_a = trigrams(a)
    tri_b = trigrams(b)
    if not tri_a or not tri_b:
        return 0.0

    shared = len(tri_a & tri_b)
    return shared / (len(tri_a) + len(tri_b) - shared)
