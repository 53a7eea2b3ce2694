"""Ambiguity classification for raw organization names.

An input is ambiguous when deterministic normalization cannot be trusted to
identify the organization (acronyms, initialisms, very short or non-ASCII
text). Only ambiguous inputs may reach the external reasoning service.
"""

from __future__ import annotations

import re
from typing import Final

# Acronyms seen often enough that they always need expansion
KNOWN_ACRONYMS: Final[frozenset[str]] = frozenset(
    {
        "aui",
        "mit",
        "uon",
        "wiut",
        "aku",
        "usiu",
        "kemu",
        "jkuat",
        "emu",
        "lsu",
        "ucla",
        "nyu",
        "usc",
        "ucb",
        "unc",
        "ut",
        "um",
        "bu",
        "bc",
    }
)

# Strings this short or shorter are treated as acronyms when all-uppercase
ACRONYM_MAX_LENGTH: Final = 5

# Strings this short or shorter are always ambiguous
MIN_UNAMBIGUOUS_LENGTH: Final = 3

_INITIALISM_RE = re.compile(r"^[A-Z](\.[A-Z])+\.?$")


def is_ambiguous(text: str | None) -> bool:
    """Decide whether ``text`` needs external resolution.

    True when any of these hold:
    - trimmed length <= 2
    - lowercased text is a known acronym
    - all-uppercase and <= 5 characters
    - contains non-ASCII characters
    - initialism with periods ("M.I.T.")
    """
    raw = text or ""
    stripped = raw.strip()
    lowered = stripped.lower()

    if len(lowered) < MIN_UNAMBIGUOUS_LENGTH:
        return True

    if lowered in KNOWN_ACRONYMS:
        return True

    if raw == raw.upper() and len(raw) <= ACRONYM_MAX_LENGTH:
        return True

    if not raw.isascii():
        return True

    return bool(_INITIALISM_RE.match(stripped))
