"""
Name normalization shared by every matcher strategy.
"""
from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NON_ALPHA = re.compile(r"[^a-z\s]")
_SPACES = re.compile(r"\s+")


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_name(value: str) -> str:
    """
    Lower-case, strip diacritics, collapse non-alphanumerics to single spaces.

    >>> normalize_name("  Borussia Mönchengladbach ")
    'borussia monchengladbach'
    >>> normalize_name("Brighton & Hove Albion")
    'brighton hove albion'
    """
    lowered = strip_diacritics(value.lower())
    return _NON_ALNUM.sub(" ", lowered).strip()


def significant_tokens(normalized: str, min_length: int = 4) -> set[str]:
    return {token for token in normalized.split(" ") if len(token) >= min_length}


def normalize_person_name(value: str) -> str:
    """Letters and spaces only; digits and punctuation are dropped."""
    lowered = strip_diacritics(value.lower())
    return _SPACES.sub(" ", _NON_ALPHA.sub("", lowered)).strip()
