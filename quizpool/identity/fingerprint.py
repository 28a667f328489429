"""
Content fingerprints for deduplication.

The fingerprint covers question text, canonical answer, topic and difficulty.
Difficulty is part of the key: the same question re-used at a
harder level is a different item, not a duplicate.
"""
from __future__ import annotations

import hashlib
import re
from enum import Enum

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Case-fold, collapse internal whitespace, and trim."""
    return _WHITESPACE.sub(" ", text.casefold()).strip()


def _as_text(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def fingerprint(
    question_text: str,
    canonical_answer: str,
    topic: str,
    difficulty: str | Enum,
) -> str:
    """
    Compute the dedup key for an item.

    Cosmetic differences (case, spacing) collapse to the same fingerprint.

    Returns:
        32-character hex MD5 digest
    """
    parts = [question_text, canonical_answer, topic, _as_text(difficulty)]
    normalized = "|".join(normalize_text(part) for part in parts)
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()
