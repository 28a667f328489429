"""
Domain vocabulary shared by every quizpool component.

Item types, difficulty ladder, and gate statuses are plain string enums so they
serialize unchanged into the database, JSON payloads, and CLI options.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID


class ItemType(str, Enum):
    """Question formats served by the quiz."""

    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    FILL_IN_BLANK = "fill-in-blank"
    MATCHING = "matching"
    WRITING = "writing"

    @property
    def is_typed_answer(self) -> bool:
        """Typed answers are graded against acceptable variations."""
        return self in (ItemType.FILL_IN_BLANK, ItemType.WRITING)


class Difficulty(str, Enum):
    """Ordered difficulty ladder: beginner < intermediate < advanced."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def rank(self) -> int:
        return _DIFFICULTY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Difficulty):
            return NotImplemented
        return self.rank >= other.rank


_DIFFICULTY_RANK = {
    Difficulty.BEGINNER: 0,
    Difficulty.INTERMEDIATE: 1,
    Difficulty.ADVANCED: 2,
}


class ItemStatus(str, Enum):
    """Quality gate states. Only ACTIVE items are servable."""

    PENDING = "pending"
    ACTIVE = "active"
    FLAGGED = "flagged"


# Unit id that matches every unit filter
ALL_UNITS = "all"


def utcnow() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


@dataclass
class ItemSnapshot:
    """
    Storage-independent view of a quiz item.

    The gate and the selection engine operate on snapshots so they can be
    tested without a database.
    """

    id: UUID
    fingerprint: str
    item_type: str
    difficulty: Difficulty
    topic: str
    unit_id: str
    status: ItemStatus = ItemStatus.PENDING
    question: str = ""
    correct_answer: str = ""
    acceptable_variations: list[str] = field(default_factory=list)
    batch_id: str | None = None
    created_at: datetime | None = None
