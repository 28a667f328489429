"""
Duplicate-free ingestion of generated items.

Repeated generation runs are idempotent: every insert checks the fingerprint
against persistent storage, so re-running a batch over an unchanged corpus
inserts zero rows. The UNIQUE constraint on quiz_items.fingerprint backs the
check when two writers race.

Collision rate (skipped / attempted) is reported per batch as an advisory
signal for whether to keep generating a unit/topic/difficulty slice.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quizpool.db.models import GenerationBatch, MasteryRecord, QuizItem
from quizpool.domain import Difficulty, ItemStatus, ItemType, utcnow
from quizpool.exceptions import ItemNotFoundError

from .fingerprint import fingerprint


class GeneratedItem(BaseModel):
    """An item as produced by the (external) generator."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question: str = Field(min_length=1)
    correct_answer: str = Field(min_length=1)
    item_type: ItemType = Field(alias="type")
    difficulty: Difficulty
    topic: str = Field(min_length=1)
    unit_id: str = Field(min_length=1)
    options: Optional[List[str]] = None
    acceptable_variations: List[str] = Field(default_factory=list)
    explanation: Optional[str] = None
    generated_by: Optional[str] = None

    @field_validator("acceptable_variations")
    @classmethod
    def _strip_blank_variations(cls, value: list[str]) -> list[str]:
        return [v for v in value if v.strip()]

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.question, self.correct_answer, self.topic, self.difficulty)


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    SKIPPED_DUPLICATE = "skipped_duplicate"


@dataclass
class InsertResult:
    """Outcome of one insert: Inserted, or Skipped(duplicate)."""

    outcome: InsertOutcome
    fingerprint: str
    item_id: UUID | None = None

    @property
    def inserted(self) -> bool:
        return self.outcome == InsertOutcome.INSERTED


class CollisionLevel(str, Enum):
    """Advisory saturation levels for a generation slice."""

    OK = "ok"
    SATURATING = "saturating"  # >= 30%
    DEGRADING = "degrading"  # >= 50%
    STOP = "stop"  # >= 80%

    @property
    def advice(self) -> str:
        return _COLLISION_ADVICE[self]


_COLLISION_ADVICE = {
    CollisionLevel.OK: "Collision rate is low; the slice still has room.",
    CollisionLevel.SATURATING: "The pool is filling up for this slice. This is normal.",
    CollisionLevel.DEGRADING: "Many items already exist; new output may be repetitive.",
    CollisionLevel.STOP: "The slice appears saturated; stop generating for it.",
}

SATURATING_THRESHOLD = 0.30
DEGRADING_THRESHOLD = 0.50
STOP_THRESHOLD = 0.80


def classify_collision_rate(rate: float) -> CollisionLevel:
    """Map a 0-1 collision rate to its advisory level."""
    if rate >= STOP_THRESHOLD:
        return CollisionLevel.STOP
    if rate >= DEGRADING_THRESHOLD:
        return CollisionLevel.DEGRADING
    if rate >= SATURATING_THRESHOLD:
        return CollisionLevel.SATURATING
    return CollisionLevel.OK


@dataclass
class BatchReport:
    """Per-batch ingestion summary."""

    batch_id: str
    attempted: int = 0
    inserted: int = 0
    skipped: int = 0
    results: list[InsertResult] = field(default_factory=list)

    @property
    def collision_rate(self) -> float:
        return self.skipped / self.attempted if self.attempted else 0.0

    @property
    def collision_level(self) -> CollisionLevel:
        return classify_collision_rate(self.collision_rate)

    @property
    def inserted_ids(self) -> list[UUID]:
        return [r.item_id for r in self.results if r.inserted and r.item_id is not None]


def new_batch_id() -> str:
    """Batch ids sort by creation time: batch_YYYYMMDD_HHMMSS_<hex>."""
    return f"batch_{utcnow():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:6]}"


class ItemRepository:
    """
    Repository for quiz items.

    Handles:
    - Fingerprint-checked inserts (query-on-write)
    - Batch ingestion with collision reporting
    - Lookup, filtering, and hard deletion
    """

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Ingestion
    # ========================================

    def exists(self, item_fingerprint: str) -> bool:
        """Check whether a stored item already carries this fingerprint."""
        result = self.session.execute(
            select(QuizItem.id).where(QuizItem.fingerprint == item_fingerprint).limit(1)
        )
        return result.first() is not None

    def insert(self, item: GeneratedItem, batch_id: str | None = None) -> InsertResult:
        """
        Store an item as pending unless its fingerprint already exists.

        Args:
            item: Generated item
            batch_id: Provenance batch (optional)

        Returns:
            InsertResult (INSERTED with the new id, or SKIPPED_DUPLICATE)
        """
        item_fingerprint = item.fingerprint

        if self.exists(item_fingerprint):
            logger.debug(f"Skipped duplicate {item_fingerprint} ({item.topic}/{item.difficulty.value})")
            return InsertResult(InsertOutcome.SKIPPED_DUPLICATE, item_fingerprint)

        row = QuizItem(
            fingerprint=item_fingerprint,
            item_type=item.item_type.value,
            difficulty=item.difficulty.value,
            topic=item.topic,
            unit_id=item.unit_id,
            question=item.question,
            correct_answer=item.correct_answer,
            explanation=item.explanation,
            options=item.options if not item.item_type.is_typed_answer else None,
            acceptable_variations=list(item.acceptable_variations) if item.item_type.is_typed_answer else [],
            status=ItemStatus.PENDING.value,
            batch_id=batch_id,
            generated_by=item.generated_by,
        )

        # A concurrent writer may have stored the same fingerprint since the check
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError:
            logger.debug(f"Skipped duplicate {item_fingerprint} (lost insert race)")
            return InsertResult(InsertOutcome.SKIPPED_DUPLICATE, item_fingerprint)

        return InsertResult(InsertOutcome.INSERTED, item_fingerprint, item_id=row.id)

    def ingest(
        self,
        items: Iterable[GeneratedItem],
        source_file: str | None = None,
        generated_by: str | None = None,
        batch_id: str | None = None,
    ) -> BatchReport:
        """
        Insert a generation batch and record its provenance.

        Items duplicating an earlier item of the same batch are skipped too,
        since each insert is visible to the next check.
        """
        batch = GenerationBatch(
            id=batch_id or new_batch_id(),
            source_file=source_file,
            generated_by=generated_by,
        )
        self.session.add(batch)
        self.session.flush()

        report = BatchReport(batch_id=batch.id)
        for item in items:
            if generated_by and not item.generated_by:
                item = item.model_copy(update={"generated_by": generated_by})
            result = self.insert(item, batch_id=batch.id)
            report.results.append(result)
            report.attempted += 1
            if result.inserted:
                report.inserted += 1
            else:
                report.skipped += 1

        batch.attempted = report.attempted
        batch.inserted = report.inserted
        batch.skipped = report.skipped
        self.session.flush()

        level = report.collision_level
        message = (
            f"Batch {batch.id}: {report.inserted} inserted, {report.skipped} skipped "
            f"(collision rate {report.collision_rate:.1%}, {level.value})"
        )
        if level in (CollisionLevel.DEGRADING, CollisionLevel.STOP):
            logger.warning(f"{message} - {level.advice}")
        else:
            logger.info(message)

        return report

    # ========================================
    # Lookup
    # ========================================

    def get(self, item_id: UUID) -> QuizItem | None:
        """Get an item by id."""
        return self.session.get(QuizItem, item_id)

    def require(self, item_id: UUID) -> QuizItem:
        """Get an item by id or raise ItemNotFoundError."""
        item = self.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def find(
        self,
        unit_id: str | None = None,
        topic: str | None = None,
        difficulty: Difficulty | None = None,
        item_type: ItemType | None = None,
        status: ItemStatus | None = None,
        batch_id: str | None = None,
        generated_by: str | None = None,
    ) -> list[QuizItem]:
        """List items matching all given filters (exact matches)."""
        query = select(QuizItem)

        if unit_id:
            query = query.where(QuizItem.unit_id == unit_id)
        if topic:
            query = query.where(QuizItem.topic == topic)
        if difficulty:
            query = query.where(QuizItem.difficulty == difficulty.value)
        if item_type:
            query = query.where(QuizItem.item_type == item_type.value)
        if status:
            query = query.where(QuizItem.status == status.value)
        if batch_id:
            query = query.where(QuizItem.batch_id == batch_id)
        if generated_by:
            query = query.where(QuizItem.generated_by == generated_by)

        result = self.session.execute(query.order_by(QuizItem.created_at, QuizItem.id))
        return list(result.scalars().all())

    def get_batch(self, batch_id: str) -> GenerationBatch | None:
        return self.session.get(GenerationBatch, batch_id)

    # ========================================
    # Removal
    # ========================================

    def delete(self, item_id: UUID) -> None:
        """
        Hard-delete an item with its audit history and mastery records.

        The fingerprint becomes free, so the same content may be ingested again.
        """
        item = self.require(item_id)
        self.session.execute(delete(MasteryRecord).where(MasteryRecord.item_id == item_id))
        self.session.delete(item)
        self.session.flush()
        logger.info(f"Deleted item {item_id} ({item.fingerprint})")
