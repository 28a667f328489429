"""
Item pool models: provenance batches, quiz items, and audit history.

Implements:
- GenerationBatch: Provenance grouping of items inserted together
- QuizItem: A generated question with its gate status and fingerprint
- AuditRecord: One evaluator verdict (or tool failure) for one item

The fingerprint column is UNIQUE: it is the deduplication key, checked on
write against persistent storage rather than an in-process cache.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from quizpool.domain import Difficulty, ItemSnapshot, ItemStatus

from .base import Base


class GenerationBatch(Base):
    """A group of items submitted by one generation run."""

    __tablename__ = "generation_batches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    source_file: Mapped[str | None] = mapped_column(Text)
    generated_by: Mapped[str | None] = mapped_column(String(128))

    attempted: Mapped[int] = mapped_column(Integer, default=0)
    inserted: Mapped[int] = mapped_column(Integer, default=0)
    skipped: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    items: Mapped[List["QuizItem"]] = relationship(back_populates="batch")

    @property
    def collision_rate(self) -> float:
        """Share of attempted items skipped as duplicates (0-1)."""
        return self.skipped / self.attempted if self.attempted else 0.0

    def __repr__(self) -> str:
        return f"<GenerationBatch(id={self.id}, inserted={self.inserted}, skipped={self.skipped})>"


class QuizItem(Base):
    """
    Quiz item with gate status and remediable metadata.

    Typed-answer items (fill-in-blank, writing) carry acceptable_variations;
    choice items carry options. The gate may relabel difficulty and prune
    variations, but never adds variations.
    """

    __tablename__ = "quiz_items"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    fingerprint: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    item_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    unit_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    question: Mapped[str] = mapped_column(Text, nullable=False)
    correct_answer: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str | None] = mapped_column(Text)
    options: Mapped[list | None] = mapped_column(JSON)
    acceptable_variations: Mapped[list] = mapped_column(JSON, default=list)

    status: Mapped[str] = mapped_column(String(16), default=ItemStatus.PENDING.value, index=True)

    batch_id: Mapped[str | None] = mapped_column(
        ForeignKey("generation_batches.id", ondelete="SET NULL")
    )
    generated_by: Mapped[str | None] = mapped_column(String(128))

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    batch: Mapped[Optional["GenerationBatch"]] = relationship(back_populates="items")
    audits: Mapped[List["AuditRecord"]] = relationship(
        back_populates="item",
        order_by="AuditRecord.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<QuizItem(type={self.item_type}, difficulty={self.difficulty}, status={self.status})>"

    def to_snapshot(self) -> ItemSnapshot:
        return ItemSnapshot(
            id=self.id,
            fingerprint=self.fingerprint,
            item_type=self.item_type,
            difficulty=Difficulty(self.difficulty),
            topic=self.topic,
            unit_id=self.unit_id,
            status=ItemStatus(self.status),
            question=self.question,
            correct_answer=self.correct_answer,
            acceptable_variations=list(self.acceptable_variations or []),
            batch_id=self.batch_id,
            created_at=self.created_at,
        )


class AuditRecord(Base):
    """
    One entry of an item's audit history.

    Tool failures are recorded with is_tool_failure=True and passed=None so
    they never count as either a pass or a fail.
    """

    __tablename__ = "audit_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[UUID] = mapped_column(
        ForeignKey("quiz_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    auditor: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    is_tool_failure: Mapped[bool] = mapped_column(Boolean, default=False)
    passed: Mapped[bool | None] = mapped_column(Boolean)
    severity: Mapped[str | None] = mapped_column(String(16))
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    audited_at: Mapped[datetime] = mapped_column(default=func.now())

    item: Mapped["QuizItem"] = relationship(back_populates="audits")

    def __repr__(self) -> str:
        outcome = "tool_failure" if self.is_tool_failure else ("pass" if self.passed else "fail")
        return f"<AuditRecord(auditor={self.auditor}, outcome={outcome})>"
