"""
Learner mastery model.

MasteryRecord holds the Leitner box state for one learner x item pair. It is
created lazily on the first answer, never deleted, and only mutated through
the box transition function.
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class MasteryRecord(Base):
    """Leitner box state for one learner and one item."""

    __tablename__ = "mastery_records"
    __table_args__ = (
        CheckConstraint("box BETWEEN 1 AND 5", name="ck_mastery_box_range"),
        CheckConstraint("consecutive_correct >= 0", name="ck_mastery_consecutive_nonneg"),
    )

    learner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    item_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("quiz_items.id", ondelete="CASCADE"),
        primary_key=True,
    )

    box: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reviewed_at: Mapped[datetime | None] = mapped_column()

    # Telemetry
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<MasteryRecord(learner={self.learner_id}, item={self.item_id}, "
            f"box={self.box}, streak={self.consecutive_correct})>"
        )
