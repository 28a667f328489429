"""
Mastery Tracker: persists Leitner box state per learner x item.

Records are created lazily on the first answer and upserted on
(learner_id, item_id). The transition itself is the pure next_box function;
this class only loads, applies, and stores. Concurrent submissions for the
same learner are rare and resolved last-writer-wins.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quizpool.db.models import MasteryRecord, QuizItem
from quizpool.domain import utcnow
from quizpool.exceptions import ItemNotFoundError

from .leitner import MAX_BOX, MIN_BOX, next_box


@dataclass
class AnswerEvent:
    """One graded answer from a quiz submission."""

    item_id: UUID
    was_correct: bool
    answered_at: datetime | None = None


class MasteryTracker:
    """
    Track learner mastery per item using Leitner boxes.

    Usage:
        tracker = MasteryTracker(session)
        record = tracker.record_answer("learner-1", item_id, was_correct=True)
        boxes = tracker.box_lookup("learner-1")
    """

    def __init__(self, session: Session, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.clock = clock

    def get(self, learner_id: str, item_id: UUID) -> MasteryRecord | None:
        """Get the mastery record for a learner x item pair, if any."""
        return self.session.get(MasteryRecord, (learner_id, item_id))

    def record_answer(
        self,
        learner_id: str,
        item_id: UUID,
        was_correct: bool,
        answered_at: datetime | None = None,
    ) -> MasteryRecord:
        """
        Apply one answer to the learner's box state for an item.

        Args:
            learner_id: Learner identifier
            item_id: Answered item
            was_correct: Grading outcome
            answered_at: Review timestamp (defaults to now)

        Returns:
            The upserted MasteryRecord

        Raises:
            ItemNotFoundError: If the item is not stored
        """
        if self.session.get(QuizItem, item_id) is None:
            raise ItemNotFoundError(item_id)

        result = self.session.execute(
            select(MasteryRecord)
            .where(
                MasteryRecord.learner_id == learner_id,
                MasteryRecord.item_id == item_id,
            )
            .with_for_update()
        )
        record = result.scalar_one_or_none()

        if record is None:
            record = MasteryRecord(
                learner_id=learner_id,
                item_id=item_id,
                box=MIN_BOX,
                consecutive_correct=0,
                review_count=0,
                correct_count=0,
            )
            self.session.add(record)

        old_box = record.box
        state = next_box(record.box, record.consecutive_correct, was_correct)

        record.box = state.box
        record.consecutive_correct = state.consecutive_correct
        record.last_reviewed_at = answered_at or self.clock()
        record.review_count += 1
        if was_correct:
            record.correct_count += 1

        self.session.flush()

        logger.debug(
            f"Learner {learner_id} item {item_id}: box {old_box} -> {state.box} "
            f"(streak {state.consecutive_correct}, correct={was_correct})"
        )
        return record

    def record_quiz(self, learner_id: str, answers: Iterable[AnswerEvent]) -> list[MasteryRecord]:
        """Apply a quiz submission's answers in order."""
        return [
            self.record_answer(learner_id, a.item_id, a.was_correct, a.answered_at)
            for a in answers
        ]

    def box_lookup(
        self,
        learner_id: str | None,
        item_ids: Iterable[UUID] | None = None,
    ) -> dict[UUID, int]:
        """
        Map item id -> box for a learner.

        Items absent from the result are unseen. An anonymous request
        (learner_id None) sees every item as unseen.
        """
        if learner_id is None:
            return {}

        query = select(MasteryRecord.item_id, MasteryRecord.box).where(
            MasteryRecord.learner_id == learner_id
        )
        if item_ids is not None:
            ids = list(item_ids)
            if not ids:
                return {}
            query = query.where(MasteryRecord.item_id.in_(ids))

        return {item_id: box for item_id, box in self.session.execute(query)}

    def box_distribution(self, learner_id: str) -> dict[int, int]:
        """Count of items per box for a learner (boxes with no items included as 0)."""
        rows = self.session.execute(
            select(MasteryRecord.box, func.count())
            .where(MasteryRecord.learner_id == learner_id)
            .group_by(MasteryRecord.box)
        )
        distribution = {box: 0 for box in range(MIN_BOX, MAX_BOX + 1)}
        for box, count in rows:
            distribution[box] = count
        return distribution
