"""
QuizPoolService: the four boundary operations over one database.

- insert / ingest: duplicate-free ingestion
- evaluate: audit items with a judge and apply the quality gate
- record_answer: Leitner update for one learner x item
- select_quiz: adaptive quiz selection

Each call runs in its own transaction.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from quizpool.config import Settings, get_settings
from quizpool.db.database import get_session_factory, session_scope
from quizpool.db.models import MasteryRecord, QuizItem
from quizpool.domain import ItemSnapshot
from quizpool.identity import BatchReport, GeneratedItem, InsertResult, ItemRepository
from quizpool.mastery import AnswerEvent, MasteryTracker
from quizpool.quality import (
    AuditReport,
    AuditRunner,
    GateDecision,
    GateService,
    Judge,
    Verdict,
    summarize_audit,
)
from quizpool.selection import QuizRequest, QuizSelection, SelectionEngine


@dataclass
class AuditOutcome:
    """Verdicts, gate decisions and summary for one audit run."""

    items: list[ItemSnapshot]
    verdicts: list[Verdict]
    decisions: list[GateDecision] = field(default_factory=list)
    report: AuditReport = field(default_factory=AuditReport)


class QuizPoolService:
    """
    Facade over identity, quality, mastery and selection.

    Usage:
        service = QuizPoolService()
        report = service.ingest(items, source_file="unit1.json")
        outcome = await service.evaluate(report.inserted_ids, judge)
        quiz = service.select_quiz(QuizRequest(unit_id="unit-1", learner_id="learner-1"))
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.session_factory = session_factory or get_session_factory()
        self.settings = settings or get_settings()
        self.rng = rng

    # ========================================
    # Ingestion
    # ========================================

    def insert(self, item: GeneratedItem) -> InsertResult:
        """Insert one item unless its fingerprint is already stored."""
        with session_scope(self.session_factory) as session:
            return ItemRepository(session).insert(item)

    def ingest(
        self,
        items: Iterable[GeneratedItem],
        source_file: str | None = None,
        generated_by: str | None = None,
    ) -> BatchReport:
        """Insert a generation batch and report duplicates."""
        with session_scope(self.session_factory) as session:
            return ItemRepository(session).ingest(items, source_file=source_file, generated_by=generated_by)

    # ========================================
    # Audit
    # ========================================

    def snapshots(self, item_ids: Sequence[UUID]) -> list[ItemSnapshot]:
        """Current state of the given items, in the given order."""
        with session_scope(self.session_factory) as session:
            repo = ItemRepository(session)
            return [repo.require(item_id).to_snapshot() for item_id in item_ids]

    async def evaluate(
        self,
        item_ids: Sequence[UUID],
        judge: Judge,
        runner: AuditRunner | None = None,
    ) -> AuditOutcome:
        """
        Audit items with a judge and apply each verdict to its item.

        Judge failures never raise: they become tool-failure verdicts that
        leave item status untouched.

        Raises:
            ItemNotFoundError: If an id is not stored
        """
        items = self.snapshots(item_ids)
        runner = runner or AuditRunner(judge, settings=self.settings)
        verdicts = await runner.evaluate(items)

        with session_scope(self.session_factory) as session:
            gate = GateService(session, policy=self.settings.gate_policy)
            decisions = gate.apply_many((item.id, v) for item, v in zip(items, verdicts))

        report = summarize_audit(items, verdicts, decisions)
        logger.info(
            f"Audit complete: {report.passed} passed, {report.flagged} flagged, "
            f"{report.tool_failures} tool failures, {report.relabeled} relabeled"
        )
        return AuditOutcome(items=items, verdicts=verdicts, decisions=decisions, report=report)

    def apply_verdict(self, item_id: UUID, verdict: Verdict) -> GateDecision:
        """Apply a single externally obtained verdict."""
        with session_scope(self.session_factory) as session:
            return GateService(session, policy=self.settings.gate_policy).apply_verdict(item_id, verdict)

    # ========================================
    # Mastery
    # ========================================

    def record_answer(self, learner_id: str, item_id: UUID, was_correct: bool) -> MasteryRecord:
        """Apply one graded answer to the learner's box for the item."""
        with session_scope(self.session_factory) as session:
            return MasteryTracker(session).record_answer(learner_id, item_id, was_correct)

    def record_quiz(self, learner_id: str, answers: Iterable[AnswerEvent]) -> list[MasteryRecord]:
        """Apply all answers of a quiz submission in one transaction."""
        with session_scope(self.session_factory) as session:
            return MasteryTracker(session).record_quiz(learner_id, answers)

    # ========================================
    # Selection
    # ========================================

    def select_quiz(self, request: QuizRequest, rng: random.Random | None = None) -> QuizSelection:
        """Select a quiz; never raises for an undersized pool."""
        with session_scope(self.session_factory) as session:
            engine = SelectionEngine(session, settings=self.settings, rng=self.rng)
            return engine.select_quiz(request, rng=rng)

    def get_item(self, item_id: UUID) -> ItemSnapshot | None:
        with session_scope(self.session_factory) as session:
            item = session.get(QuizItem, item_id)
            return item.to_snapshot() if item is not None else None
