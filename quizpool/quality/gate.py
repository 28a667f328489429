"""
Quality Gate: turns evaluator verdicts into item status and remediation.

State machine over pending -> active | flagged:
- tool failure: no transition, no remediation, recorded in the history
- content verdict: status is decided by the gate policy over the history
- passing verdict: relabel difficulty / prune invalid variations

The decision itself (QualityGate) is pure and works on ItemSnapshot;
GateService persists the verdict and the decision in one session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session

from quizpool.db.models import AuditRecord, QuizItem
from quizpool.domain import Difficulty, ItemSnapshot, ItemStatus
from quizpool.exceptions import ItemNotFoundError

from .verdicts import Verdict, verdict_from_payload, verdict_to_payload


class GatePolicy(str, Enum):
    """Which content verdicts decide status when several exist."""

    MOST_RECENT = "most_recent"  # newest content verdict wins
    CONSENSUS = "consensus"      # newest content verdict of every auditor must pass


@dataclass
class GateDecision:
    """Outcome of applying one verdict to one item."""

    item_id: UUID
    previous_status: ItemStatus
    status: ItemStatus
    difficulty: Difficulty
    acceptable_variations: list[str] = field(default_factory=list)
    relabeled_from: Optional[Difficulty] = None
    removed_variations: list[str] = field(default_factory=list)
    tool_failure: bool = False

    @property
    def changed(self) -> bool:
        return self.status != self.previous_status

    @property
    def remediated(self) -> bool:
        return self.relabeled_from is not None or bool(self.removed_variations)


def decide_status(history: Sequence[Verdict], policy: GatePolicy) -> Optional[ItemStatus]:
    """
    Status implied by a chronological verdict history.

    Returns None when the history holds no content verdict, meaning the
    current status must be kept.
    """
    content = [v for v in history if not v.is_tool_failure]
    if not content:
        return None

    if policy == GatePolicy.MOST_RECENT:
        return ItemStatus.ACTIVE if content[-1].passes_gate else ItemStatus.FLAGGED

    latest_by_auditor: dict[str, Verdict] = {}
    for verdict in content:
        latest_by_auditor[verdict.auditor] = verdict
    passed = all(v.passes_gate for v in latest_by_auditor.values())
    return ItemStatus.ACTIVE if passed else ItemStatus.FLAGGED


def prune_variations(variations: Iterable[str], invalid: Iterable[str]) -> tuple[list[str], list[str]]:
    """Remove invalid variations (case- and whitespace-insensitive). Never adds."""
    blocked = {v.strip().casefold() for v in invalid if v and v.strip()}
    kept: list[str] = []
    removed: list[str] = []
    for variation in variations:
        if variation.strip().casefold() in blocked:
            removed.append(variation)
        else:
            kept.append(variation)
    return kept, removed


class QualityGate:
    """
    Pure gate decision.

    Usage:
        gate = QualityGate(GatePolicy.CONSENSUS)
        decision = gate.apply(snapshot, verdict, history=previous_verdicts)
    """

    def __init__(self, policy: GatePolicy | str = GatePolicy.MOST_RECENT):
        self.policy = GatePolicy(policy)

    def apply(
        self,
        item: ItemSnapshot,
        verdict: Verdict,
        history: Sequence[Verdict] = (),
    ) -> GateDecision:
        """
        Apply a new verdict to an item.

        Args:
            item: Current item state
            verdict: The verdict just received
            history: Earlier verdicts for the item, oldest first

        Returns:
            GateDecision with the resulting status and remediated fields
        """
        decision = GateDecision(
            item_id=item.id,
            previous_status=item.status,
            status=item.status,
            difficulty=item.difficulty,
            acceptable_variations=list(item.acceptable_variations),
        )

        if verdict.is_tool_failure:
            decision.tool_failure = True
            return decision

        status = decide_status([*history, verdict], self.policy)
        if status is not None:
            decision.status = status

        if not verdict.passes_gate:
            return decision

        suggested = verdict.suggested_difficulty
        if suggested is not None and suggested != item.difficulty:
            decision.relabeled_from = item.difficulty
            decision.difficulty = suggested

        if verdict.invalid_variations:
            kept, removed = prune_variations(item.acceptable_variations, verdict.invalid_variations)
            decision.acceptable_variations = kept
            decision.removed_variations = removed

        return decision


class GateService:
    """
    Persist verdicts and gate decisions.

    Each call appends one AuditRecord and updates the item row in the same
    session; the caller owns the transaction.
    """

    def __init__(self, session: Session, policy: GatePolicy | str = GatePolicy.MOST_RECENT):
        self.session = session
        self.gate = QualityGate(policy)

    def history(self, item: QuizItem) -> list[Verdict]:
        """Chronological verdicts recorded for an item."""
        return [verdict_from_payload(record.payload) for record in item.audits]

    def apply_verdict(self, item_id: UUID, verdict: Verdict) -> GateDecision:
        """
        Record a verdict and apply the resulting decision to the stored item.

        Raises:
            ItemNotFoundError: If the item is not stored
        """
        item = self.session.get(QuizItem, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)

        decision = self.gate.apply(item.to_snapshot(), verdict, history=self.history(item))

        item.audits.append(
            AuditRecord(
                auditor=verdict.auditor,
                kind=verdict.kind,
                is_tool_failure=verdict.is_tool_failure,
                passed=None if verdict.is_tool_failure else verdict.passes_gate,
                severity=verdict.severity.value if verdict.severity is not None else None,
                payload=verdict_to_payload(verdict),
                audited_at=verdict.audited_at,
            )
        )

        if decision.tool_failure:
            logger.warning(f"Tool failure for item {item_id} from {verdict.auditor}: {verdict.notes}")
            self.session.flush()
            return decision

        item.status = decision.status.value
        if decision.relabeled_from is not None:
            item.difficulty = decision.difficulty.value
            logger.info(
                f"Relabeled item {item_id}: {decision.relabeled_from.value} -> {decision.difficulty.value}"
            )
        if decision.removed_variations:
            item.acceptable_variations = decision.acceptable_variations
            logger.info(f"Removed {len(decision.removed_variations)} invalid variation(s) from item {item_id}")

        self.session.flush()

        if decision.changed:
            logger.info(
                f"Item {item_id}: {decision.previous_status.value} -> {decision.status.value} "
                f"({verdict.auditor})"
            )
        else:
            logger.debug(f"Item {item_id} stays {decision.status.value} ({verdict.auditor})")
        return decision

    def apply_many(self, pairs: Iterable[tuple[UUID, Verdict]]) -> list[GateDecision]:
        """Apply verdicts in order."""
        return [self.apply_verdict(item_id, verdict) for item_id, verdict in pairs]
