"""
Audit reporting: batch summaries and cross-auditor agreement.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Mapping, Sequence
from uuid import UUID

from quizpool.domain import ItemSnapshot

from .gate import GateDecision
from .verdicts import Verdict


@dataclass
class AuditReport:
    """Outcome counts for one audit batch."""

    total: int = 0
    passed: int = 0
    flagged: int = 0
    tool_failures: int = 0
    failures_by_criterion: Counter = field(default_factory=Counter)
    soft_signal_failures: Counter = field(default_factory=Counter)
    severity_counts: Counter = field(default_factory=Counter)
    tool_failure_reasons: Counter = field(default_factory=Counter)
    pass_rate_by_type: dict[str, float] = field(default_factory=dict)
    pass_rate_by_difficulty: dict[str, float] = field(default_factory=dict)
    relabeled: int = 0
    variations_removed: int = 0

    @property
    def pass_rate(self) -> float:
        """Share of content verdicts that passed (tool failures excluded)."""
        content = self.passed + self.flagged
        return self.passed / content if content else 0.0


def _rates(passes: Counter, totals: Counter) -> dict[str, float]:
    return {key: passes[key] / totals[key] for key in sorted(totals)}


def summarize_audit(
    items: Sequence[ItemSnapshot],
    verdicts: Sequence[Verdict],
    decisions: Sequence[GateDecision] | None = None,
) -> AuditReport:
    """
    Summarize verdicts for a batch.

    Args:
        items: Audited items, aligned with verdicts
        verdicts: One verdict per item
        decisions: Gate decisions, if the verdicts were applied

    Returns:
        AuditReport
    """
    if len(items) != len(verdicts):
        raise ValueError(f"{len(items)} items but {len(verdicts)} verdicts")

    report = AuditReport(total=len(verdicts))
    type_totals: Counter = Counter()
    type_passes: Counter = Counter()
    difficulty_totals: Counter = Counter()
    difficulty_passes: Counter = Counter()

    for item, verdict in zip(items, verdicts):
        if verdict.is_tool_failure:
            report.tool_failures += 1
            report.tool_failure_reasons[verdict.reason.value] += 1
            continue

        type_totals[item.item_type] += 1
        difficulty_totals[item.difficulty.value] += 1
        if verdict.severity is not None:
            report.severity_counts[verdict.severity.value] += 1

        for name, ok in verdict.soft_signals.items():
            if not ok:
                report.soft_signal_failures[name] += 1

        if verdict.passes_gate:
            report.passed += 1
            type_passes[item.item_type] += 1
            difficulty_passes[item.difficulty.value] += 1
        else:
            report.flagged += 1
            report.failures_by_criterion.update(verdict.failed_criteria)

    report.pass_rate_by_type = _rates(type_passes, type_totals)
    report.pass_rate_by_difficulty = _rates(difficulty_passes, difficulty_totals)

    for decision in decisions or ():
        if decision.relabeled_from is not None:
            report.relabeled += 1
        if decision.removed_variations:
            report.variations_removed += 1

    return report


@dataclass
class CriterionAgreement:
    """How two auditors judged one criterion over their shared items."""

    criterion: str
    both_pass: int = 0
    both_fail: int = 0
    only_first_failed: int = 0
    only_second_failed: int = 0

    @property
    def total(self) -> int:
        return self.both_pass + self.both_fail + self.only_first_failed + self.only_second_failed

    @property
    def agreement(self) -> float:
        return (self.both_pass + self.both_fail) / self.total if self.total else 0.0


@dataclass
class AuditorComparison:
    """Per-criterion agreement between two auditors."""

    first: str
    second: str
    shared_items: int
    criteria: list[CriterionAgreement]
    only_first_flagged: list[UUID] = field(default_factory=list)
    only_second_flagged: list[UUID] = field(default_factory=list)


def compare_auditors(
    first: Mapping[UUID, Verdict],
    second: Mapping[UUID, Verdict],
) -> AuditorComparison:
    """
    Compare two auditors on the items both judged.

    Tool failures are excluded. Only criteria both verdict kinds share are
    compared; flag lists use each auditor's full gate.
    """
    shared = [
        item_id
        for item_id in first
        if item_id in second
        and not first[item_id].is_tool_failure
        and not second[item_id].is_tool_failure
    ]

    first_name = next((v.auditor for v in first.values()), "first")
    second_name = next((v.auditor for v in second.values()), "second")

    criteria: list[str] = []
    if shared:
        sample_a = first[shared[0]].gate_criteria
        sample_b = second[shared[0]].gate_criteria
        criteria = [name for name in sample_a if name in sample_b]

    agreements = {name: CriterionAgreement(criterion=name) for name in criteria}
    comparison = AuditorComparison(
        first=first_name,
        second=second_name,
        shared_items=len(shared),
        criteria=list(agreements.values()),
    )

    for item_id in shared:
        a, b = first[item_id], second[item_id]
        for name, agreement in agreements.items():
            pa, pb = a.gate_criteria[name], b.gate_criteria[name]
            if pa and pb:
                agreement.both_pass += 1
            elif not pa and not pb:
                agreement.both_fail += 1
            elif not pa:
                agreement.only_first_failed += 1
            else:
                agreement.only_second_failed += 1

        if not a.passes_gate and b.passes_gate:
            comparison.only_first_flagged.append(item_id)
        elif a.passes_gate and not b.passes_gate:
            comparison.only_second_flagged.append(item_id)

    return comparison
