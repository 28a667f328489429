"""
Quality gate: verdict schemas, gate state machine, audit runner and reports.
"""
from .gate import GateDecision, GatePolicy, GateService, QualityGate, decide_status, prune_variations
from .judge import HttpJudge, Judge
from .report import AuditorComparison, AuditReport, CriterionAgreement, compare_auditors, summarize_audit
from .runner import AuditRunner
from .verdicts import (
    CoreVerdict,
    ExtendedVerdict,
    Severity,
    ToolFailure,
    ToolFailureReason,
    Verdict,
    parse_verdict,
    tool_failure,
    verdict_from_payload,
    verdict_to_payload,
)

__all__ = [
    "GateDecision",
    "GatePolicy",
    "GateService",
    "QualityGate",
    "decide_status",
    "prune_variations",
    "HttpJudge",
    "Judge",
    "AuditorComparison",
    "AuditReport",
    "CriterionAgreement",
    "compare_auditors",
    "summarize_audit",
    "AuditRunner",
    "CoreVerdict",
    "ExtendedVerdict",
    "Severity",
    "ToolFailure",
    "ToolFailureReason",
    "Verdict",
    "parse_verdict",
    "tool_failure",
    "verdict_from_payload",
    "verdict_to_payload",
]
