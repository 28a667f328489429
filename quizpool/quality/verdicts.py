"""
Evaluator verdict schemas.

Each auditor produces its own verdict variant, but every variant exposes the
same interface to the quality gate:
- gate_criteria: ordered booleans; all must be true for the item to be servable
- soft_signals: ordered booleans; never gate, only trigger remediation
- passes_gate / is_tool_failure

Judge output is parsed strictly. Missing or mistyped criteria never default to
passing: they turn the whole verdict into a ToolFailure.
"""
from __future__ import annotations

import json
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictBool, TypeAdapter, ValidationError

from quizpool.domain import Difficulty, utcnow
from quizpool.exceptions import InvalidVerdictError


class Severity(str, Enum):
    """How serious the evaluator judged the worst issue to be."""

    CRITICAL = "critical"
    MINOR = "minor"
    SUGGESTION = "suggestion"


class ToolFailureReason(str, Enum):
    """Why an evaluator call produced no content judgment."""

    PARSE_ERROR = "parse_error"
    API_ERROR = "api_error"
    THROTTLED = "throttled"
    TIMEOUT = "timeout"


class _VerdictBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    auditor: str
    model: Optional[str] = None
    audited_at: datetime = Field(default_factory=utcnow)

    @property
    def is_tool_failure(self) -> bool:
        return False

    @property
    def gate_criteria(self) -> dict[str, bool]:
        return {}

    @property
    def soft_signals(self) -> dict[str, bool]:
        return {}

    @property
    def passes_gate(self) -> bool:
        """True iff this is a content verdict and every gate criterion holds."""
        return not self.is_tool_failure and all(self.gate_criteria.values())

    @property
    def failed_criteria(self) -> list[str]:
        return [name for name, ok in self.gate_criteria.items() if not ok]

    @property
    def suggested_difficulty(self) -> Optional[Difficulty]:
        return None

    @property
    def invalid_variations(self) -> list[str]:
        return []


class CoreVerdict(_VerdictBase):
    """
    Four-criterion audit: correctness, grammar, hallucination, coherence.

    The core auditor reports no soft signals and no remediation hints.
    """

    kind: Literal["core"] = "core"

    answer_correct: StrictBool
    grammar_correct: StrictBool
    no_hallucination: StrictBool
    question_coherent: StrictBool
    severity: Severity = Severity.SUGGESTION
    notes: str = "OK"

    @property
    def gate_criteria(self) -> dict[str, bool]:
        return {
            "answer_correct": self.answer_correct,
            "grammar_correct": self.grammar_correct,
            "no_hallucination": self.no_hallucination,
            "question_coherent": self.question_coherent,
        }


class ExtendedVerdict(_VerdictBase):
    """
    Six-gate audit with soft signals and remediation hints.

    Gates: the four core criteria plus natural_language and
    register_appropriate. Soft signals feed difficulty relabeling and
    variation pruning only.
    """

    kind: Literal["extended"] = "extended"

    answer_correct: StrictBool
    grammar_correct: StrictBool
    no_hallucination: StrictBool
    question_coherent: StrictBool
    natural_language: StrictBool
    register_appropriate: StrictBool

    difficulty_appropriate: StrictBool
    variations_valid: StrictBool
    culturally_appropriate: StrictBool

    suggested_difficulty_label: Optional[Difficulty] = Field(default=None, alias="suggested_difficulty")
    missing_variations: list[str] = Field(default_factory=list)
    invalid_variations_list: list[str] = Field(default_factory=list, alias="invalid_variations")

    severity: Severity
    notes: str = "OK"

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    @property
    def gate_criteria(self) -> dict[str, bool]:
        return {
            "answer_correct": self.answer_correct,
            "grammar_correct": self.grammar_correct,
            "no_hallucination": self.no_hallucination,
            "question_coherent": self.question_coherent,
            "natural_language": self.natural_language,
            "register_appropriate": self.register_appropriate,
        }

    @property
    def soft_signals(self) -> dict[str, bool]:
        return {
            "difficulty_appropriate": self.difficulty_appropriate,
            "variations_valid": self.variations_valid,
            "culturally_appropriate": self.culturally_appropriate,
        }

    @property
    def suggested_difficulty(self) -> Optional[Difficulty]:
        return self.suggested_difficulty_label

    @property
    def invalid_variations(self) -> list[str]:
        return list(self.invalid_variations_list)


class ToolFailure(_VerdictBase):
    """
    The evaluator produced nothing interpretable as a content judgment.

    Never counts as pass or fail; the gate leaves item status untouched.
    """

    kind: Literal["tool_failure"] = "tool_failure"

    reason: ToolFailureReason
    detail: str = ""

    @property
    def is_tool_failure(self) -> bool:
        return True

    @property
    def severity(self) -> None:
        return None

    @property
    def notes(self) -> str:
        return f"{self.reason.value.upper()}: {self.detail}"


Verdict = Annotated[
    Union[CoreVerdict, ExtendedVerdict, ToolFailure],
    Field(discriminator="kind"),
]

VerdictKind = Literal["core", "extended"]

_verdict_adapter: TypeAdapter[Verdict] = TypeAdapter(Verdict)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def verdict_from_payload(payload: dict[str, Any]) -> Verdict:
    """Rebuild a stored verdict from its JSON payload."""
    return _verdict_adapter.validate_python(payload)


def verdict_to_payload(verdict: Verdict) -> dict[str, Any]:
    """Serialize a verdict for the audit history."""
    return verdict.model_dump(mode="json", by_alias=True)


def _decode(raw: str | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw

    cleaned = _CODE_FENCE.sub("", raw.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise InvalidVerdictError(f"Judge output is not JSON: {e}", raw=raw) from e

    # Some judges wrap single results as {"results": [...]}
    if isinstance(data, dict) and isinstance(data.get("results"), list) and len(data["results"]) == 1:
        data = data["results"][0]
    if not isinstance(data, dict):
        raise InvalidVerdictError("Judge output is not a JSON object", raw=raw)
    return data


def parse_verdict(
    raw: str | dict[str, Any],
    kind: VerdictKind,
    auditor: str,
    model: str | None = None,
) -> Verdict:
    """
    Strictly parse judge output into a verdict of the given kind.

    Never raises: malformed output becomes a ToolFailure(parse_error).

    Args:
        raw: Judge response text (optionally fenced) or decoded JSON object
        kind: Expected verdict schema ("core" or "extended")
        auditor: Auditor identifier recorded on the verdict
        model: Evaluator model recorded on the verdict

    Returns:
        CoreVerdict, ExtendedVerdict, or ToolFailure
    """
    try:
        data = _decode(raw)
        payload = {**data, "kind": kind, "auditor": auditor, "model": model}
        payload.pop("audited_at", None)
        return _verdict_adapter.validate_python(payload)
    except (InvalidVerdictError, ValidationError) as e:
        text = raw if isinstance(raw, str) else json.dumps(raw, default=str)
        logger.warning(f"Unparsable {kind} verdict from {auditor}: {str(e).splitlines()[0]}")
        return ToolFailure(
            auditor=auditor,
            model=model,
            reason=ToolFailureReason.PARSE_ERROR,
            detail=text[:200],
        )


def tool_failure(
    auditor: str,
    reason: ToolFailureReason,
    detail: str = "",
    model: str | None = None,
) -> ToolFailure:
    """Build a ToolFailure verdict."""
    return ToolFailure(auditor=auditor, model=model, reason=reason, detail=detail[:200])
