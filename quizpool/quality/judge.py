"""
Judge adapters.

A judge is an opaque evaluator: it receives one item and returns raw
structured output (JSON text or an object). The core never consumes the
judge's reasoning, only the verdict fields parsed from its output.
"""
from __future__ import annotations

from typing import Any, Protocol

import httpx
from loguru import logger

from quizpool.domain import ItemSnapshot
from quizpool.exceptions import JudgeError, JudgeThrottledError, JudgeUnavailableError

from .verdicts import VerdictKind


class Judge(Protocol):
    """Evaluator interface consumed by AuditRunner."""

    auditor: str
    kind: VerdictKind
    model: str | None

    async def judge(self, item: ItemSnapshot) -> str | dict[str, Any]:
        """
        Evaluate one item.

        Raises:
            JudgeThrottledError: Rate limited (retryable)
            JudgeUnavailableError: Timeout or server error (retryable)
            JudgeError: Any other call failure (not retried)
        """
        ...


def item_payload(item: ItemSnapshot) -> dict[str, Any]:
    """Fields of an item sent to the judge."""
    return {
        "id": str(item.id),
        "type": item.item_type,
        "difficulty": item.difficulty.value,
        "topic": item.topic,
        "unit_id": item.unit_id,
        "question": item.question,
        "correct_answer": item.correct_answer,
        "acceptable_variations": list(item.acceptable_variations),
    }


class HttpJudge:
    """HTTP client for an external evaluation service."""

    def __init__(
        self,
        api_url: str,
        auditor: str,
        kind: VerdictKind = "core",
        model: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the judge client.

        Args:
            api_url: Base URL of the evaluation service
            auditor: Identifier recorded on every verdict
            kind: Verdict schema the service answers with
            model: Evaluator model requested from the service
            api_key: Bearer token, if the service needs one
            timeout_seconds: Request timeout
            client: Pre-built client (tests pass one with a mock transport)
        """
        self.api_url = api_url.rstrip("/")
        self.auditor = auditor
        self.kind = kind
        self.model = model
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            headers=headers,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "HttpJudge":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def judge(self, item: ItemSnapshot) -> str:
        """
        Request one verdict from the service.

        Returns:
            Raw response body (JSON text, possibly fenced)
        """
        try:
            response = await self.client.post(
                f"{self.api_url}/evaluate",
                json={
                    "model": self.model,
                    "rubric": self.kind,
                    "item": item_payload(item),
                },
            )
        except httpx.TimeoutException as e:
            raise JudgeUnavailableError(f"Judge timed out: {e}", timed_out=True) from e
        except httpx.RequestError as e:
            raise JudgeUnavailableError(f"Judge request failed: {e}") from e

        if response.status_code == 429:
            raise JudgeThrottledError(f"Judge throttled request for item {item.id}")
        if response.status_code >= 500:
            raise JudgeUnavailableError(f"Judge server error {response.status_code}")
        if response.status_code >= 400:
            # Don't retry on 4xx client errors
            logger.error(f"Judge rejected item {item.id}: {response.status_code} {response.text[:200]}")
            raise JudgeError(f"Judge client error {response.status_code}")

        return response.text

    async def health_check(self) -> bool:
        """Check whether the evaluation service is reachable."""
        try:
            response = await self.client.get(f"{self.api_url}/health")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Judge health check failed: {e}")
            return False
