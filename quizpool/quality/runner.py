"""
Audit Runner: batch-parallel evaluation with per-item failure isolation.

Every item is an independent task. Throttling and unavailability are retried
with exponential backoff; exhausted retries and any other call failure become
a ToolFailure verdict for that item only. evaluate() never raises for a
judge failure and always returns one verdict per item, in input order.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence

from loguru import logger

from quizpool.config import Settings, get_settings
from quizpool.domain import ItemSnapshot
from quizpool.exceptions import JudgeError, JudgeThrottledError, JudgeUnavailableError

from .judge import Judge
from .verdicts import ToolFailureReason, Verdict, parse_verdict, tool_failure

Sleep = Callable[[float], Awaitable[None]]


class AuditRunner:
    """
    Run a judge over a batch of items.

    Usage:
        runner = AuditRunner(judge)
        verdicts = await runner.evaluate(snapshots)
    """

    def __init__(
        self,
        judge: Judge,
        concurrency: int | None = None,
        max_retries: int | None = None,
        initial_backoff: float | None = None,
        sleep: Sleep = asyncio.sleep,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.judge = judge
        self.concurrency = concurrency or settings.audit_concurrency
        self.max_retries = settings.audit_max_retries if max_retries is None else max_retries
        self.initial_backoff = (
            settings.audit_initial_backoff_seconds if initial_backoff is None else initial_backoff
        )
        self.sleep = sleep

    def backoff(self, attempt: int) -> float:
        """Delay before retry number attempt+1: 2s, 4s, 8s with the defaults."""
        return self.initial_backoff * (2 ** attempt)

    async def evaluate(self, items: Sequence[ItemSnapshot]) -> list[Verdict]:
        """
        Evaluate a batch of items concurrently.

        Args:
            items: Items to audit

        Returns:
            One verdict per item, in input order
        """
        if not items:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(item: ItemSnapshot) -> Verdict:
            async with semaphore:
                return await self.evaluate_one(item)

        verdicts = await asyncio.gather(*(bounded(item) for item in items))

        failures = sum(1 for v in verdicts if v.is_tool_failure)
        passed = sum(1 for v in verdicts if v.passes_gate)
        logger.info(
            f"Audited {len(items)} items with {self.judge.auditor}: "
            f"{passed} passed, {len(items) - passed - failures} flagged, {failures} tool failures"
        )
        return list(verdicts)

    async def evaluate_one(self, item: ItemSnapshot) -> Verdict:
        """Evaluate one item with retries; never raises for judge failures."""
        auditor = self.judge.auditor
        model = self.judge.model
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                raw = await self.judge.judge(item)
                return parse_verdict(raw, kind=self.judge.kind, auditor=auditor, model=model)

            except (JudgeThrottledError, JudgeUnavailableError) as e:
                if attempt < attempts - 1:
                    wait_time = self.backoff(attempt)
                    logger.warning(
                        f"Judge call for item {item.id} failed on attempt {attempt + 1}/{attempts}: "
                        f"{e}. Retrying in {wait_time}s..."
                    )
                    await self.sleep(wait_time)
                    continue

                logger.error(f"Judge call for item {item.id} failed after {attempts} attempts: {e}")
                if isinstance(e, JudgeThrottledError):
                    reason = ToolFailureReason.THROTTLED
                elif e.timed_out:
                    reason = ToolFailureReason.TIMEOUT
                else:
                    reason = ToolFailureReason.API_ERROR
                return tool_failure(auditor, reason, str(e), model=model)

            except JudgeError as e:
                logger.error(f"Judge call for item {item.id} failed: {e}")
                return tool_failure(auditor, ToolFailureReason.API_ERROR, str(e), model=model)

            except Exception as e:  # Isolate unexpected judge bugs to this item
                logger.exception(f"Unexpected judge error for item {item.id}")
                return tool_failure(auditor, ToolFailureReason.API_ERROR, repr(e), model=model)

        raise AssertionError("unreachable")
