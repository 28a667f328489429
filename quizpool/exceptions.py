"""
Exception hierarchy for quizpool.

Expected outcomes (duplicates, content failures, shortfalls) are return values,
not exceptions. These classes cover genuine errors and judge-call failures.
"""
from __future__ import annotations


class QuizPoolError(Exception):
    """Base class for quizpool errors."""
    pass


class ItemNotFoundError(QuizPoolError):
    """Raised when an operation references an item id that is not stored."""

    def __init__(self, item_id: object):
        super().__init__(f"Quiz item not found: {item_id}")
        self.item_id = item_id


class InvalidVerdictError(QuizPoolError):
    """Raised when judge output does not match the verdict schema."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class JudgeError(QuizPoolError):
    """A judge call failed before producing any output."""
    pass


class JudgeThrottledError(JudgeError):
    """The judge signalled rate limiting (HTTP 429). Retryable."""
    pass


class JudgeUnavailableError(JudgeError):
    """The judge timed out or returned a server error. Retryable."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
