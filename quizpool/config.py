"""
Configuration settings for the quizpool service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///quizpool.db",
        description="SQLAlchemy connection string (SQLite locally, PostgreSQL in production)",
    )

    # ========================================
    # Judge (external evaluator)
    # ========================================
    judge_url: str = Field(
        default="http://localhost:8200",
        description="Base URL of the evaluation service",
    )
    judge_api_key: str | None = Field(
        default=None,
        description="API key sent to the evaluation service",
    )
    judge_model: str = Field(
        default="default",
        description="Evaluator model identifier, recorded on every verdict",
    )
    judge_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for judge calls",
    )

    # ========================================
    # Audit Behavior
    # ========================================
    audit_concurrency: int = Field(
        default=5,
        ge=1,
        description="Items evaluated in parallel within an audit batch",
    )
    audit_max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries after a throttled or timed-out judge call",
    )
    audit_initial_backoff_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="First backoff delay; doubles on every retry (2s, 4s, 8s)",
    )
    gate_policy: Literal["most_recent", "consensus"] = Field(
        default="most_recent",
        description="Which verdicts decide item status when several auditors ran",
    )

    # ========================================
    # Quiz Selection
    # ========================================
    default_quiz_size: int = Field(
        default=10,
        ge=1,
        description="Quiz size used when a request does not give one",
    )
    default_type_distribution: dict[str, float] = Field(
        default_factory=lambda: {
            "multiple-choice": 0.4,
            "fill-in-blank": 0.2,
            "true-false": 0.1,
            "writing": 0.3,
        },
        description="Type ratios used when a request has no usable distribution",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    @field_validator("default_type_distribution")
    @classmethod
    def _no_negative_ratios(cls, value: dict[str, float]) -> dict[str, float]:
        negative = [name for name, ratio in value.items() if ratio < 0]
        if negative:
            raise ValueError(f"Negative type ratios: {', '.join(sorted(negative))}")
        return value

    def has_judge_configured(self) -> bool:
        """Check if an evaluation service is reachable in principle."""
        return bool(self.judge_url)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
