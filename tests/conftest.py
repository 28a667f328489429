"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import pytest
from loguru import logger
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from quizpool.config import Settings  # noqa: E402
from quizpool.db.database import make_engine  # noqa: E402
from quizpool.db.models import Base, QuizItem  # noqa: E402
from quizpool.domain import Difficulty, ItemSnapshot, ItemStatus, ItemType  # noqa: E402
from quizpool.identity import GeneratedItem  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def setup_logging():
    """Route loguru output to stderr at DEBUG for every test."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG",
        format="<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    )
    yield
    logger.remove()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        audit_initial_backoff_seconds=0.0,
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across connections."""
    engine = make_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """Database session rolled back after the test."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def make_item():
    """Factory for GeneratedItem with sensible defaults."""

    def _make(**overrides) -> GeneratedItem:
        data = {
            "type": ItemType.MULTIPLE_CHOICE,
            "question": f"What is the capital of country {uuid4().hex[:6]}?",
            "correct_answer": "Paris",
            "difficulty": Difficulty.BEGINNER,
            "topic": "Geography",
            "unit_id": "unit-1",
            "options": ["Paris", "Rome", "Berlin", "Madrid"],
        }
        data.update(overrides)
        return GeneratedItem.model_validate(data)

    return _make


@pytest.fixture
def add_item(session):
    """Store a QuizItem row directly, bypassing ingestion."""

    def _add(
        item_type: str = ItemType.MULTIPLE_CHOICE.value,
        status: ItemStatus = ItemStatus.ACTIVE,
        difficulty: Difficulty = Difficulty.BEGINNER,
        unit_id: str = "unit-1",
        topic: str = "Geography",
        variations: list[str] | None = None,
    ) -> QuizItem:
        item = QuizItem(
            fingerprint=uuid4().hex,
            item_type=item_type,
            difficulty=difficulty.value,
            topic=topic,
            unit_id=unit_id,
            question=f"Question {uuid4().hex[:8]}",
            correct_answer="answer",
            acceptable_variations=variations or [],
            status=status.value,
        )
        session.add(item)
        session.flush()
        return item

    return _add


@pytest.fixture
def make_snapshot():
    """Factory for ItemSnapshot without a database."""

    def _make(
        item_type: str = ItemType.MULTIPLE_CHOICE.value,
        status: ItemStatus = ItemStatus.PENDING,
        difficulty: Difficulty = Difficulty.BEGINNER,
        variations: list[str] | None = None,
    ) -> ItemSnapshot:
        return ItemSnapshot(
            id=uuid4(),
            fingerprint=uuid4().hex,
            item_type=item_type,
            difficulty=difficulty,
            topic="Geography",
            unit_id="unit-1",
            status=status,
            question="Question",
            correct_answer="answer",
            acceptable_variations=list(variations or []),
            created_at=datetime(2024, 1, 1),
        )

    return _make
