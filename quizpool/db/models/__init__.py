# SQLAlchemy models
from .base import Base
from .items import (
    AuditRecord,
    GenerationBatch,
    QuizItem,
)
from .mastery import MasteryRecord

__all__ = [
    # Base
    "Base",
    # Item pool
    "GenerationBatch",
    "QuizItem",
    "AuditRecord",
    # Mastery
    "MasteryRecord",
]
