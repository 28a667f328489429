"""
Content identity: fingerprinting and duplicate-free ingestion.
"""
from .fingerprint import fingerprint, normalize_text
from .ingestion import (
    BatchReport,
    CollisionLevel,
    GeneratedItem,
    InsertOutcome,
    InsertResult,
    ItemRepository,
    classify_collision_rate,
)

__all__ = [
    "fingerprint",
    "normalize_text",
    "BatchReport",
    "CollisionLevel",
    "GeneratedItem",
    "InsertOutcome",
    "InsertResult",
    "ItemRepository",
    "classify_collision_rate",
]
