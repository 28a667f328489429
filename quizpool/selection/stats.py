"""
Pool statistics and coverage checks for quiz generation.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quizpool.db.models import QuizItem
from quizpool.domain import ALL_UNITS, Difficulty, ItemStatus


@dataclass
class PoolStatistics:
    """Statistics for the item pool of one unit (or all units)."""
    unit_id: Optional[str]
    total_items: int
    active_items: int
    pending_items: int
    flagged_items: int
    difficulty_distribution: Dict[str, int]  # active items only
    type_distribution: Dict[str, int]  # active items only
    has_sufficient_items: bool
    min_items_required: int


def get_pool_statistics(
    session: Session,
    unit_id: Optional[str] = None,
    min_items: int = 10,
) -> PoolStatistics:
    """
    Get statistics for the pool serving a unit.

    Args:
        session: Database session
        unit_id: Unit to inspect (None for the whole pool)
        min_items: Active items needed for one quiz

    Returns:
        PoolStatistics
    """
    query = select(QuizItem.status, QuizItem.item_type, QuizItem.difficulty, func.count()).group_by(
        QuizItem.status, QuizItem.item_type, QuizItem.difficulty
    )
    if unit_id is not None and unit_id != ALL_UNITS:
        query = query.where(QuizItem.unit_id.in_([unit_id, ALL_UNITS]))

    status_counts = {status.value: 0 for status in ItemStatus}
    difficulty_dist = {d.value: 0 for d in Difficulty}
    type_dist: Dict[str, int] = {}

    for status, item_type, difficulty, count in session.execute(query):
        status_counts[status] = status_counts.get(status, 0) + count
        if status == ItemStatus.ACTIVE.value:
            difficulty_dist[difficulty] = difficulty_dist.get(difficulty, 0) + count
            type_dist[item_type] = type_dist.get(item_type, 0) + count

    active = status_counts[ItemStatus.ACTIVE.value]
    return PoolStatistics(
        unit_id=unit_id,
        total_items=sum(status_counts.values()),
        active_items=active,
        pending_items=status_counts[ItemStatus.PENDING.value],
        flagged_items=status_counts[ItemStatus.FLAGGED.value],
        difficulty_distribution=difficulty_dist,
        type_distribution=dict(sorted(type_dist.items())),
        has_sufficient_items=active >= min_items,
        min_items_required=min_items,
    )


def coverage_recommendations(
    stats: PoolStatistics,
    distribution: Dict[str, float] | None = None,
) -> List[str]:
    """Generate recommendations for improving pool coverage."""
    recommendations = []
    required = stats.min_items_required

    if stats.active_items < required:
        gap = required - stats.active_items
        recommendations.append(f"Add {gap} more active items to fill one quiz")

    if stats.pending_items:
        recommendations.append(f"Audit {stats.pending_items} pending items")

    # Types the quiz asks for but the pool lacks
    for item_type, ratio in sorted((distribution or {}).items()):
        if ratio > 0 and not stats.type_distribution.get(item_type):
            recommendations.append(f"No active {item_type} items; selection will backfill from other types")

    # Recommend multiple attempts buffer
    if stats.active_items < required * 2:
        recommendations.append("Consider adding more items to support multiple unique attempts")

    return recommendations
