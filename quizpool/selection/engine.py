"""
Adaptive Selection Engine.

Builds a quiz from the active pool:
1. stratify by item type (Hamilton apportionment of the quiz size)
2. weighted sampling without replacement inside each type bucket,
   weights from the learner's Leitner boxes (unseen items get their own weight)
3. backfill type shortfalls from the remaining pool, with warnings
4. shuffle so type buckets are not visible in serving order

An undersized pool is never an error: the result is the best available set
plus human-readable warnings.
"""
from __future__ import annotations

import hashlib
import random
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from quizpool.config import Settings, get_settings
from quizpool.db.models import QuizItem
from quizpool.domain import ALL_UNITS, Difficulty, ItemSnapshot, ItemStatus
from quizpool.identity import normalize_text
from quizpool.mastery import MasteryTracker, box_weight

from .apportion import apportion
from .sampler import weighted_sample


@dataclass
class QuizRequest:
    """Parameters of one quiz selection."""

    unit_id: Optional[str] = None
    learner_id: Optional[str] = None
    topic: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    count: Optional[int] = None
    type_distribution: dict[str, float] = field(default_factory=dict)
    seed: Optional[int | str] = None


@dataclass
class QuizSelection:
    """Selected items in serving order, plus shortfall warnings."""

    items: list[ItemSnapshot]
    warnings: list[str] = field(default_factory=list)
    requested: int = 0

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - len(self.items))


def create_seed(seed: str | int) -> int:
    """Create a reproducible integer seed from string or int."""
    if isinstance(seed, int):
        return seed

    # Hash string to create seed
    hash_bytes = hashlib.sha256(str(seed).encode()).digest()
    return int.from_bytes(hash_bytes[:8], byteorder="big")


def select_from_pool(
    pool: Sequence[ItemSnapshot],
    count: int,
    distribution: Mapping[str, float],
    boxes: Mapping[UUID, int],
    rng: random.Random,
) -> QuizSelection:
    """
    Select up to count items from a candidate pool.

    Args:
        pool: Candidate items (already filtered to servable items)
        count: Target quiz size
        distribution: Item type -> ratio; no positive ratio means one bucket
        boxes: Item id -> Leitner box for the learner; missing ids are unseen
        rng: Random source for sampling and shuffling

    Returns:
        QuizSelection with at most count items and any shortfall warnings
    """
    selection = QuizSelection(items=[], requested=count)
    if count <= 0:
        return selection

    def weight(item: ItemSnapshot) -> float:
        return box_weight(boxes.get(item.id))

    target = min(count, len(pool))
    if len(pool) < count:
        selection.warnings.append(
            f"Requested {count} items but only {len(pool)} match the filters"
        )

    quotas = apportion(target, distribution)
    if not quotas:
        selection.items = weighted_sample(pool, target, weight, rng)
        rng.shuffle(selection.items)
        return selection

    buckets: dict[str, list[ItemSnapshot]] = defaultdict(list)
    for item in pool:
        buckets[item.item_type].append(item)

    chosen: list[ItemSnapshot] = []
    missing = 0
    for item_type in sorted(quotas):
        wanted = quotas[item_type]
        if wanted == 0:
            continue
        picked = weighted_sample(buckets.get(item_type, []), wanted, weight, rng)
        chosen.extend(picked)
        if len(picked) < wanted:
            missing += wanted - len(picked)
            selection.warnings.append(
                f"Only {len(picked)} {item_type} items available (wanted {wanted})"
            )

    if missing:
        taken = {item.id for item in chosen}
        remaining = [item for item in pool if item.id not in taken]
        backfill = weighted_sample(remaining, missing, weight, rng)
        chosen.extend(backfill)
        logger.debug(f"Backfilled {len(backfill)} of {missing} missing items from other types")

    rng.shuffle(chosen)
    selection.items = chosen
    return selection


class SelectionEngine:
    """
    Query the active pool and select a quiz for a learner.

    Usage:
        engine = SelectionEngine(session)
        quiz = engine.select_quiz(QuizRequest(unit_id="unit-1", learner_id="learner-1"))
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.rng = rng
        self.mastery = MasteryTracker(session)

    def candidates(self, request: QuizRequest) -> list[ItemSnapshot]:
        """Active items matching the request filters, in fingerprint order."""
        query = select(QuizItem).where(QuizItem.status == ItemStatus.ACTIVE.value)

        if request.unit_id is not None and request.unit_id != ALL_UNITS:
            query = query.where(QuizItem.unit_id.in_([request.unit_id, ALL_UNITS]))
        if request.difficulty is not None:
            query = query.where(QuizItem.difficulty == Difficulty(request.difficulty).value)

        result = self.session.execute(query.order_by(QuizItem.fingerprint))
        items = [item.to_snapshot() for item in result.scalars()]

        # Unicode case-insensitive; SQLite lower() folds ASCII only
        if request.topic:
            topic = normalize_text(request.topic)
            items = [item for item in items if normalize_text(item.topic) == topic]
        return items

    def resolve_distribution(self, request: QuizRequest) -> dict[str, float]:
        """Request distribution if it has a positive ratio, else the configured default."""
        if any(ratio > 0 for ratio in request.type_distribution.values()):
            return dict(request.type_distribution)
        return dict(self.settings.default_type_distribution)

    def _rng_for(self, request: QuizRequest, rng: random.Random | None) -> random.Random:
        if rng is not None:
            return rng
        if self.rng is not None:
            return self.rng
        if request.seed is not None:
            return random.Random(create_seed(request.seed))
        return random.Random()

    def select_quiz(self, request: QuizRequest, rng: random.Random | None = None) -> QuizSelection:
        """
        Select a quiz for a request.

        Args:
            request: Filters, size, type distribution and optional seed
            rng: Random source; overrides the engine's and the request seed

        Returns:
            QuizSelection (never raises for an undersized pool)
        """
        count = request.count if request.count is not None else self.settings.default_quiz_size
        pool = self.candidates(request)
        boxes = self.mastery.box_lookup(request.learner_id, [item.id for item in pool])

        selection = select_from_pool(
            pool,
            count,
            self.resolve_distribution(request),
            boxes,
            self._rng_for(request, rng),
        )

        logger.info(
            f"Selected {len(selection.items)}/{count} items for "
            f"{request.learner_id or 'anonymous'} (unit={request.unit_id}, pool={len(pool)})"
        )
        for warning in selection.warnings:
            logger.warning(warning)
        return selection
