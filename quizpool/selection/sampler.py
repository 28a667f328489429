"""
Weighted sampling without replacement.
"""
from __future__ import annotations

import random
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")


def weighted_sample(
    candidates: Sequence[T],
    k: int,
    weight: Callable[[T], float],
    rng: random.Random,
) -> list[T]:
    """
    Draw up to k distinct candidates, each draw proportional to weight.

    Every draw removes the chosen candidate before the next one, so
    probabilities are renormalized over what remains. Weights must be
    positive. Returns fewer than k items when candidates run out.
    """
    remaining = list(candidates)
    weights = [weight(c) for c in remaining]
    if any(w <= 0 for w in weights):
        raise ValueError("Sampling weights must be positive")

    chosen: list[T] = []
    while remaining and len(chosen) < k:
        point = rng.random() * sum(weights)
        index = len(remaining) - 1
        cumulative = 0.0
        for i, w in enumerate(weights):
            cumulative += w
            if point < cumulative:
                index = i
                break
        chosen.append(remaining.pop(index))
        weights.pop(index)

    return chosen
