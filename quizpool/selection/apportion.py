"""
Largest-remainder (Hamilton) apportionment of a quiz size across item types.
"""
from __future__ import annotations

from fractions import Fraction
from math import floor
from typing import Mapping


def apportion(total: int, ratios: Mapping[str, float]) -> dict[str, int]:
    """
    Split total into integer counts proportional to ratios.

    Only positive ratios take part; they are normalized, so they need not sum
    to 1. Each type first gets floor(total * share); the units left over go
    one at a time to the largest fractional remainders, ties broken by type
    name. Counts sum to exactly total and differ from the exact share by
    less than 1.

    Args:
        total: Number of units to distribute (>= 0)
        ratios: Type -> ratio

    Returns:
        Type -> count for every positive-ratio type (counts may be 0)
    """
    if total < 0:
        raise ValueError(f"Cannot apportion a negative total: {total}")

    # Exact arithmetic: 10 * 0.15 must have remainder exactly 0.5
    shares = {name: Fraction(str(ratio)) for name, ratio in ratios.items() if ratio > 0}
    if not shares:
        return {}

    weight = sum(shares.values())
    quotas = {name: total * share / weight for name, share in shares.items()}
    counts = {name: floor(quota) for name, quota in quotas.items()}

    leftover = total - sum(counts.values())
    by_remainder = sorted(quotas, key=lambda name: (-(quotas[name] - counts[name]), name))
    for name in by_remainder[:leftover]:
        counts[name] += 1

    return counts
