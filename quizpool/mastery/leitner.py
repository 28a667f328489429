"""
Leitner Spaced Repetition Boxes.

Implements a 5-box Leitner system:
- Wrong answer -> box 1, streak reset (a single miss resets all progress)
- Correct answers -> promote once the streak reaches the current box's threshold
- Box 5 is a ceiling: the streak keeps counting but there is no box 6

Box weights drive quiz selection: lower box = higher weight, so material the
learner struggles with surfaces more often. Box 5 keeps a positive weight so
mastered items still come back for review.
"""
from __future__ import annotations

from typing import NamedTuple

MIN_BOX = 1
MAX_BOX = 5

# Consecutive correct answers needed to leave each box
BOX_PROMOTION_THRESHOLDS: dict[int, int] = {
    1: 1,
    2: 2,
    3: 2,
    4: 3,
}

# Selection weights by box (higher = more likely to appear in a quiz)
BOX_WEIGHTS: dict[int, float] = {
    1: 5.0,
    2: 4.0,
    3: 3.0,
    4: 2.0,
    5: 1.0,
}

# Never-seen items; distinct from every box weight
UNSEEN_WEIGHT = 3.5


class BoxState(NamedTuple):
    box: int
    consecutive_correct: int


def next_box(current_box: int, consecutive_correct: int, was_correct: bool) -> BoxState:
    """
    Calculate the box state after one answer.

    Total over its domain: boxes outside 1-5 are clamped, negative streaks
    are treated as zero.

    Args:
        current_box: Box before the answer (1-5)
        consecutive_correct: Streak before the answer
        was_correct: Whether the answer was correct

    Returns:
        BoxState(box, consecutive_correct) after the answer
    """
    if not was_correct:
        return BoxState(MIN_BOX, 0)

    box = min(max(current_box, MIN_BOX), MAX_BOX)
    streak = max(consecutive_correct, 0) + 1

    threshold = BOX_PROMOTION_THRESHOLDS.get(box)
    if threshold is None:
        return BoxState(box, streak)

    if streak >= threshold:
        return BoxState(box + 1, 0)

    return BoxState(box, streak)


def box_weight(box: int | None) -> float:
    """Selection weight for an item; None means the learner has never seen it."""
    if box is None:
        return UNSEEN_WEIGHT
    return BOX_WEIGHTS.get(box, UNSEEN_WEIGHT)
