"""
Leitner-box mastery tracking per learner x item.
"""
from .leitner import (
    BOX_PROMOTION_THRESHOLDS,
    BOX_WEIGHTS,
    MAX_BOX,
    MIN_BOX,
    UNSEEN_WEIGHT,
    BoxState,
    box_weight,
    next_box,
)
from .tracker import AnswerEvent, MasteryTracker

__all__ = [
    "BOX_PROMOTION_THRESHOLDS",
    "BOX_WEIGHTS",
    "MAX_BOX",
    "MIN_BOX",
    "UNSEEN_WEIGHT",
    "BoxState",
    "box_weight",
    "next_box",
    "AnswerEvent",
    "MasteryTracker",
]
