"""
Unit tests for Leitner box transitions and weights.
"""

import pytest

from quizpool.mastery import (
    BOX_PROMOTION_THRESHOLDS,
    BOX_WEIGHTS,
    MAX_BOX,
    UNSEEN_WEIGHT,
    BoxState,
    box_weight,
    next_box,
)


class TestNextBox:
    def test_box3_promotes_at_threshold(self):
        assert next_box(3, 1, True) == BoxState(4, 0)

    def test_box3_first_correct_stays(self):
        assert next_box(3, 0, True) == BoxState(3, 1)

    def test_box1_promotes_after_one_correct(self):
        assert next_box(1, 0, True) == BoxState(2, 0)

    def test_box4_needs_three(self):
        assert next_box(4, 1, True) == BoxState(4, 2)
        assert next_box(4, 2, True) == BoxState(5, 0)

    @pytest.mark.parametrize("box", range(1, MAX_BOX + 1))
    @pytest.mark.parametrize("streak", [0, 1, 4])
    def test_wrong_answer_resets(self, box, streak):
        assert next_box(box, streak, False) == BoxState(1, 0)

    def test_ceiling_keeps_counting(self):
        assert next_box(5, 2, True) == BoxState(5, 3)

    def test_out_of_range_input_is_clamped(self):
        assert next_box(9, 0, True) == BoxState(5, 1)
        assert next_box(0, -3, True) == BoxState(2, 0)

    def test_walk_to_mastery(self):
        state = BoxState(1, 0)
        answers = 0
        while state.box < MAX_BOX:
            state = next_box(state.box, state.consecutive_correct, True)
            answers += 1
        assert answers == sum(BOX_PROMOTION_THRESHOLDS.values())


class TestBoxWeight:
    def test_lower_box_weighs_more(self):
        weights = [box_weight(b) for b in range(1, MAX_BOX + 1)]
        assert weights == sorted(weights, reverse=True)

    def test_mastered_items_keep_positive_weight(self):
        assert box_weight(MAX_BOX) > 0

    def test_unseen_weight_is_distinct(self):
        assert box_weight(None) == UNSEEN_WEIGHT
        assert UNSEEN_WEIGHT not in BOX_WEIGHTS.values()
