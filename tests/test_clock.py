"""Tests for the reward clock multiplier."""

import pytest

from farmledger.engine.clock import multiplier


class TestMultiplier:
    """The three regimes around the bonus cutoff."""

    def test_empty_interval(self):
        assert multiplier(10, 10, 0) == 0

    def test_inverted_interval(self):
        assert multiplier(20, 10, 15, 3) == 0

    def test_no_bonus_window(self):
        """bonus_end == 0 means every interval is post-bonus."""
        assert multiplier(100, 110, 0, 5) == 10

    def test_fully_inside_bonus(self):
        assert multiplier(100, 110, 200, 3) == 30

    def test_ends_exactly_at_bonus_end(self):
        assert multiplier(100, 200, 200, 2) == 200

    def test_fully_after_bonus(self):
        assert multiplier(300, 310, 200, 3) == 10

    def test_straddles_bonus_end(self):
        """Bonus part weighted, remainder at 1x."""
        assert multiplier(190, 210, 200, 4) == 10 * 4 + 10

    def test_default_multiplier_is_plain_duration(self):
        assert multiplier(190, 210, 200) == 20

    def test_split_is_additive(self):
        """Splitting an interval anywhere gives the same total."""
        whole = multiplier(150, 260, 200, 3)
        for cut in (160, 199, 200, 201, 250):
            assert multiplier(150, cut, 200, 3) + multiplier(cut, 260, 200, 3) == whole

    def test_rejects_multiplier_below_one(self):
        with pytest.raises(ValueError):
            multiplier(0, 10, 5, 0)
