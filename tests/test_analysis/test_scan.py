"""
Tests for the single-pass maximum-profit scan.

What we test
------------
1. Known series: classic examples, two-point series, falling and flat series.
2. Tie-breaks: earliest sell point and earliest minimum win on equal profit.
3. Input size: fewer than two prices → InsufficientDataError.
4. Brute-force agreement over many random series.
"""

from __future__ import annotations

import random

import pytest

from rating_trader.analysis.scan import ScanResult, find_best_trade
from rating_trader.errors import InsufficientDataError, NoProfitableOpportunityError


def _brute_force(prices: list[float]) -> float:
    return max(prices[j] - prices[i] for i in range(len(prices)) for j in range(i + 1, len(prices)))


class TestKnownSeries:
    def test_classic_example(self):
        assert find_best_trade([7, 1, 5, 3, 6, 4]) == ScanResult(1, 4, 5)

    def test_two_rising_points(self):
        assert find_best_trade([1, 2]) == ScanResult(0, 1, 1)

    def test_strictly_falling_has_no_opportunity(self):
        with pytest.raises(NoProfitableOpportunityError):
            find_best_trade([7, 6, 4, 3, 1])

    def test_flat_series_has_no_opportunity(self):
        with pytest.raises(NoProfitableOpportunityError):
            find_best_trade([3.5, 3.5, 3.5])

    def test_new_minimum_after_best_sell(self):
        result = find_best_trade([2, 10, 1, 8])
        assert (result.buy_index, result.sell_index) == (0, 1)
        assert result.max_profit == 8

    def test_float_prices(self):
        result = find_best_trade([10.25, 9.75, 12.5])
        assert result.buy_index == 1
        assert result.max_profit == pytest.approx(2.75)


class TestTieBreaks:
    def test_earliest_sell_wins_on_equal_profit(self):
        result = find_best_trade([1, 3, 1, 3])
        assert (result.buy_index, result.sell_index) == (0, 1)

    def test_earliest_minimum_is_kept(self):
        result = find_best_trade([2, 1, 1, 5])
        assert (result.buy_index, result.sell_index) == (1, 3)


class TestInputSize:
    @pytest.mark.parametrize("prices", [[], [42.0]])
    def test_fewer_than_two_prices(self, prices):
        with pytest.raises(InsufficientDataError):
            find_best_trade(prices)


class TestBruteForceAgreement:
    def test_random_series(self):
        rng = random.Random(20250101)
        for _ in range(300):
            prices = [float(rng.randint(1, 20)) for _ in range(rng.randint(2, 12))]
            expected = _brute_force(prices)
            if expected <= 0:
                with pytest.raises(NoProfitableOpportunityError):
                    find_best_trade(prices)
                continue

            result = find_best_trade(prices)
            assert result.max_profit == expected
            assert result.buy_index < result.sell_index
            assert prices[result.sell_index] - prices[result.buy_index] == expected
