"""
Single-pass maximum-profit scan.

Given prices ordered by time, find indices ``buy < sell`` maximising
``prices[sell] - prices[buy]``::

    running_min = prices[0]
    for i in 1..n-1:
        if prices[i] - running_min > best:   record (min_index, i)
        if prices[i] < running_min:          running_min = prices[i]

Both comparisons are strict, so among equal profits the earliest sell point
wins and, for that sell point, the earliest occurrence of the minimum.
A candidate must beat a best of 0, so a flat or falling series has no
opportunity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from rating_trader.errors import InsufficientDataError, NoProfitableOpportunityError


@dataclass(frozen=True)
class ScanResult:
    """Indices and profit of the best trade found by ``find_best_trade``."""

    buy_index: int
    sell_index: int
    max_profit: float


def find_best_trade(prices: Sequence[float]) -> ScanResult:
    """Return the most profitable single buy-then-sell pair.

    Args:
        prices: Prices in chronological order.

    Returns:
        ``ScanResult`` with ``buy_index < sell_index`` and ``max_profit > 0``.

    Raises:
        InsufficientDataError: If fewer than two prices are given.
        NoProfitableOpportunityError: If no later price exceeds an earlier one.
    """
    if len(prices) < 2:
        raise InsufficientDataError(
            f"Need at least 2 price points to analyze, got {len(prices)}."
        )

    min_price = prices[0]
    min_index = 0
    best_profit = 0.0
    buy_index = -1
    sell_index = -1

    for i in range(1, len(prices)):
        profit = prices[i] - min_price
        if profit > best_profit:
            best_profit = profit
            buy_index = min_index
            sell_index = i
        if prices[i] < min_price:
            min_price = prices[i]
            min_index = i

    if buy_index < 0:
        raise NoProfitableOpportunityError("No profitable trading opportunity found.")

    return ScanResult(buy_index=buy_index, sell_index=sell_index, max_profit=best_profit)
