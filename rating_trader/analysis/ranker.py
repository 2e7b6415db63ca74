"""
Ordering of multi-ticker recommendations.
"""

from __future__ import annotations

from rating_trader.models.trading import TradingRecommendation


def rank_by_profit_percentage(
    recommendations: list[TradingRecommendation],
) -> list[TradingRecommendation]:
    """Sort by ``profit_percentage`` descending.

    The sort is stable: recommendations with equal percentages keep the
    order in which their tickers were requested.
    """
    return sorted(recommendations, key=lambda r: r.profit_percentage, reverse=True)
