"""
Trading analysis: best single buy/sell window over analyst price targets.

Modules
-------
scan     : ScanResult dataclass + find_best_trade() — pure single-pass
           maximum-profit scan, no DB or I/O.
ranker   : rank_by_profit_percentage() — stable descending sort.
analyzer : TradingAnalyzer — single ticker, ranked multi-ticker and
           cross-ticker "global" analysis over the rating store.
"""
