"""
Adaptive Portfolio Backtest Engine (adaptive-backtest)

A monthly portfolio backtest simulator. Given a target multi-asset allocation,
a contribution schedule and historical monthly prices and dividends, it replays
what would have happened to a hypothetical portfolio: price returns, dividend
credits, contributions and periodic rebalancing with whole shares and limited
cash. Every run produces a fully reconciled monthly transaction journal along
with return, volatility, Sharpe ratio, drawdown and per-asset attribution.
"""

__version__ = "0.1.0"
__author__ = "Adaptive Backtest Team"
