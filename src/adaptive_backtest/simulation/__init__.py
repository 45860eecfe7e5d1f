"""
Simulation module for the Adaptive Backtest Engine.

Provides the monthly simulation loop, metrics, the backtest entry point
and report generation.
"""

from adaptive_backtest.simulation.engine import MarketData, SimulationState, run_simulation, step
from adaptive_backtest.simulation.backtest import run_adaptive_backtest, save_outputs
from adaptive_backtest.simulation.metrics import (
    PerformanceMetrics,
    calculate_asset_performance,
    calculate_metrics,
)
from adaptive_backtest.simulation.report import generate_report

__all__ = [
    "MarketData",
    "SimulationState",
    "run_simulation",
    "step",
    "run_adaptive_backtest",
    "save_outputs",
    "PerformanceMetrics",
    "calculate_asset_performance",
    "calculate_metrics",
    "generate_report",
]
