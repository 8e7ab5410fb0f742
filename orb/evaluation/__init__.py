"""
Evaluation module.

Provides the bar-by-bar setup backtest and its per-setup and per-zone summaries.
"""
from .backtest import (
    BacktestReplay,
    SetupInstance,
    run_setup_backtest,
    summarize_instances,
    score_history,
    summarize_zones,
)

__all__ = [
    'BacktestReplay',
    'SetupInstance',
    'run_setup_backtest',
    'summarize_instances',
    'score_history',
    'summarize_zones',
]
