"""
Run module: backtester, config-driven runner, CLI, and artifacts.
"""

from .backtester import (
    Backtester,
    BacktesterConfig,
    BacktestLog,
    BacktestResult,
    EquityPoint,
    max_drawdown_percent,
)
from .runner import run_backtest, run_many, RunResult
from .artifacts import RunArtifacts, generate_run_id

__all__ = [
    "Backtester",
    "BacktesterConfig",
    "BacktestLog",
    "BacktestResult",
    "EquityPoint",
    "max_drawdown_percent",
    "run_backtest",
    "run_many",
    "RunResult",
    "RunArtifacts",
    "generate_run_id",
]
