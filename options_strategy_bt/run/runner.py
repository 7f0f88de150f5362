"""
Backtest runner: config -> data -> strategy -> Backtester -> artifacts.

This is the single source of truth for running backtests; the CLI calls it.
"""

import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
from tqdm.auto import tqdm

from ..config import RunConfig
from ..data import QuoteCache, load_chains_from_csv, read_underlying_prices, underlying_prices_by_date
from ..strategy import discover_strategies, get_strategy
from .artifacts import RunArtifacts, generate_run_id
from .backtester import BacktestLog, BacktestResult, Backtester, BacktesterConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


@dataclass
class RunResult:
    """Result of a backtest run"""
    run_id: str
    run_dir: Optional[Path]
    result: BacktestResult
    metrics: Dict[str, Any] = field(default_factory=dict)
    equity_curve: pd.DataFrame = field(default_factory=pd.DataFrame)
    trades: pd.DataFrame = field(default_factory=pd.DataFrame)
    logs: List[BacktestLog] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)


def _use_tqdm() -> bool:
    return os.environ.get("OSBT_TQDM", "1") != "0" and sys.stderr.isatty()


def run_backtest(
    config: RunConfig,
    cache: Optional[QuoteCache] = None,
    progress: Optional[ProgressCallback] = None,
    show_progress: Optional[bool] = None,
) -> RunResult:
    """
    Run a backtest with the given configuration.

    Args:
        config: RunConfig instance
        cache: Caller-owned cache for loaded chains (shared across runs if given)
        progress: Optional (percent, message) callback
        show_progress: Force the tqdm bar on/off (default: on when stderr is a TTY)

    Returns:
        RunResult with metrics, DataFrames and run_dir (None when artifacts are disabled)
    """
    config_dict = config.model_dump(mode="json")
    run_id = generate_run_id(config_dict, mode=config.reporting.run_id_mode)

    artifacts: Optional[RunArtifacts] = None
    if config.reporting.save_artifacts:
        artifacts = RunArtifacts(
            Path(config.reporting.run_dir_root), run_id, config_dict, save_log=config.reporting.save_log
        )

    pbar = None
    try:
        logger.info(f"Run ID: {run_id}")
        if artifacts is not None:
            logger.info(f"Run directory: {artifacts.run_dir}")
            artifacts.write_config_resolved()

        discover_strategies()
        strategy = get_strategy(config.strategy.name, config.strategy.params)
        logger.info(f"Strategy: {config.strategy.name}")

        chains = load_chains_from_csv(config.data.options_csv, cache=cache)
        if config.data.underlying_csv:
            prices = read_underlying_prices(config.data.underlying_csv)
        else:
            prices = underlying_prices_by_date(chains)
        logger.info(f"Loaded {len(chains)} chain dates, {len(prices)} price dates")

        backtester = Backtester(
            BacktesterConfig(
                symbol=config.engine.symbol,
                start_date=config.engine.start,
                end_date=config.engine.end,
                initial_cash=config.engine.initial_cash,
                strategy=strategy,
            )
        )

        if show_progress if show_progress is not None else _use_tqdm():
            pbar = tqdm(total=100, desc=f"Backtest {config.engine.symbol}", unit="%", dynamic_ncols=True)

        def _on_progress(percent: int, message: str) -> None:
            if pbar is not None:
                pbar.n = percent
                pbar.set_postfix_str(message)
                pbar.refresh()
            if progress is not None:
                progress(percent, message)

        backtester.set_progress_callback(_on_progress)
        result = backtester.run_with_data(chains, prices)
        logs = backtester.get_logs()

        metrics = result.summary()
        equity_curve = result.equity_frame()
        trades = result.trades_frame()

        if artifacts is not None:
            artifacts.write_manifest(
                {
                    "symbol": result.symbol,
                    "start": result.start_date,
                    "end": result.end_date,
                    "total_trades": result.total_trades,
                }
            )
            if config.reporting.save_csv:
                artifacts.write_equity_curve(equity_curve)
                artifacts.write_trades(trades)
            artifacts.write_metrics(metrics)
            artifacts.write_backtest_log([entry.to_dict() for entry in logs])

        logger.info(f"Backtest complete. Run ID: {run_id}")

        return RunResult(
            run_id=run_id,
            run_dir=artifacts.run_dir if artifacts is not None else None,
            result=result,
            metrics=metrics,
            equity_curve=equity_curve,
            trades=trades,
            logs=logs,
            config=config_dict,
        )

    except Exception as e:
        logger.error(f"Backtest failed: {e}", exc_info=True)
        raise
    finally:
        if pbar is not None:
            pbar.close()
        if artifacts is not None:
            artifacts.close()


def run_many(
    configs: List[RunConfig],
    max_workers: int = 4,
    cache: Optional[QuoteCache] = None,
) -> List[RunResult]:
    """
    Run independent backtests concurrently.

    Each run owns its own Backtester and Portfolio; only the (thread-safe)
    chain cache is shared. Results are returned in the order of `configs`.
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if cache is None and configs:
        cache = QuoteCache(configs[0].data.cache_ttl_seconds)

    results: List[Optional[RunResult]] = [None] * len(configs)
    with ThreadPoolExecutor(max_workers=max_workers) as ex:
        futures = {ex.submit(run_backtest, cfg, cache, None, False): i for i, cfg in enumerate(configs)}
        for fut in as_completed(futures):
            i = futures[fut]
            results[i] = fut.result()
            logger.info(f"Finished run {i + 1}/{len(configs)}: {results[i].run_id}")
    return results
