"""
Example runner script demonstrating programmatic backtest execution.

Synthesizes a small daily put chain with Black-Scholes prices, writes it as a
CSV, and runs it through the same run_backtest() function the CLI uses.
"""

import sys
import tempfile
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd

from options_strategy_bt.config import RunConfig
from options_strategy_bt.data import build_option_symbol
from options_strategy_bt.pricing import price
from options_strategy_bt.run.runner import run_backtest


def synthesize_chain(start: date, days: int, spot0: float = 100.0, seed: int = 7) -> pd.DataFrame:
    """Random-walk underlying with monthly put expiries priced at 25% vol."""
    rng = np.random.default_rng(seed)
    spot = spot0
    rows = []
    expiries = [start + timedelta(days=d) for d in (35, 63, 91, 119)]
    for i in range(days):
        day = start + timedelta(days=i)
        spot = spot * float(np.exp(rng.normal(0.0, 0.01)))
        for expiry in expiries:
            dte = (expiry - day).days
            if dte <= 0:
                continue
            for strike in np.arange(80.0, 101.0, 2.5):
                mid = price("put", spot, float(strike), dte, 0.25, 0.05)
                half_spread = max(0.05, mid * 0.02)
                rows.append(
                    {
                        "date": day.isoformat(),
                        "symbol": build_option_symbol("DEMO", expiry, "put", float(strike)),
                        "type": "put",
                        "strike": float(strike),
                        "expiration": expiry.isoformat(),
                        "bid": round(max(mid - half_spread, 0.01), 2),
                        "ask": round(mid + half_spread, 2),
                        "underlying": round(spot, 2),
                    }
                )
    return pd.DataFrame(rows)


def main():
    """Run example backtest"""
    start = date(2024, 1, 2)
    with tempfile.TemporaryDirectory() as tmp:
        csv_path = Path(tmp) / "demo_options.csv"
        synthesize_chain(start, days=90).to_csv(csv_path, index=False)

        config = RunConfig(
            data={"options_csv": str(csv_path)},
            engine={
                "symbol": "DEMO",
                "start": start.isoformat(),
                "end": (start + timedelta(days=89)).isoformat(),
                "initial_cash": 50_000.0,
            },
            reporting={"run_dir_root": "runs", "run_id_mode": "timestamp"},
            strategy={"name": "short_put", "params": {"take_profit_percent": 50, "exit_dte": 7}},
        )

        print(f"Running backtest on synthetic data: {csv_path}")
        result = run_backtest(config)

    metrics = result.metrics
    print("\n" + "=" * 70)
    print("BACKTEST COMPLETE")
    print("=" * 70)
    print(f"Run ID: {result.run_id}")
    print(f"Run Directory: {result.run_dir}")
    print("-" * 70)
    print(f"Total P&L: ${metrics['total_pnl']:,.2f} ({metrics['total_pnl_percent']:.2f}%)")
    print(f"Max Drawdown: {metrics['max_drawdown_pct']:.2f}%")
    print(f"Total Trades: {metrics['total_trades']}")
    print(f"Win Rate: {metrics['win_rate_pct']:.2f}%")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
