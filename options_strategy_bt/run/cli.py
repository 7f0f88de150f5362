"""
CLI entrypoint for running backtests and quick pricing/metrics checks.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..config import load_config, apply_env_overrides, apply_cli_overrides, RunConfig
from ..pricing import OptionLeg, greeks, price, strategy_metrics
from ..strategy import list_strategies, discover_strategies
from .artifacts import generate_run_id
from .runner import run_backtest, RunResult

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_summary(result: RunResult):
    """Print backtest summary to console"""
    metrics = result.metrics

    print("\n" + "=" * 70)
    print("BACKTEST SUMMARY")
    print("=" * 70)
    print(f"Run ID: {result.run_id}")
    print(f"Run Directory: {result.run_dir}")
    print("-" * 70)
    print(f"Symbol: {metrics.get('symbol')} ({metrics.get('start_date')} to {metrics.get('end_date')})")
    print(f"Final Cash: ${metrics.get('final_cash', 0.0):,.2f}")
    print(f"Total P&L: ${metrics.get('total_pnl', 0.0):,.2f} ({metrics.get('total_pnl_percent', 0.0):.2f}%)")
    print(f"Max Drawdown: {metrics.get('max_drawdown_pct', 0.0):.2f}%")
    print(f"Total Trades: {metrics.get('total_trades', 0)}")
    print(f"Win Rate: {metrics.get('win_rate_pct', 0.0):.2f}%")
    print("=" * 70 + "\n")


def cmd_list_strategies():
    """List all available strategies"""
    strategies = discover_strategies()

    print("\n" + "=" * 70)
    print("AVAILABLE STRATEGIES")
    print("=" * 70)
    if strategies:
        for strategy in strategies:
            print(f"  - {strategy}")
    else:
        print("  (No strategies registered)")
        print("\n  Make sure strategy modules are imported in options_strategy_bt/strategy/__init__.py")
    print("=" * 70 + "\n")


def resolve_config(
    config_path: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    strategy: Optional[str] = None,
    sets: Optional[List[str]] = None,
    run_id_mode: Optional[str] = None,
) -> RunConfig:
    """File -> env overrides -> --set overrides -> explicit flags."""
    config = load_config(config_path)
    config = apply_env_overrides(config)

    overrides = list(sets or [])
    if start:
        overrides.append(f"engine.start={start}")
    if end:
        overrides.append(f"engine.end={end}")
    if strategy:
        overrides.append(f"strategy.name={strategy}")
    if run_id_mode:
        overrides.append(f"reporting.run_id_mode={run_id_mode}")
    return apply_cli_overrides(config, overrides)


def cmd_dry_run(config: RunConfig) -> str:
    """Dry run: resolve config and print run ID without executing"""
    run_id = generate_run_id(config.model_dump(mode="json"), mode=config.reporting.run_id_mode)

    print("\n" + "=" * 70)
    print("DRY RUN - Configuration Resolved")
    print("=" * 70)
    print(f"Run ID (mode: {config.reporting.run_id_mode}): {run_id}")
    print(f"Strategy: {config.strategy.name}")
    print(f"Symbol: {config.engine.symbol}")
    print(f"Date Range: {config.engine.start} to {config.engine.end}")
    print(f"Options CSV: {config.data.options_csv}")
    if config.data.underlying_csv:
        print(f"Underlying CSV: {config.data.underlying_csv}")
    print("=" * 70 + "\n")

    return run_id


def parse_leg(leg_text: str) -> OptionLeg:
    """
    Parse "side:type:strike:premium[:quantity[:days]]", e.g. "long:call:100:5.0".
    """
    parts = leg_text.split(":")
    if len(parts) < 4 or len(parts) > 6:
        raise ValueError(f"Invalid leg: {leg_text!r}. Expected side:type:strike:premium[:quantity[:days]]")
    side, option_type, strike, premium = parts[:4]
    quantity = int(parts[4]) if len(parts) > 4 else 1
    days = float(parts[5]) if len(parts) > 5 else 0.0
    return OptionLeg(
        option_type=option_type.lower(),
        side=side.lower(),
        strike=float(strike),
        quantity=quantity,
        premium=float(premium),
        days_to_expiration=days,
    )


def cmd_price(args) -> dict:
    value = price(args.type, args.spot, args.strike, args.days, args.vol, args.rate)
    leg = OptionLeg(option_type=args.type, side="long", strike=args.strike, days_to_expiration=args.days)
    out = {"price": value, **greeks(leg, args.spot, args.vol, args.rate).to_dict()}
    print(json.dumps(out, indent=2))
    return out


def cmd_metrics(args) -> dict:
    legs = [parse_leg(s) for s in args.legs]
    out = strategy_metrics(legs, args.spot, points=args.points).to_dict()
    print(json.dumps(out, indent=2))
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Options Strategy Backtest Engine - CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with config file
  python -m options_strategy_bt.run.cli run --config configs/short_put.yaml

  # Override date range and strategy params
  python -m options_strategy_bt.run.cli run --config configs/short_put.yaml --start 2024-01-02 --end 2024-03-28 --set strategy.params.take_profit_percent=40

  # Dry run (resolve config without executing)
  python -m options_strategy_bt.run.cli dry-run --config configs/short_put.yaml

  # List available strategies
  python -m options_strategy_bt.run.cli list-strategies

  # Price one contract / evaluate a spread
  python -m options_strategy_bt.run.cli price --type call --spot 100 --strike 105 --days 30
  python -m options_strategy_bt.run.cli metrics --spot 100 long:call:100:5.0 short:call:110:2.0
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("run", "dry-run"):
        p = sub.add_parser(name, help="Run a backtest" if name == "run" else "Resolve config and print run ID")
        p.add_argument("--config", type=str, required=True, help="Path to config file (YAML or JSON)")
        p.add_argument("--start", type=str, help="Override start date (ISO format, e.g., 2024-01-02)")
        p.add_argument("--end", type=str, help="Override end date (ISO format, e.g., 2024-03-28)")
        p.add_argument("--strategy", type=str, help="Override strategy name")
        p.add_argument(
            "--set",
            action="append",
            dest="sets",
            metavar="KEY=VALUE",
            help="Override config value (repeatable). Nested keys: strategy.params.exit_dte=10",
        )
        p.add_argument(
            "--run-id-mode",
            choices=["deterministic", "timestamp"],
            default=None,
            help="Run ID generation mode (default: from config)",
        )

    sub.add_parser("list-strategies", help="List all available strategies")

    p_price = sub.add_parser("price", help="Black-Scholes price and Greeks for one contract")
    p_price.add_argument("--type", choices=["call", "put"], required=True)
    p_price.add_argument("--spot", type=float, required=True)
    p_price.add_argument("--strike", type=float, required=True)
    p_price.add_argument("--days", type=float, required=True, help="Calendar days to expiry")
    p_price.add_argument("--vol", type=float, default=0.3, help="Volatility as a fraction (default 0.3)")
    p_price.add_argument("--rate", type=float, default=0.05, help="Risk-free rate as a fraction (default 0.05)")

    p_metrics = sub.add_parser("metrics", help="Max profit/loss and breakevens at expiry")
    p_metrics.add_argument("--spot", type=float, required=True)
    p_metrics.add_argument("--points", type=int, default=200, help="Price grid points (>= 200)")
    p_metrics.add_argument("legs", nargs="+", help="side:type:strike:premium[:quantity[:days]]")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        if args.command == "list-strategies":
            cmd_list_strategies()
        elif args.command == "price":
            cmd_price(args)
        elif args.command == "metrics":
            cmd_metrics(args)
        else:
            config = resolve_config(args.config, args.start, args.end, args.strategy, args.sets, args.run_id_mode)
            if args.command == "dry-run":
                cmd_dry_run(config)
            else:
                print_summary(run_backtest(config))
        return 0
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        logger.exception(f"Command '{args.command}' failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
