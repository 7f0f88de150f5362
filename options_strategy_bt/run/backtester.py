"""
Backtester: replays per-date option chains through a strategy.

Dates are processed strictly in chronological order on one thread; the
strategy at date T sees the ledger exactly as left by every signal through
T-1. Given the same inputs and a deterministic strategy, two runs produce
equal results (including equity curve order and log contents).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Union

import pandas as pd

from ..data.models import OptionChain, date_key
from ..portfolio.portfolio import Portfolio, Position, Trade
from ..pricing.black_scholes import intrinsic_value
from ..strategy.base import CloseSignal, OpenSignal, Strategy, StrategyContext

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]
DateLike = Union[str, date, datetime]


@dataclass
class BacktesterConfig:
    symbol: str
    start_date: DateLike
    end_date: DateLike
    initial_cash: float
    strategy: Strategy


@dataclass(frozen=True)
class BacktestLog:
    timestamp: Optional[datetime]
    type: Literal["entry", "exit", "info"]
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() if self.timestamp is not None else None,
            "type": self.type,
            "message": self.message,
            "details": self.details,
        }


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    equity: float


@dataclass(frozen=True)
class BacktestResult:
    """Read-only aggregate of one run."""
    symbol: str
    start_date: str
    end_date: str
    initial_cash: float
    final_cash: float
    total_pnl: float
    total_pnl_percent: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    max_drawdown: float
    trades: List[Trade]
    equity_curve: List[EquityPoint]
    skipped_dates: List[str] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "initial_cash": self.initial_cash,
            "final_cash": self.final_cash,
            "total_pnl": self.total_pnl,
            "total_pnl_percent": self.total_pnl_percent,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate_pct": self.win_rate,
            "max_drawdown_pct": self.max_drawdown,
            "skipped_dates": len(self.skipped_dates),
        }

    def trades_frame(self) -> pd.DataFrame:
        columns = list(Trade.__dataclass_fields__.keys())
        if not self.trades:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([t.to_dict() for t in self.trades], columns=columns)

    def equity_frame(self) -> pd.DataFrame:
        if not self.equity_curve:
            return pd.DataFrame(columns=["timestamp", "equity", "drawdown_pct"])
        df = pd.DataFrame(
            {
                "timestamp": [p.timestamp for p in self.equity_curve],
                "equity": [p.equity for p in self.equity_curve],
            }
        )
        peak = df["equity"].cummax()
        df["drawdown_pct"] = ((peak - df["equity"]) / peak.where(peak > 0)).fillna(0.0) * 100.0
        return df


def max_drawdown_percent(equity: List[float]) -> float:
    """Largest peak-to-trough decline in percent, peak tracked incrementally."""
    if not equity:
        return 0.0
    peak = equity[0]
    worst = 0.0
    for value in equity:
        if value > peak:
            peak = value
        if peak > 0:
            worst = max(worst, (peak - value) / peak * 100.0)
    return worst


class Backtester:
    """
    Single-use orchestrator: one instance, one run, one Portfolio.
    """

    def __init__(self, config: BacktesterConfig):
        self.config = config
        self.portfolio = Portfolio(config.initial_cash)
        self._start_key = date_key(config.start_date)
        self._end_key = date_key(config.end_date)
        if self._start_key > self._end_key:
            raise ValueError(f"start_date {self._start_key} is after end_date {self._end_key}")
        self._logs: List[BacktestLog] = []
        self._equity_curve: List[EquityPoint] = []
        self._current_timestamp: Optional[datetime] = None
        self._on_progress: Optional[ProgressCallback] = None
        self._has_run = False

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        self._on_progress = callback

    def get_logs(self) -> List[BacktestLog]:
        return list(self._logs)

    def _log(self, type_: Literal["entry", "exit", "info"], message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self._logs.append(BacktestLog(self._current_timestamp, type_, message, dict(details or {})))
        logger.debug(f"[{type_.upper()}] {message}")

    def _dates_in_range(self, chains: Mapping[str, OptionChain]) -> List[str]:
        return sorted(k for k in set(chains) if self._start_key <= k <= self._end_key)

    def run_with_data(
        self,
        option_chains_by_date: Mapping[DateLike, OptionChain],
        stock_prices_by_date: Mapping[DateLike, float],
    ) -> BacktestResult:
        """
        Replay every in-range date and return the aggregate result.

        Raises:
            ValueError: If no chain date falls inside [start_date, end_date]
            RuntimeError: If this Backtester has already run
        """
        if self._has_run:
            raise RuntimeError("Backtester instances are single-use; create a new one per run")
        self._has_run = True

        chains = {date_key(k): v for k, v in option_chains_by_date.items()}
        prices = {date_key(k): v for k, v in stock_prices_by_date.items()}

        keys = self._dates_in_range(chains)
        if not keys:
            raise ValueError(
                f"No data available for {self.config.symbol} between {self._start_key} and {self._end_key}"
            )

        first_chain = chains[keys[0]]
        self._current_timestamp = first_chain.timestamp if first_chain is not None else None
        self._log("info", f"Starting backtest for {self.config.symbol}")
        self._log("info", f"Date range: {keys[0]} to {keys[-1]}")
        self._log("info", f"Initial cash: ${self.config.initial_cash:,.2f}")

        skipped: List[str] = []
        last_price: Optional[float] = None
        total = len(keys)

        for i, key in enumerate(keys):
            chain = chains.get(key)
            price = prices.get(key)
            if chain is None or price is None or not price > 0:
                skipped.append(key)
                logger.debug(f"Skipping {key}: missing option chain or underlying price")
                continue

            price = float(price)
            self._current_timestamp = chain.timestamp
            last_price = price
            self._process_date(chain, price)

            equity = self.portfolio.total_equity(chain.mid_prices())
            self._equity_curve.append(EquityPoint(chain.timestamp, equity))

            if self._on_progress is not None:
                self._on_progress(round((i + 1) / total * 100), f"Processing {key}")

        if skipped:
            self._log("info", f"Skipped {len(skipped)} date(s) with missing data", {"dates": list(skipped)})

        self._close_remaining_positions(last_price)
        return self._generate_result(skipped)

    def _process_date(self, chain: OptionChain, underlying_price: float) -> None:
        context = StrategyContext(
            timestamp=chain.timestamp,
            option_chain=chain,
            portfolio=self.portfolio.get_state(),
            underlying_price=underlying_price,
        )
        signals = list(self.config.strategy.on_timestamp(context) or [])

        for signal in signals:
            if isinstance(signal, CloseSignal):
                self._apply_close(signal, chain, underlying_price)
        for signal in signals:
            if isinstance(signal, OpenSignal):
                self._apply_open(signal)

    def _apply_close(self, signal: CloseSignal, chain: OptionChain, underlying_price: float) -> None:
        position = signal.position
        current = chain.find_by_symbol(position.symbol)

        if current is not None:
            trade = self.portfolio.close_position(position.id, current, signal.reason)
            verb = "Closed"
        else:
            value = intrinsic_value(position.option.option_type, underlying_price, position.option.strike)
            trade = self.portfolio.close_position_at_expiration(position.id, value, chain.timestamp, signal.reason)
            verb = "Expired"

        if trade is None:
            self._log("info", f"Close ignored: position {position.id} is not open", {"position_id": position.id})
            return
        self._log("exit", _describe_trade(verb, trade), {"trade": trade.to_dict()})

    def _apply_open(self, signal: OpenSignal) -> None:
        position = self.portfolio.open_position(signal.option, signal.direction, signal.quantity)
        if position is None:
            self._log(
                "info",
                f"Insufficient cash to open {signal.direction} {signal.option.symbol} x{signal.quantity}",
                {"symbol": signal.option.symbol, "cash": self.portfolio.cash},
            )
            return
        self._log(
            "entry",
            f"Opened {position.direction} {position.option.option_type} {position.option.strike} "
            f"@ ${position.entry_price:.2f} | {position.option.dte} DTE | Reason: {signal.reason}",
            {"position_id": position.id, "symbol": position.symbol, "reason": signal.reason},
        )

    def _close_remaining_positions(self, last_price: Optional[float]) -> None:
        open_positions: List[Position] = self.portfolio.open_positions
        if not open_positions:
            return

        self._log("info", f"Closing {len(open_positions)} remaining positions at end of backtest")
        for position in open_positions:
            underlying = last_price if last_price is not None else position.option.underlying_price
            value = intrinsic_value(position.option.option_type, underlying, position.option.strike)
            timestamp = self._current_timestamp or position.entry_timestamp
            trade = self.portfolio.close_position_at_expiration(position.id, value, timestamp, "end_of_backtest")
            if trade is not None:
                self._log("exit", _describe_trade("Force closed", trade), {"trade": trade.to_dict()})

    def _generate_result(self, skipped: List[str]) -> BacktestResult:
        trades = self.portfolio.closed_trades
        initial_cash = float(self.config.initial_cash)
        final_cash = self.portfolio.cash
        total_pnl = final_cash - initial_cash
        total_pnl_percent = total_pnl / initial_cash * 100.0 if initial_cash > 0 else 0.0

        winning = sum(1 for t in trades if t.pnl > 0)
        losing = len(trades) - winning
        win_rate = winning / len(trades) * 100.0 if trades else 0.0
        max_dd = max_drawdown_percent([p.equity for p in self._equity_curve])

        self._log("info", "Backtest completed")
        self._log("info", f"Final cash: ${final_cash:,.2f}")
        self._log("info", f"Total P&L: ${total_pnl:.2f} ({total_pnl_percent:.2f}%)")
        self._log("info", f"Total trades: {len(trades)} | Win rate: {win_rate:.1f}%")
        self._log("info", f"Max drawdown: {max_dd:.2f}%")
        logger.info(
            f"{self.config.symbol}: {len(trades)} trades, P&L ${total_pnl:.2f} ({total_pnl_percent:.2f}%), "
            f"win rate {win_rate:.1f}%, max drawdown {max_dd:.2f}%"
        )

        return BacktestResult(
            symbol=self.config.symbol,
            start_date=self._start_key,
            end_date=self._end_key,
            initial_cash=initial_cash,
            final_cash=final_cash,
            total_pnl=total_pnl,
            total_pnl_percent=total_pnl_percent,
            total_trades=len(trades),
            winning_trades=winning,
            losing_trades=losing,
            win_rate=win_rate,
            max_drawdown=max_dd,
            trades=trades,
            equity_curve=list(self._equity_curve),
            skipped_dates=list(skipped),
        )


def _describe_trade(verb: str, trade: Trade) -> str:
    return (
        f"{verb} {trade.direction} {trade.option_type} {trade.strike} @ ${trade.exit_price:.2f} | "
        f"PnL: ${trade.pnl:.2f} ({trade.pnl_percent:.1f}%) | Reason: {trade.exit_reason}"
    )
