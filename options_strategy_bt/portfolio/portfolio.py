"""
Cash/position ledger for options backtesting:
- cash (the only quantity mutated by trades)
- open positions keyed by a monotonically increasing integer id
- append-only log of closed trades
- equity derived on demand from current marks
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Dict, List, Literal, Mapping, Optional

from ..data.models import OptionSnapshot
from ..pricing.legs import CONTRACT_MULTIPLIER

logger = logging.getLogger(__name__)

Direction = Literal["long", "short"]


class PositionStateError(RuntimeError):
    """Raised when a position is closed more than once."""


@dataclass(frozen=True)
class Trade:
    """Immutable record of one closed position."""
    position_id: int
    symbol: str
    option_type: str
    strike: float
    expiration: date
    direction: Direction
    quantity: int
    entry_price: float
    entry_timestamp: datetime
    exit_price: float
    exit_timestamp: datetime
    pnl: float
    pnl_percent: float
    exit_reason: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "position_id": self.position_id,
            "symbol": self.symbol,
            "option_type": self.option_type,
            "strike": self.strike,
            "expiration": self.expiration.isoformat(),
            "direction": self.direction,
            "quantity": self.quantity,
            "entry_price": self.entry_price,
            "entry_timestamp": self.entry_timestamp.isoformat(),
            "exit_price": self.exit_price,
            "exit_timestamp": self.exit_timestamp.isoformat(),
            "pnl": self.pnl,
            "pnl_percent": self.pnl_percent,
            "exit_reason": self.exit_reason,
        }


def realized_pnl(direction: Direction, entry_price: float, exit_price: float, quantity: int) -> float:
    if direction == "long":
        return (exit_price - entry_price) * CONTRACT_MULTIPLIER * quantity
    return (entry_price - exit_price) * CONTRACT_MULTIPLIER * quantity


@dataclass
class Position:
    """
    One lot, open or closed.

    Transitions open -> closed exactly once through close(); nothing else
    changes after construction.
    """
    id: int
    option: OptionSnapshot
    entry_price: float
    entry_timestamp: datetime
    quantity: int
    direction: Direction
    is_open: bool = True
    exit_price: Optional[float] = None
    exit_timestamp: Optional[datetime] = None
    pnl: Optional[float] = None

    @property
    def symbol(self) -> str:
        return self.option.symbol

    @property
    def entry_notional(self) -> float:
        return self.entry_price * CONTRACT_MULTIPLIER * self.quantity

    def unrealized_pnl(self, current_price: float) -> float:
        return realized_pnl(self.direction, self.entry_price, float(current_price), self.quantity)

    def close(self, exit_price: float, exit_timestamp: datetime, exit_reason: str) -> Trade:
        if not self.is_open:
            raise PositionStateError(f"Position {self.id} ({self.symbol}) is already closed")

        exit_price = float(exit_price)
        pnl = realized_pnl(self.direction, self.entry_price, exit_price, self.quantity)
        notional = self.entry_notional
        pnl_percent = pnl / notional * 100.0 if notional > 0 else 0.0

        self.is_open = False
        self.exit_price = exit_price
        self.exit_timestamp = exit_timestamp
        self.pnl = pnl

        return Trade(
            position_id=self.id,
            symbol=self.option.symbol,
            option_type=self.option.option_type,
            strike=self.option.strike,
            expiration=self.option.expiration,
            direction=self.direction,
            quantity=self.quantity,
            entry_price=self.entry_price,
            entry_timestamp=self.entry_timestamp,
            exit_price=exit_price,
            exit_timestamp=exit_timestamp,
            pnl=pnl,
            pnl_percent=pnl_percent,
            exit_reason=exit_reason,
        )


@dataclass(frozen=True)
class PortfolioState:
    """
    Read-only view handed to strategies.

    open_positions are copies taken when the view is built; closing the real
    position later does not change them. Close signals refer to positions by id.
    """
    cash: float
    open_positions: tuple
    closed_trades: tuple
    initial_cash: float

    @property
    def open_position_count(self) -> int:
        return len(self.open_positions)


class Portfolio:
    """
    Ledger owned by exactly one backtest run.

    Recoverable outcomes (unaffordable long, unknown position id) are returned
    as None rather than raised.
    """

    def __init__(self, initial_cash: float = 100_000.0):
        if initial_cash < 0:
            raise ValueError(f"initial_cash must be >= 0, got {initial_cash}")
        self._initial_cash = float(initial_cash)
        self._cash = float(initial_cash)
        self._open: Dict[int, Position] = {}
        self._closed_trades: List[Trade] = []
        self._next_id = 1

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def initial_cash(self) -> float:
        return self._initial_cash

    @property
    def open_positions(self) -> List[Position]:
        return list(self._open.values())

    @property
    def closed_trades(self) -> List[Trade]:
        return list(self._closed_trades)

    @property
    def open_position_count(self) -> int:
        return len(self._open)

    def get_state(self) -> PortfolioState:
        return PortfolioState(
            cash=self._cash,
            open_positions=tuple(replace(p) for p in self._open.values()),
            closed_trades=tuple(self._closed_trades),
            initial_cash=self._initial_cash,
        )

    def get_position(self, position_id: int) -> Optional[Position]:
        return self._open.get(position_id)

    def open_position(self, option: OptionSnapshot, direction: Direction, quantity: int = 1) -> Optional[Position]:
        """
        Open a lot at the option's mid price.

        Long opens debit cash and are refused (None) when cash is insufficient;
        short opens credit cash and are never cash-blocked.
        """
        if direction not in ("long", "short"):
            raise ValueError(f"Invalid direction: {direction!r}. Expected 'long' or 'short'")
        quantity = int(quantity)
        if quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {quantity}")

        entry_price = option.mid_price
        total = entry_price * CONTRACT_MULTIPLIER * quantity

        if direction == "long" and self._cash < total:
            logger.info(f"Insufficient cash to open long {option.symbol}. Need: ${total:.2f}, Have: ${self._cash:.2f}")
            return None

        position = Position(
            id=self._next_id,
            option=option,
            entry_price=entry_price,
            entry_timestamp=option.timestamp,
            quantity=quantity,
            direction=direction,
        )
        self._next_id += 1

        if direction == "long":
            self._cash -= total
        else:
            self._cash += total

        self._open[position.id] = position
        logger.debug(f"Opened {direction} {quantity}x {option.symbol} @ {entry_price:.2f} (id={position.id})")
        return position

    def _settle(self, position_id: int, exit_price: float, timestamp: datetime, exit_reason: str) -> Optional[Trade]:
        position = self._open.get(position_id)
        if position is None:
            logger.info(f"Position {position_id} not found or already closed")
            return None

        trade = position.close(exit_price, timestamp, exit_reason)
        flow = trade.exit_price * CONTRACT_MULTIPLIER * position.quantity
        if position.direction == "long":
            self._cash += flow
        else:
            self._cash -= flow

        del self._open[position_id]
        self._closed_trades.append(trade)
        return trade

    def close_position(self, position_id: int, current_option: OptionSnapshot, exit_reason: str) -> Optional[Trade]:
        """Close at the live mid price of `current_option`."""
        return self._settle(position_id, current_option.mid_price, current_option.timestamp, exit_reason)

    def close_position_at_expiration(
        self,
        position_id: int,
        expiration_value: float,
        timestamp: datetime,
        exit_reason: str = "expiration",
    ) -> Optional[Trade]:
        """Close at a supplied value (intrinsic) when no quote exists any more."""
        return self._settle(position_id, expiration_value, timestamp, exit_reason)

    def position_pnl(self, position_id: int, current_price: float) -> float:
        position = self._open.get(position_id)
        if position is None:
            return 0.0
        return position.unrealized_pnl(current_price)

    def position_pnl_percent(self, position_id: int, current_price: float) -> float:
        position = self._open.get(position_id)
        if position is None or position.entry_price == 0:
            return 0.0
        return position.unrealized_pnl(current_price) / position.entry_notional * 100.0

    def total_equity(self, current_prices: Mapping[str, float]) -> float:
        """
        Cash + value of longs - liability of shorts, marked at `current_prices`.

        Positions without a mark fall back to their entry price. Read-only.
        """
        equity = self._cash
        for position in self._open.values():
            mark = current_prices.get(position.symbol)
            if mark is None:
                mark = position.entry_price
            value = float(mark) * CONTRACT_MULTIPLIER * position.quantity
            if position.direction == "long":
                equity += value
            else:
                equity -= value
        return equity

    def reset(self) -> None:
        self._cash = self._initial_cash
        self._open.clear()
        self._closed_trades.clear()
        self._next_id = 1
