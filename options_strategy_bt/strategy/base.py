"""
Strategy protocol and the signal/context types exchanged with the Backtester.

A strategy is anything with a `name` and an `on_timestamp(context)` method that
returns a list of signals. Strategies never mutate the context; every state
change happens through the signals they emit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Protocol, Union, runtime_checkable

from ..data.models import OptionChain, OptionSnapshot
from ..portfolio.portfolio import Position, PortfolioState


@dataclass(frozen=True)
class StrategyContext:
    """Read-only view of one timestamp."""
    timestamp: datetime
    option_chain: OptionChain
    portfolio: PortfolioState
    underlying_price: float


@dataclass(frozen=True)
class OpenSignal:
    option: OptionSnapshot
    direction: Literal["long", "short"]
    quantity: int = 1
    reason: str = ""
    action: Literal["open"] = "open"


@dataclass(frozen=True)
class CloseSignal:
    position: Position
    reason: str = ""
    action: Literal["close"] = "close"


Signal = Union[OpenSignal, CloseSignal]


@runtime_checkable
class Strategy(Protocol):
    name: str

    def on_timestamp(self, context: StrategyContext) -> List[Signal]:
        ...


def position_pnl_percent(entry_price: float, current_price: float, direction: str) -> float:
    """P&L as a percent of the entry premium (positive = in profit)."""
    if entry_price == 0:
        return 0.0
    if direction == "long":
        return (current_price - entry_price) / entry_price * 100.0
    return (entry_price - current_price) / entry_price * 100.0
