"""
Strategy metrics solver: max profit / max loss / breakevens for a set of legs.

The payoff at expiry is sampled on a dense price grid that always brackets every
strike (payoff kinks sit at strikes). Extremes that are still growing at a grid
edge are reported as Unbounded instead of the sampled value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np

from .black_scholes import DEFAULT_RISK_FREE_RATE, DEFAULT_VOLATILITY, leg_value
from .legs import CONTRACT_MULTIPLIER, OptionLeg

MIN_GRID_POINTS = 200


@dataclass(frozen=True)
class Bounded:
    value: float


@dataclass(frozen=True)
class Unbounded:
    def __repr__(self) -> str:
        return "Unbounded"


UNBOUNDED = Unbounded()

Extremum = Union[Bounded, Unbounded]


@dataclass(frozen=True)
class StrategyMetrics:
    max_profit: Extremum
    max_loss: Extremum
    breakeven: List[float] = field(default_factory=list)
    net_premium: float = 0.0
    risk_reward_ratio: Optional[float] = None

    def to_dict(self):
        def _ext(x: Extremum):
            return None if isinstance(x, Unbounded) else x.value

        return {
            "max_profit": _ext(self.max_profit),
            "max_profit_unbounded": isinstance(self.max_profit, Unbounded),
            "max_loss": _ext(self.max_loss),
            "max_loss_unbounded": isinstance(self.max_loss, Unbounded),
            "breakeven": list(self.breakeven),
            "net_premium": self.net_premium,
            "risk_reward_ratio": self.risk_reward_ratio,
        }


def _intrinsic_array(leg: OptionLeg, prices: np.ndarray) -> np.ndarray:
    """black_scholes.intrinsic_value over an array of underlying prices."""
    if leg.option_type == "call":
        return np.maximum(prices - leg.strike, 0.0)
    return np.maximum(leg.strike - prices, 0.0)


def payoff_at_expiry(legs: Sequence[OptionLeg], at_price):
    """
    Total dollar P&L at expiry for the given underlying price(s).

    Accepts a scalar or an array of prices; returns the same shape.
    """
    prices = np.asarray(at_price, dtype=float)
    total = np.zeros_like(prices)
    for leg in legs:
        per_share = leg.direction_sign * (_intrinsic_array(leg, prices) - leg.premium)
        total = total + per_share * leg.quantity * CONTRACT_MULTIPLIER
    if total.ndim == 0:
        return float(total)
    return total


def profit_loss_at_date(
    legs: Sequence[OptionLeg],
    at_price: float,
    days_from_now: float = 0.0,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """Theoretical dollar P&L `days_from_now` days ahead, marking each leg with Black-Scholes."""
    pnl = 0.0
    for leg in legs:
        value = leg_value(leg, at_price, days_from_now, volatility, risk_free_rate)
        pnl += leg.direction_sign * (value - leg.premium) * leg.quantity * CONTRACT_MULTIPLIER
    return pnl


def net_premium(legs: Sequence[OptionLeg]) -> float:
    """Positive = net credit received, negative = net debit paid."""
    return float(sum(leg.cash_flow for leg in legs))


def price_grid(legs: Sequence[OptionLeg], underlying_price: float, points: int = MIN_GRID_POINTS) -> np.ndarray:
    if points < MIN_GRID_POINTS:
        raise ValueError(f"price grid needs at least {MIN_GRID_POINTS} points, got {points}")
    spot = float(underlying_price)
    strikes = [float(leg.strike) for leg in legs]
    lo = spot * 0.5
    hi = spot * 1.5
    if strikes:
        lo = min(lo, min(strikes) * 0.8)
        hi = max(hi, max(strikes) * 1.2)
    return np.linspace(lo, hi, points)


def find_breakevens(prices: Sequence[float], pnl: Sequence[float]) -> List[float]:
    """Zero crossings of the P&L series, linearly interpolated between grid points."""
    out: List[float] = []
    for i in range(1, len(pnl)):
        prev, cur = float(pnl[i - 1]), float(pnl[i])
        if (prev < 0 and cur >= 0) or (prev > 0 and cur <= 0):
            p0, p1 = float(prices[i - 1]), float(prices[i])
            out.append(p0 + (p1 - p0) * (0.0 - prev) / (cur - prev))
    return out


def _still_moving(edge: float, neighbour: float, direction: int) -> bool:
    # direction +1: edge exceeds neighbour, -1: edge below neighbour (beyond float noise)
    if np.isclose(edge, neighbour, rtol=1e-9, atol=1e-7):
        return False
    return (edge - neighbour) * direction > 0


def _extremum(pnl: np.ndarray, direction: int) -> Extremum:
    value = float(pnl.max() if direction > 0 else pnl.min())
    if len(pnl) >= 2:
        left_edge = np.isclose(pnl[0], value, rtol=1e-9, atol=1e-7) and _still_moving(pnl[0], pnl[1], direction)
        right_edge = np.isclose(pnl[-1], value, rtol=1e-9, atol=1e-7) and _still_moving(pnl[-1], pnl[-2], direction)
        if left_edge or right_edge:
            return UNBOUNDED
    return Bounded(value)


def strategy_metrics(
    legs: Sequence[OptionLeg],
    underlying_price: float,
    points: int = MIN_GRID_POINTS,
) -> StrategyMetrics:
    """
    Max profit, max loss, breakevens and net premium at expiry.

    Args:
        legs: Option legs (any mix of calls/puts, long/short)
        underlying_price: Current spot, centres the grid
        points: Grid resolution (>= 200)

    Returns:
        StrategyMetrics with tagged Bounded/Unbounded extremes
    """
    legs = list(legs)
    if not legs:
        return StrategyMetrics(max_profit=Bounded(0.0), max_loss=Bounded(0.0), breakeven=[], net_premium=0.0)

    prices = price_grid(legs, underlying_price, points)
    pnl = payoff_at_expiry(legs, prices)

    max_profit = _extremum(pnl, +1)
    max_loss = _extremum(pnl, -1)

    rr: Optional[float] = None
    if isinstance(max_profit, Bounded) and isinstance(max_loss, Bounded):
        if max_profit.value > 0 and max_loss.value < 0:
            rr = max_profit.value / abs(max_loss.value)

    return StrategyMetrics(
        max_profit=max_profit,
        max_loss=max_loss,
        breakeven=find_breakevens(prices, pnl),
        net_premium=net_premium(legs),
        risk_reward_ratio=rr,
    )
