"""
Short Put Strategy (premium seller).

On every timestamp:
- Exits first: each open short put is closed on take-profit, stop-loss, or
  when its DTE drops to the exit threshold; a put missing from the chain at or
  past expiry is closed as expired ITM/OTM.
- Then, if fewer than `max_open_positions` short puts are open, sells the
  richest OTM put inside the DTE and strike-distance bounds (optionally within
  ±0.05 of a target |delta|).

The strategy keeps no state between timestamps; everything it needs comes
from the context.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from .base import CloseSignal, OpenSignal, Signal, StrategyContext, position_pnl_percent
from .filters import select_by_delta, select_by_strike_distance, select_otm_puts, sort_by_premium_desc
from .registry import register_strategy

DELTA_WINDOW = 0.05


@register_strategy("short_put")
class ShortPutStrategy:
    """
    Params:
      - min_dte / max_dte: int, entry DTE window (default 30 / 60)
      - min_premium: float, minimum mid price to sell (default 0.50)
      - min_strike_distance_percent / max_strike_distance_percent: float (default 5 / 15)
      - target_delta: float, optional |delta| target
      - max_open_positions: int (default 1)
      - take_profit_percent: float, % of entry premium captured (default 50)
      - stop_loss_percent: float, % of entry premium lost (default 200)
      - exit_dte: int, close at or below this DTE (default 7)
      - quantity: int, contracts per entry (default 1)
    """

    name = "Short Put"

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        params = dict(params or {})
        self.min_dte = int(params.get("min_dte", 30))
        self.max_dte = int(params.get("max_dte", 60))
        self.min_premium = float(params.get("min_premium", 0.50))
        self.min_strike_distance_percent = float(params.get("min_strike_distance_percent", 5.0))
        self.max_strike_distance_percent = float(params.get("max_strike_distance_percent", 15.0))
        target_delta = params.get("target_delta")
        self.target_delta = float(target_delta) if target_delta is not None else None
        self.max_open_positions = int(params.get("max_open_positions", 1))
        self.take_profit_percent = float(params.get("take_profit_percent", 50.0))
        self.stop_loss_percent = float(params.get("stop_loss_percent", 200.0))
        self.exit_dte = int(params.get("exit_dte", 7))
        self.quantity = int(params.get("quantity", 1))

        if self.min_dte > self.max_dte:
            raise ValueError(f"min_dte ({self.min_dte}) must be <= max_dte ({self.max_dte})")
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")

    def on_timestamp(self, context: StrategyContext) -> List[Signal]:
        signals: List[Signal] = []
        signals.extend(self._check_exits(context))
        signals.extend(self._check_entries(context))
        return signals

    def _check_exits(self, context: StrategyContext) -> List[Signal]:
        signals: List[Signal] = []
        chain = context.option_chain

        for position in context.portfolio.open_positions:
            if position.option.option_type != "put" or position.direction != "short":
                continue

            current = chain.find_by_symbol(position.symbol)
            if current is None:
                days_left = (position.option.expiration - context.timestamp.date()).days
                if days_left <= 0:
                    intrinsic = max(0.0, position.option.strike - context.underlying_price)
                    signals.append(CloseSignal(position=position, reason=f"expired_{'itm' if intrinsic > 0 else 'otm'}"))
                continue

            pnl_pct = position_pnl_percent(position.entry_price, current.mid_price, position.direction)

            if pnl_pct >= self.take_profit_percent:
                signals.append(CloseSignal(position=position, reason=f"take_profit_{pnl_pct:.1f}%"))
                continue

            if pnl_pct <= -self.stop_loss_percent:
                signals.append(CloseSignal(position=position, reason=f"stop_loss_{pnl_pct:.1f}%"))
                continue

            dte = current.dte
            if dte <= self.exit_dte:
                signals.append(CloseSignal(position=position, reason=f"exit_dte_{dte}"))

        return signals

    def _check_entries(self, context: StrategyContext) -> List[Signal]:
        open_short_puts = sum(
            1
            for p in context.portfolio.open_positions
            if p.option.option_type == "put" and p.direction == "short"
        )
        if open_short_puts >= self.max_open_positions:
            return []

        candidates = select_otm_puts(context.option_chain, self.min_dte, self.max_dte, self.min_premium)
        candidates = select_by_strike_distance(
            candidates, self.min_strike_distance_percent, self.max_strike_distance_percent
        )
        if self.target_delta is not None:
            candidates = select_by_delta(
                candidates, self.target_delta - DELTA_WINDOW, self.target_delta + DELTA_WINDOW
            )
        candidates = sort_by_premium_desc(candidates)

        if not candidates:
            return []

        selected = candidates[0]
        return [
            OpenSignal(
                option=selected,
                direction="short",
                quantity=self.quantity,
                reason=f"sell_put_{_format_strike(selected.strike)}_{selected.dte}dte_${selected.mid_price:.2f}",
            )
        ]


def _format_strike(strike: float) -> str:
    # 95.0 -> "95", 97.5 -> "97.5"
    if math.isfinite(strike) and float(strike).is_integer():
        return str(int(strike))
    return f"{strike:g}"
