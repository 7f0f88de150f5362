"""
Pricing layer: Black-Scholes valuation, Greeks, and strategy payoff metrics.
"""

from .legs import OptionLeg, CONTRACT_MULTIPLIER
from .black_scholes import (
    DEFAULT_VOLATILITY,
    DEFAULT_RISK_FREE_RATE,
    Greeks,
    norm_cdf,
    norm_pdf,
    black_scholes_call,
    black_scholes_put,
    price,
    intrinsic_value,
    greeks,
    strategy_greeks,
    implied_volatility,
    leg_value,
)
from .metrics import (
    MIN_GRID_POINTS,
    Bounded,
    Unbounded,
    UNBOUNDED,
    StrategyMetrics,
    strategy_metrics,
    payoff_at_expiry,
    profit_loss_at_date,
    price_grid,
    find_breakevens,
    net_premium,
)

__all__ = [
    "OptionLeg",
    "CONTRACT_MULTIPLIER",
    "DEFAULT_VOLATILITY",
    "DEFAULT_RISK_FREE_RATE",
    "Greeks",
    "norm_cdf",
    "norm_pdf",
    "black_scholes_call",
    "black_scholes_put",
    "price",
    "intrinsic_value",
    "greeks",
    "strategy_greeks",
    "implied_volatility",
    "leg_value",
    "MIN_GRID_POINTS",
    "Bounded",
    "Unbounded",
    "UNBOUNDED",
    "StrategyMetrics",
    "strategy_metrics",
    "payoff_at_expiry",
    "profit_loss_at_date",
    "price_grid",
    "find_breakevens",
    "net_premium",
]
