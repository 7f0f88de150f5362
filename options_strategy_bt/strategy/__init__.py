"""
Strategy module with deterministic discovery via explicit imports.

Strategies are registered via @register_strategy decorator when modules are imported.
This __init__.py imports all known strategy modules to ensure registration happens.
"""

# Export registry functions
from .registry import (
    register_strategy,
    list_strategies,
    get_strategy,
    discover_strategies,
)

# Export protocol, signals and selection helpers
from .base import Strategy, StrategyContext, OpenSignal, CloseSignal, Signal, position_pnl_percent
from .filters import (
    select_otm_puts,
    select_otm_calls,
    select_by_strike_distance,
    select_by_delta,
    sort_by_premium_desc,
    sort_by_premium_asc,
    sort_by_strike_distance_asc,
)

# Import strategy modules to trigger registration
# Add new strategy modules here as they are implemented
from .short_put import ShortPutStrategy

__all__ = [
    "Strategy",
    "StrategyContext",
    "OpenSignal",
    "CloseSignal",
    "Signal",
    "position_pnl_percent",
    "select_otm_puts",
    "select_otm_calls",
    "select_by_strike_distance",
    "select_by_delta",
    "sort_by_premium_desc",
    "sort_by_premium_asc",
    "sort_by_strike_distance_asc",
    "ShortPutStrategy",
    "register_strategy",
    "list_strategies",
    "get_strategy",
    "discover_strategies",
]
