"""
Portfolio layer: cash ledger, positions, closed trades, equity.
"""

from .portfolio import (
    CONTRACT_MULTIPLIER,
    Portfolio,
    PortfolioState,
    Position,
    PositionStateError,
    Trade,
)

__all__ = ["CONTRACT_MULTIPLIER", "Portfolio", "PortfolioState", "Position", "PositionStateError", "Trade"]
