"""
Option legs: the user/strategy-defined building blocks of a multi-leg position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

OptionType = Literal["call", "put"]
Side = Literal["long", "short"]

# Standard equity option contract size (shares per contract)
CONTRACT_MULTIPLIER = 100


@dataclass(frozen=True)
class OptionLeg:
    """
    One option contract line within a strategy.

    Premium is always stored as a non-negative per-share price. Whether it is
    paid or received is carried by `side`.
    """

    option_type: OptionType
    side: Side
    strike: float
    quantity: int = 1
    premium: float = 0.0
    days_to_expiration: float = 0.0
    implied_volatility: Optional[float] = None

    def __post_init__(self) -> None:
        if self.option_type not in ("call", "put"):
            raise ValueError(f"Invalid option_type: {self.option_type!r}. Expected 'call' or 'put'")
        if self.side not in ("long", "short"):
            raise ValueError(f"Invalid side: {self.side!r}. Expected 'long' or 'short'")
        if not self.strike > 0:
            raise ValueError(f"Strike must be positive, got {self.strike}")
        if int(self.quantity) != self.quantity or self.quantity < 1:
            raise ValueError(f"Quantity must be a positive integer, got {self.quantity}")
        if self.days_to_expiration < 0:
            raise ValueError(f"days_to_expiration must be >= 0, got {self.days_to_expiration}")
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "premium", abs(float(self.premium)))
        object.__setattr__(self, "quantity", int(self.quantity))

    @property
    def direction_sign(self) -> int:
        return 1 if self.side == "long" else -1

    @property
    def cash_flow(self) -> float:
        """Entry cash flow in dollars: negative for a debit (long), positive for a credit (short)."""
        return -self.direction_sign * self.premium * self.quantity * CONTRACT_MULTIPLIER

    @property
    def has_iv(self) -> bool:
        return self.implied_volatility is not None and self.implied_volatility > 0
