"""
Market data models: per-contract snapshots and the per-date option chain.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterator, List, Literal, Optional, Union

OptionType = Literal["call", "put"]

_ONE_DAY = timedelta(days=1)


def date_key(value: Union[str, date, datetime]) -> str:
    """
    Normalize a date-ish value to the canonical "YYYY-MM-DD" map key.

    Raises:
        ValueError: If a string cannot be read as an ISO date/datetime
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10]).isoformat()
        except ValueError as e:
            raise ValueError(f"Invalid date key: {value!r}. Expected ISO date (YYYY-MM-DD)") from e
    raise ValueError(f"Invalid date key type: {type(value).__name__}")


@dataclass(frozen=True)
class OptionSnapshot:
    """
    Market facts for one contract at one timestamp.

    Immutable; every derived quantity (mid, DTE, moneyness) is computed on demand.
    """
    timestamp: datetime
    symbol: str
    option_type: OptionType
    strike: float
    expiration: date
    bid: float
    ask: float
    underlying_price: float
    implied_volatility: Optional[float] = None
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    rho: Optional[float] = None

    @property
    def mid_price(self) -> float:
        return (self.bid + self.ask) / 2.0

    @property
    def spread(self) -> float:
        return self.ask - self.bid

    @property
    def spread_percent(self) -> float:
        mid = self.mid_price
        if mid == 0:
            return 0.0
        return self.spread / mid * 100.0

    def is_otm(self) -> bool:
        if self.option_type == "put":
            return self.strike < self.underlying_price
        return self.strike > self.underlying_price

    def is_itm(self) -> bool:
        return not self.is_otm()

    def is_atm(self, tolerance: float = 0.02) -> bool:
        if self.underlying_price <= 0:
            return False
        return abs(self.strike - self.underlying_price) / self.underlying_price <= tolerance

    @property
    def moneyness(self) -> float:
        """S/K for calls, K/S for puts (>1 means in the money)."""
        if self.option_type == "call":
            return self.underlying_price / self.strike if self.strike else math.inf
        return self.strike / self.underlying_price if self.underlying_price else math.inf

    @property
    def dte(self) -> int:
        """Calendar days to expiry, rounded up, never negative."""
        tz = self.timestamp.tzinfo
        expiry_dt = datetime.combine(self.expiration, time(0, 0), tzinfo=tz)
        days = (expiry_dt - self.timestamp) / _ONE_DAY
        return max(0, math.ceil(days))

    @property
    def strike_distance(self) -> float:
        return abs(self.strike - self.underlying_price)

    @property
    def strike_distance_percent(self) -> float:
        if self.underlying_price <= 0:
            return math.inf
        return self.strike_distance / self.underlying_price * 100.0

    def has_valid_quote(self) -> bool:
        return self.bid > 0 and self.ask > 0 and self.ask >= self.bid

    def has_greeks(self) -> bool:
        return all(g is not None for g in (self.delta, self.gamma, self.theta, self.vega))

    def has_iv(self) -> bool:
        return self.implied_volatility is not None and self.implied_volatility > 0


class OptionChain:
    """
    All option snapshots observed at one timestamp, indexed by symbol.

    Write-once: snapshots are appended while the chain is built, then freeze()
    makes it read-only. All queries return new lists and never mutate the chain.
    """

    def __init__(self, timestamp: datetime, underlying_price: float):
        self.timestamp = timestamp
        self.underlying_price = float(underlying_price)
        self._snapshots: List[OptionSnapshot] = []
        self._by_symbol: Dict[str, OptionSnapshot] = {}
        self._frozen = False

    @classmethod
    def from_snapshots(cls, timestamp: datetime, underlying_price: float, snapshots) -> "OptionChain":
        chain = cls(timestamp, underlying_price)
        for s in snapshots:
            chain.add_snapshot(s)
        return chain.freeze()

    def add_snapshot(self, snapshot: OptionSnapshot) -> bool:
        """
        Add a snapshot; returns False (and keeps the chain unchanged) when the
        symbol is already present, so the first quote seen for a contract is the
        one every query and mark uses.
        """
        if self._frozen:
            raise RuntimeError(f"OptionChain for {self.timestamp} is frozen")
        if snapshot.symbol in self._by_symbol:
            return False
        self._snapshots.append(snapshot)
        self._by_symbol[snapshot.symbol] = snapshot
        return True

    def freeze(self) -> "OptionChain":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[OptionSnapshot]:
        return iter(list(self._snapshots))

    def get_all(self) -> List[OptionSnapshot]:
        return list(self._snapshots)

    def calls(self) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if s.option_type == "call"]

    def puts(self) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if s.option_type == "put"]

    def by_expiration(self, expiration: Union[date, datetime]) -> List[OptionSnapshot]:
        if isinstance(expiration, datetime):
            expiration = expiration.date()
        return [s for s in self._snapshots if s.expiration == expiration]

    def by_dte(self, min_dte: float, max_dte: float) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if min_dte <= s.dte <= max_dte]

    def by_strike_range(self, min_strike: float, max_strike: float) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if min_strike <= s.strike <= max_strike]

    def by_min_premium(self, min_premium: float) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if s.mid_price >= min_premium]

    def otm(self) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if s.is_otm()]

    def itm(self) -> List[OptionSnapshot]:
        return [s for s in self._snapshots if s.is_itm()]

    def find_by_symbol(self, symbol: str) -> Optional[OptionSnapshot]:
        return self._by_symbol.get(symbol)

    def find_closest_strike(self, strike: float, option_type: OptionType) -> Optional[OptionSnapshot]:
        best: Optional[OptionSnapshot] = None
        for s in self._snapshots:
            if s.option_type != option_type:
                continue
            # strict < keeps the first-encountered snapshot on ties
            if best is None or abs(s.strike - strike) < abs(best.strike - strike):
                best = s
        return best

    def find_by_delta(self, target_delta: float, option_type: OptionType) -> Optional[OptionSnapshot]:
        best: Optional[OptionSnapshot] = None
        for s in self._snapshots:
            if s.option_type != option_type or s.delta is None:
                continue
            if best is None or abs(s.delta - target_delta) < abs(best.delta - target_delta):
                best = s
        return best

    def expirations(self) -> List[date]:
        return sorted({s.expiration for s in self._snapshots})

    def strikes(self) -> List[float]:
        return sorted({s.strike for s in self._snapshots})

    def mid_prices(self) -> Dict[str, float]:
        """Symbol -> mid price, the mark used for equity sampling."""
        return {symbol: s.mid_price for symbol, s in self._by_symbol.items()}
