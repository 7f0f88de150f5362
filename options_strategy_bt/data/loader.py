"""
Historical option data loading: CSV rows -> per-date OptionChain map.

Expected columns (case-insensitive, synonyms accepted):
timestamp|date, optionsymbol|symbol|option_symbol, optiontype|type|option_type,
strike, expiration|exp|expiry, bid, ask,
underlyingprice|underlying|underlying_price|stock_price,
optional iv|implied_volatility, delta, gamma, theta, vega, rho.

Type, strike and expiration may be omitted when the symbol is OCC-encoded;
they are then derived from the symbol.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from .cache import QuoteCache
from .models import OptionChain, OptionSnapshot, date_key
from .symbols import OptionSymbolError, parse_option_symbol

logger = logging.getLogger(__name__)

_COLUMN_SYNONYMS: Dict[str, tuple] = {
    "timestamp": ("timestamp", "date", "datetime", "time"),
    "symbol": ("optionsymbol", "symbol", "option_symbol"),
    "option_type": ("optiontype", "type", "option_type", "cp"),
    "strike": ("strike", "strike_price"),
    "expiration": ("expiration", "exp", "expiry", "expiration_date"),
    "bid": ("bid",),
    "ask": ("ask",),
    "underlying_price": ("underlyingprice", "underlying", "underlying_price", "stock_price"),
    "implied_volatility": ("iv", "implied_volatility", "impliedvolatility"),
    "delta": ("delta",),
    "gamma": ("gamma",),
    "theta": ("theta",),
    "vega": ("vega",),
    "rho": ("rho",),
}

_REQUIRED = ("timestamp", "symbol", "bid", "ask", "underlying_price")
_DERIVABLE_FROM_SYMBOL = ("option_type", "strike", "expiration")
_OPTIONAL_FLOATS = ("implied_volatility", "delta", "gamma", "theta", "vega", "rho")

_TYPE_ALIASES = {"call": "call", "c": "call", "ce": "call", "put": "put", "p": "put", "pe": "put"}


class DataFormatError(ValueError):
    """Raised when historical input rows do not have the expected shape."""


@dataclass(frozen=True)
class OptionDataRow:
    """One validated historical row."""
    timestamp: datetime
    symbol: str
    option_type: str
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

    def to_snapshot(self) -> OptionSnapshot:
        return OptionSnapshot(
            timestamp=self.timestamp,
            symbol=self.symbol,
            option_type=self.option_type,  # type: ignore[arg-type]
            strike=self.strike,
            expiration=self.expiration,
            bid=self.bid,
            ask=self.ask,
            underlying_price=self.underlying_price,
            implied_volatility=self.implied_volatility,
            delta=self.delta,
            gamma=self.gamma,
            theta=self.theta,
            vega=self.vega,
            rho=self.rho,
        )


def _resolve_columns(columns: Iterable[str]) -> Dict[str, str]:
    """Map canonical field name -> actual column name in the frame."""
    lowered = {str(c).strip().lower(): c for c in columns}
    resolved: Dict[str, str] = {}
    for canonical, synonyms in _COLUMN_SYNONYMS.items():
        for syn in synonyms:
            if syn in lowered:
                resolved[canonical] = lowered[syn]
                break
    return resolved


def _is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _parse_float(value, row_no: int, column: str) -> float:
    if _is_missing(value):
        raise DataFormatError(f"Row {row_no}: missing required value for column '{column}'")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise DataFormatError(f"Row {row_no}: column '{column}' is not numeric: {value!r}") from e


def _parse_optional_float(value, row_no: int, column: str) -> Optional[float]:
    if _is_missing(value):
        return None
    return _parse_float(value, row_no, column)


def _parse_timestamp(value, row_no: int, column: str) -> datetime:
    if _is_missing(value):
        raise DataFormatError(f"Row {row_no}: missing required value for column '{column}'")
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise DataFormatError(f"Row {row_no}: column '{column}' is not a valid date/time: {value!r}") from e
    if pd.isna(ts):
        raise DataFormatError(f"Row {row_no}: column '{column}' is not a valid date/time: {value!r}")
    return ts.to_pydatetime()


def _parse_option_type(value, row_no: int, column: str) -> str:
    if _is_missing(value):
        raise DataFormatError(f"Row {row_no}: missing required value for column '{column}'")
    normalized = _TYPE_ALIASES.get(str(value).strip().lower())
    if normalized is None:
        raise DataFormatError(f"Row {row_no}: column '{column}' must be call/put, got {value!r}")
    return normalized


def read_option_rows(source) -> List[OptionDataRow]:
    """
    Read and validate historical option rows from a CSV path/buffer or a DataFrame.

    Raises:
        DataFormatError: On a missing required column, or any row with a
            missing/unparseable required value (names the row and column)
    """
    if isinstance(source, pd.DataFrame):
        df = source
    else:
        df = pd.read_csv(source, dtype=str, keep_default_na=True)

    cols = _resolve_columns(df.columns)
    missing = [c for c in _REQUIRED if c not in cols]
    if missing:
        raise DataFormatError(f"Missing required column(s): {', '.join(missing)}. Found: {list(df.columns)}")
    needs_symbol_decode = [c for c in _DERIVABLE_FROM_SYMBOL if c not in cols]

    rows: List[OptionDataRow] = []
    # header is line 1, so data rows are numbered from 2 to match the file
    for row_no, record in enumerate(df.to_dict(orient="records"), start=2):
        def raw(field: str):
            return record.get(cols[field]) if field in cols else None

        symbol_value = raw("symbol")
        if _is_missing(symbol_value):
            raise DataFormatError(f"Row {row_no}: missing required value for column '{cols['symbol']}'")
        symbol = str(symbol_value).strip()

        parsed = None
        if needs_symbol_decode:
            try:
                parsed = parse_option_symbol(symbol)
            except OptionSymbolError as e:
                raise DataFormatError(
                    f"Row {row_no}: column(s) {needs_symbol_decode} absent and symbol {symbol!r} is not decodable"
                ) from e

        if "option_type" in cols:
            option_type = _parse_option_type(raw("option_type"), row_no, cols["option_type"])
        else:
            option_type = parsed.option_type
        if "strike" in cols:
            strike = _parse_float(raw("strike"), row_no, cols["strike"])
        else:
            strike = parsed.strike
        if "expiration" in cols:
            expiration = _parse_timestamp(raw("expiration"), row_no, cols["expiration"]).date()
        else:
            expiration = parsed.expiration

        optional = {
            name: _parse_optional_float(raw(name), row_no, cols[name]) if name in cols else None
            for name in _OPTIONAL_FLOATS
        }

        rows.append(
            OptionDataRow(
                timestamp=_parse_timestamp(raw("timestamp"), row_no, cols["timestamp"]),
                symbol=symbol,
                option_type=option_type,
                strike=strike,
                expiration=expiration,
                bid=_parse_float(raw("bid"), row_no, cols["bid"]),
                ask=_parse_float(raw("ask"), row_no, cols["ask"]),
                underlying_price=_parse_float(raw("underlying_price"), row_no, cols["underlying_price"]),
                **optional,
            )
        )

    logger.info(f"Read {len(rows)} option rows")
    return rows


def build_option_chains(rows: Iterable[OptionDataRow]) -> Dict[str, OptionChain]:
    """
    Group rows into one frozen OptionChain per calendar date.

    The chain's timestamp and underlying price come from the first row seen for
    that date. Intraday files repeat a contract within one date; only its first
    row is kept.
    """
    chains: Dict[str, OptionChain] = {}
    dropped = 0
    for row in rows:
        key = date_key(row.timestamp)
        chain = chains.get(key)
        if chain is None:
            chain = OptionChain(row.timestamp, row.underlying_price)
            chains[key] = chain
        if not chain.add_snapshot(row.to_snapshot()):
            dropped += 1

    if dropped:
        logger.info(f"Dropped {dropped} repeated rows (same symbol and date, first row kept)")

    for chain in chains.values():
        chain.freeze()
    return dict(sorted(chains.items()))


def underlying_prices_by_date(chains: Dict[str, OptionChain]) -> Dict[str, float]:
    return {key: chain.underlying_price for key, chain in chains.items()}


def read_underlying_prices(source) -> Dict[str, float]:
    """
    Read a date -> close CSV (columns date|timestamp and close|price|underlying_price).

    Raises:
        DataFormatError: If the columns are missing or a value is unparseable
    """
    df = pd.read_csv(source, dtype=str)
    lowered = {str(c).strip().lower(): c for c in df.columns}
    date_col = next((lowered[c] for c in ("date", "timestamp") if c in lowered), None)
    price_col = next((lowered[c] for c in ("close", "price", "underlying_price", "underlying") if c in lowered), None)
    if date_col is None or price_col is None:
        raise DataFormatError(f"Underlying price file needs date and close columns. Found: {list(df.columns)}")

    prices: Dict[str, float] = {}
    for row_no, record in enumerate(df.to_dict(orient="records"), start=2):
        ts = _parse_timestamp(record.get(date_col), row_no, date_col)
        prices[date_key(ts)] = _parse_float(record.get(price_col), row_no, price_col)
    return prices


def load_chains_from_csv(path: Union[str, Path], cache: Optional[QuoteCache] = None) -> Dict[str, OptionChain]:
    """
    Load a CSV file into the per-date chain map.

    With a cache, repeated loads of the same resolved path within the TTL reuse
    the already-built chains (chains are frozen, so sharing is safe).
    """
    resolved = str(Path(path).resolve())

    def _load() -> Dict[str, OptionChain]:
        logger.info(f"Loading option chains from {resolved}")
        chains = build_option_chains(read_option_rows(resolved))
        logger.info(f"Built {len(chains)} daily option chains")
        return chains

    if cache is None:
        return _load()
    return cache.get_or_load(("chains", resolved), _load)
