"""
OCC-style option symbol parsing and building.

Format: {UNDERLYING}{YYMMDD}{C|P}{STRIKE x 1000, zero-padded to 8 digits}
Example: AAPL240621C00150000 -> AAPL, 2024-06-21, call, strike 150.00
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Union
import re

_OPTION_RE = re.compile(r"^([A-Z]+)(\d{2})(\d{2})(\d{2})([CP])(\d{8})$")

_STRIKE_SCALE = 1000
_MAX_ENCODED_STRIKE = 99_999_999


class OptionSymbolError(ValueError):
    """Raised when an option symbol does not match the expected encoding."""


@dataclass(frozen=True)
class ParsedOptionSymbol:
    """Parsed option symbol components"""
    underlying: str  # "AAPL"
    expiration: date
    option_type: Literal["call", "put"]
    strike: float
    original_symbol: str = ""


def parse_option_symbol(symbol: str) -> ParsedOptionSymbol:
    """
    Parse an OCC-style option symbol into its components.

    Args:
        symbol: Option symbol string (e.g., "AAPL240621C00150000")

    Returns:
        ParsedOptionSymbol with underlying, expiration, type and strike

    Raises:
        OptionSymbolError: If the symbol does not match the format or encodes an invalid date

    Examples:
        >>> parse_option_symbol("AAPL240621C00150000")
        ParsedOptionSymbol(underlying='AAPL', expiration=datetime.date(2024, 6, 21), option_type='call', strike=150.0, ...)
    """
    if not isinstance(symbol, str):
        raise OptionSymbolError(f"Option symbol must be a string, got {type(symbol).__name__}")

    match = _OPTION_RE.match(symbol)
    if match is None:
        raise OptionSymbolError(f"Unrecognized option symbol format: {symbol!r}")

    underlying, yy, mm, dd, cp, strike_str = match.groups()
    try:
        expiration = date(2000 + int(yy), int(mm), int(dd))
    except ValueError as e:
        raise OptionSymbolError(f"Invalid expiry date in option symbol: {symbol!r}") from e

    return ParsedOptionSymbol(
        underlying=underlying,
        expiration=expiration,
        option_type="call" if cp == "C" else "put",
        strike=int(strike_str) / _STRIKE_SCALE,
        original_symbol=symbol,
    )


def build_option_symbol(
    underlying: str,
    expiration: Union[date, datetime],
    option_type: Literal["call", "put"],
    strike: float,
) -> str:
    """
    Build an OCC-style option symbol.

    Raises:
        OptionSymbolError: If any component cannot be encoded
    """
    if not re.fullmatch(r"[A-Z]+", underlying or ""):
        raise OptionSymbolError(f"Underlying must be uppercase letters, got {underlying!r}")
    if option_type not in ("call", "put"):
        raise OptionSymbolError(f"Invalid option_type: {option_type!r}")
    if isinstance(expiration, datetime):
        expiration = expiration.date()
    if not 2000 <= expiration.year <= 2099:
        raise OptionSymbolError(f"Expiration year out of encodable range: {expiration.year}")

    encoded_strike = int(round(float(strike) * _STRIKE_SCALE))
    if encoded_strike < 0 or encoded_strike > _MAX_ENCODED_STRIKE:
        raise OptionSymbolError(f"Strike out of encodable range: {strike}")

    cp = "C" if option_type == "call" else "P"
    return f"{underlying}{expiration.strftime('%y%m%d')}{cp}{encoded_strike:08d}"


def is_option_symbol(symbol: str) -> bool:
    """Check if symbol is a well-formed option symbol"""
    try:
        parse_option_symbol(symbol)
        return True
    except OptionSymbolError:
        return False
