"""
Data layer: option symbol codec, market data model, CSV loading, quote cache
"""

from .symbols import (
    OptionSymbolError,
    ParsedOptionSymbol,
    parse_option_symbol,
    build_option_symbol,
    is_option_symbol,
)
from .models import OptionSnapshot, OptionChain, date_key
from .cache import QuoteCache
from .loader import (
    DataFormatError,
    OptionDataRow,
    read_option_rows,
    build_option_chains,
    underlying_prices_by_date,
    read_underlying_prices,
    load_chains_from_csv,
)

__all__ = [
    "OptionSymbolError",
    "ParsedOptionSymbol",
    "parse_option_symbol",
    "build_option_symbol",
    "is_option_symbol",
    "OptionSnapshot",
    "OptionChain",
    "date_key",
    "QuoteCache",
    "DataFormatError",
    "OptionDataRow",
    "read_option_rows",
    "build_option_chains",
    "underlying_prices_by_date",
    "read_underlying_prices",
    "load_chains_from_csv",
]
