"""
Shared fixtures: a 20-day single-put tape where the short put decays to half
its entry premium on the last day.
"""

from datetime import date, datetime, timedelta

import pandas as pd
import pytest

from options_strategy_bt.data import build_option_chains, build_option_symbol, read_option_rows

START = date(2024, 1, 2)
EXPIRY = START + timedelta(days=45)
STRIKE = 95.0
SPOT = 100.0


def short_put_rows(days: int = 20) -> pd.DataFrame:
    symbol = build_option_symbol("XYZ", EXPIRY, "put", STRIKE)
    rows = []
    for i in range(days):
        day = START + timedelta(days=i)
        if i == 19:
            bid, ask = 1.25, 1.75
        else:
            mid = 3.0 - 0.075 * i
            bid, ask = round(mid - 0.25, 4), round(mid + 0.25, 4)
        rows.append(
            {
                "date": day.isoformat(),
                "symbol": symbol,
                "type": "put",
                "strike": STRIKE,
                "expiration": EXPIRY.isoformat(),
                "bid": bid,
                "ask": ask,
                "underlying": SPOT,
            }
        )
    return pd.DataFrame(rows)


@pytest.fixture
def short_put_frame() -> pd.DataFrame:
    return short_put_rows()


@pytest.fixture
def short_put_chains(short_put_frame):
    return build_option_chains(read_option_rows(short_put_frame))


@pytest.fixture
def short_put_prices(short_put_chains):
    return {key: chain.underlying_price for key, chain in short_put_chains.items()}


@pytest.fixture
def short_put_csv(tmp_path, short_put_frame):
    path = tmp_path / "options.csv"
    short_put_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def first_day() -> datetime:
    return datetime(START.year, START.month, START.day)
