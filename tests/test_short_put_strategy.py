"""
Tests for the bundled short put strategy and the selection helpers it uses.
"""

from datetime import date, datetime

import pytest

from options_strategy_bt.data import OptionChain, OptionSnapshot
from options_strategy_bt.portfolio import Portfolio
from options_strategy_bt.strategy import (
    CloseSignal,
    OpenSignal,
    ShortPutStrategy,
    StrategyContext,
    select_by_delta,
    select_otm_puts,
    sort_by_premium_asc,
    sort_by_premium_desc,
    sort_by_strike_distance_asc,
)

TS = datetime(2024, 1, 2)
EXP = date(2024, 2, 16)  # 45 DTE from TS


def _put(strike, bid, ask, ts=TS, expiration=EXP, spot=100.0, delta=None, symbol=None):
    return OptionSnapshot(
        timestamp=ts,
        symbol=symbol or f"P{strike:g}",
        option_type="put",
        strike=strike,
        expiration=expiration,
        bid=bid,
        ask=ask,
        underlying_price=spot,
        delta=delta,
    )


def _context(snapshots, portfolio=None, ts=TS, spot=100.0):
    portfolio = portfolio or Portfolio(100_000.0)
    chain = OptionChain.from_snapshots(ts, spot, snapshots)
    return StrategyContext(timestamp=ts, option_chain=chain, portfolio=portfolio.get_state(), underlying_price=spot)


def test_sells_richest_qualifying_put():
    snaps = [
        _put(97.0, 3.9, 4.1),  # 3% away, too close
        _put(95.0, 2.75, 3.25),
        _put(90.0, 1.4, 1.6),
        _put(80.0, 0.3, 0.5),  # 20% away, too far
    ]
    signals = ShortPutStrategy({}).on_timestamp(_context(snaps))
    assert len(signals) == 1
    signal = signals[0]
    assert isinstance(signal, OpenSignal)
    assert signal.direction == "short"
    assert signal.option.strike == 95.0
    assert signal.reason == "sell_put_95_45dte_$3.00"


def test_no_entry_outside_dte_window():
    snaps = [_put(95.0, 2.75, 3.25, expiration=date(2024, 1, 20))]
    assert ShortPutStrategy({}).on_timestamp(_context(snaps)) == []


def test_no_entry_below_min_premium():
    snaps = [_put(95.0, 0.3, 0.4)]
    assert ShortPutStrategy({"min_premium": 0.5}).on_timestamp(_context(snaps)) == []


def test_target_delta_window():
    snaps = [
        _put(95.0, 2.75, 3.25, delta=-0.30),
        _put(90.0, 1.4, 1.6, delta=-0.18),
    ]
    signals = ShortPutStrategy({"target_delta": 0.20}).on_timestamp(_context(snaps))
    assert [s.option.strike for s in signals] == [90.0]


def test_respects_max_open_positions():
    p = Portfolio(100_000.0)
    held = _put(95.0, 2.75, 3.25)
    p.open_position(held, "short")
    signals = ShortPutStrategy({}).on_timestamp(_context([held, _put(90.0, 1.4, 1.6)], portfolio=p))
    assert signals == []


def _held(entry_bid, entry_ask):
    p = Portfolio(100_000.0)
    option = _put(95.0, entry_bid, entry_ask, symbol="HELD")
    p.open_position(option, "short")
    return p


def test_take_profit_exit():
    p = _held(2.75, 3.25)
    ts = datetime(2024, 1, 10)
    ctx = _context([_put(95.0, 1.25, 1.75, ts=ts, symbol="HELD")], portfolio=p, ts=ts)
    signals = ShortPutStrategy({"max_open_positions": 0}).on_timestamp(ctx)
    assert len(signals) == 1
    assert isinstance(signals[0], CloseSignal)
    assert signals[0].reason == "take_profit_50.0%"


def test_stop_loss_exit():
    p = _held(0.9, 1.1)
    ts = datetime(2024, 1, 10)
    ctx = _context([_put(95.0, 2.9, 3.1, ts=ts, symbol="HELD")], portfolio=p, ts=ts)
    signals = ShortPutStrategy({"max_open_positions": 0}).on_timestamp(ctx)
    assert signals[0].reason == "stop_loss_-200.0%"


def test_exit_dte():
    p = _held(2.75, 3.25)
    ts = datetime(2024, 2, 10)
    ctx = _context([_put(95.0, 2.75, 3.25, ts=ts, symbol="HELD")], portfolio=p, ts=ts)
    signals = ShortPutStrategy({"max_open_positions": 0}).on_timestamp(ctx)
    assert signals[0].reason == "exit_dte_6"


def test_expired_when_missing_from_chain():
    p = _held(2.75, 3.25)
    ts = datetime(2024, 2, 16)
    itm = ShortPutStrategy({"max_open_positions": 0}).on_timestamp(_context([], portfolio=p, ts=ts, spot=90.0))
    otm = ShortPutStrategy({"max_open_positions": 0}).on_timestamp(_context([], portfolio=p, ts=ts, spot=99.0))
    assert itm[0].reason == "expired_itm"
    assert otm[0].reason == "expired_otm"


def test_missing_before_expiry_holds():
    p = _held(2.75, 3.25)
    ts = datetime(2024, 1, 15)
    assert ShortPutStrategy({"max_open_positions": 0}).on_timestamp(_context([], portfolio=p, ts=ts)) == []


def test_rejects_inverted_dte_window():
    with pytest.raises(ValueError):
        ShortPutStrategy({"min_dte": 60, "max_dte": 30})


def test_select_otm_puts_filters():
    snaps = [
        _put(95.0, 2.75, 3.25),
        _put(105.0, 6.0, 6.5),  # ITM
        _put(90.0, 0.0, 1.0),  # no bid
        _put(85.0, 0.2, 0.3),  # below premium
    ]
    assert [s.strike for s in select_otm_puts(snaps, 30, 60, 0.5)] == [95.0]


def test_select_by_delta_drops_missing_delta():
    snaps = [_put(95.0, 1, 2, delta=-0.25), _put(90.0, 1, 2)]
    assert [s.strike for s in select_by_delta(snaps, 0.2, 0.3)] == [95.0]


def test_sorts_are_stable():
    a = _put(95.0, 0.9, 1.1, symbol="A")
    b = _put(105.0, 0.9, 1.1, symbol="B")
    c = _put(90.0, 1.9, 2.1, symbol="C")
    assert [s.symbol for s in sort_by_premium_desc([a, b, c])] == ["C", "A", "B"]
    assert [s.symbol for s in sort_by_premium_asc([a, b, c])] == ["A", "B", "C"]
    assert [s.symbol for s in sort_by_strike_distance_asc([c, a, b])] == ["A", "B", "C"]
