"""
Tests for the cash/position ledger.
"""

import logging
from datetime import date, datetime

import pytest

from options_strategy_bt.data import OptionSnapshot
from options_strategy_bt.portfolio import Portfolio, PositionStateError


def _option(bid, ask, ts=datetime(2024, 1, 2), symbol="XYZ240216P00095000", option_type="put", strike=95.0):
    return OptionSnapshot(
        timestamp=ts,
        symbol=symbol,
        option_type=option_type,
        strike=strike,
        expiration=date(2024, 2, 16),
        bid=bid,
        ask=ask,
        underlying_price=100.0,
    )


def test_realized_pnl_long_roundtrip():
    p = Portfolio(initial_cash=1000.0)
    pos = p.open_position(_option(2.75, 3.25), "long", 1)
    assert pos.id == 1
    assert pos.entry_price == 3.0
    assert p.cash == 700.0

    trade = p.close_position(pos.id, _option(3.75, 4.25, ts=datetime(2024, 1, 5)), "manual")
    assert trade.pnl == 100.0
    assert trade.pnl_percent == pytest.approx(33.3333, abs=1e-3)
    assert trade.exit_reason == "manual"
    assert p.cash == 1100.0
    assert p.open_position_count == 0
    assert len(p.closed_trades) == 1


def test_short_credit_then_buyback():
    p = Portfolio(initial_cash=10_000.0)
    pos = p.open_position(_option(2.75, 3.25), "short", 2)
    assert p.cash == 10_600.0

    trade = p.close_position(pos.id, _option(1.25, 1.75), "take_profit")
    assert trade.pnl == 300.0
    assert trade.pnl_percent == 50.0
    assert p.cash == 10_300.0


def test_cash_conservation():
    p = Portfolio(initial_cash=50_000.0)
    a = p.open_position(_option(2.0, 2.2), "long", 3)
    b = p.open_position(_option(4.9, 5.1, symbol="XYZ240216C00105000", option_type="call", strike=105.0), "short", 1)
    p.close_position(a.id, _option(1.0, 1.2), "stop")
    p.close_position_at_expiration(b.id, 0.0, datetime(2024, 2, 16))

    assert p.cash == pytest.approx(50_000.0 + sum(t.pnl for t in p.closed_trades))


def test_insufficient_cash_refuses_long(caplog):
    p = Portfolio(initial_cash=100.0)
    with caplog.at_level(logging.INFO):
        pos = p.open_position(_option(2.75, 3.25), "long", 1)
    assert pos is None
    assert p.cash == 100.0
    assert p.open_position_count == 0
    assert "Insufficient cash" in caplog.text


def test_short_never_cash_blocked():
    p = Portfolio(initial_cash=0.0)
    assert p.open_position(_option(2.75, 3.25), "short", 5) is not None
    assert p.cash == 1500.0


def test_double_close():
    p = Portfolio(initial_cash=1000.0)
    pos = p.open_position(_option(1.0, 1.0), "long")
    assert p.close_position(pos.id, _option(2.0, 2.0), "first") is not None
    assert p.close_position(pos.id, _option(2.0, 2.0), "second") is None
    assert len(p.closed_trades) == 1
    with pytest.raises(PositionStateError):
        pos.close(2.0, datetime(2024, 1, 3), "again")


def test_unknown_position_id():
    p = Portfolio()
    assert p.close_position_at_expiration(42, 0.0, datetime(2024, 1, 3)) is None


def test_ids_are_monotonic():
    p = Portfolio(initial_cash=10_000.0)
    ids = [p.open_position(_option(1.0, 1.0), "short").id for _ in range(3)]
    assert ids == [1, 2, 3]
    p.reset()
    assert p.open_position(_option(1.0, 1.0), "short").id == 1


def test_total_equity_marks_longs_and_shorts():
    p = Portfolio(initial_cash=10_000.0)
    p.open_position(_option(2.75, 3.25), "short", 1)
    p.open_position(_option(0.9, 1.1, symbol="XYZ240216C00105000", option_type="call", strike=105.0), "long", 1)
    # 10000 + 300 - 100
    assert p.cash == 10_200.0

    marks = {"XYZ240216P00095000": 2.0, "XYZ240216C00105000": 1.5}
    assert p.total_equity(marks) == pytest.approx(10_200.0 - 200.0 + 150.0)
    # no marks -> entry prices, equity back to initial cash
    assert p.total_equity({}) == pytest.approx(10_000.0)


def test_unrealized_pnl_helpers():
    p = Portfolio(initial_cash=10_000.0)
    pos = p.open_position(_option(2.75, 3.25), "short")
    assert p.position_pnl(pos.id, 2.0) == 100.0
    assert p.position_pnl_percent(pos.id, 2.0) == pytest.approx(33.3333, abs=1e-3)
    assert p.position_pnl(999, 2.0) == 0.0


def test_state_snapshot_is_read_only_copy():
    p = Portfolio(initial_cash=10_000.0)
    p.open_position(_option(1.0, 1.0), "short")
    state = p.get_state()
    p.open_position(_option(1.0, 1.0), "short")
    assert state.open_position_count == 1
    assert p.open_position_count == 2


def test_state_positions_unchanged_by_later_close():
    p = Portfolio(initial_cash=10_000.0)
    pos = p.open_position(_option(1.0, 1.0), "short")
    held = p.get_state().open_positions[0]

    p.close_position(pos.id, _option(0.5, 0.5, ts=datetime(2024, 1, 3)), "take_profit")

    assert held.id == pos.id
    assert held.is_open
    assert held.exit_price is None
    assert not pos.is_open
    assert p.get_state().open_positions == ()


def test_invalid_direction_and_quantity():
    p = Portfolio()
    with pytest.raises(ValueError):
        p.open_position(_option(1.0, 1.0), "sideways")
    with pytest.raises(ValueError):
        p.open_position(_option(1.0, 1.0), "long", 0)
