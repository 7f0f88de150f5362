"""
Tests for the strategy metrics solver (max profit/loss, breakevens, net premium).
"""

import numpy as np
import pytest

from options_strategy_bt.pricing import (
    MIN_GRID_POINTS,
    UNBOUNDED,
    Bounded,
    OptionLeg,
    find_breakevens,
    net_premium,
    payoff_at_expiry,
    price_grid,
    profit_loss_at_date,
    strategy_metrics,
)
from options_strategy_bt.pricing.black_scholes import intrinsic_value
from options_strategy_bt.pricing.metrics import _intrinsic_array


def _leg(side, option_type, strike, premium, quantity=1, days=30):
    return OptionLeg(
        option_type=option_type,
        side=side,
        strike=strike,
        premium=premium,
        quantity=quantity,
        days_to_expiration=days,
    )


def test_long_call():
    """Loss capped at the premium, profit unbounded, breakeven at K + premium"""
    m = strategy_metrics([_leg("long", "call", 100, 5.0)], 100)
    assert m.max_loss == Bounded(pytest.approx(-500.0))
    assert m.max_profit is UNBOUNDED
    assert len(m.breakeven) == 1
    assert m.breakeven[0] == pytest.approx(105.0, abs=1e-6)
    assert m.net_premium == -500.0
    assert m.risk_reward_ratio is None


def test_short_call_loss_unbounded():
    m = strategy_metrics([_leg("short", "call", 100, 5.0)], 100)
    assert m.max_profit == Bounded(pytest.approx(500.0))
    assert m.max_loss is UNBOUNDED
    assert m.net_premium == 500.0


def test_bull_call_spread():
    legs = [_leg("long", "call", 100, 5.0), _leg("short", "call", 110, 2.0)]
    m = strategy_metrics(legs, 100)
    assert isinstance(m.max_profit, Bounded)
    assert isinstance(m.max_loss, Bounded)
    assert m.max_profit.value == pytest.approx(700.0)
    assert m.max_loss.value == pytest.approx(-300.0)
    assert m.breakeven == [pytest.approx(103.0, abs=1e-6)]
    assert m.net_premium == pytest.approx(-300.0)
    assert m.risk_reward_ratio == pytest.approx(700.0 / 300.0)


def test_short_put_loss_still_growing_at_lower_edge():
    """The loss is still increasing at the bottom of the grid, so it is reported unbounded"""
    m = strategy_metrics([_leg("short", "put", 95, 3.0)], 100)
    assert m.max_profit == Bounded(pytest.approx(300.0))
    assert m.max_loss is UNBOUNDED
    assert m.breakeven == [pytest.approx(92.0, abs=1e-6)]


def test_iron_condor_has_two_breakevens():
    legs = [
        _leg("long", "put", 85, 0.5),
        _leg("short", "put", 90, 1.5),
        _leg("short", "call", 110, 1.5),
        _leg("long", "call", 115, 0.5),
    ]
    m = strategy_metrics(legs, 100)
    assert m.max_profit.value == pytest.approx(200.0)
    assert m.max_loss.value == pytest.approx(-300.0)
    assert m.breakeven == [pytest.approx(88.0, abs=1e-6), pytest.approx(112.0, abs=1e-6)]


def test_quantity_scales_dollars():
    m = strategy_metrics([_leg("long", "call", 100, 5.0, quantity=3)], 100)
    assert m.max_loss.value == pytest.approx(-1500.0)


def test_empty_legs():
    m = strategy_metrics([], 100)
    assert m.max_profit == Bounded(0.0)
    assert m.max_loss == Bounded(0.0)
    assert m.breakeven == []
    assert m.net_premium == 0.0


def test_breakeven_linear_interpolation():
    assert find_breakevens([99.0, 101.0], [-10.0, 10.0]) == [100.0]
    assert find_breakevens([99.0, 101.0], [10.0, -30.0]) == [99.5]
    assert find_breakevens([1.0, 2.0, 3.0], [5.0, 6.0, 7.0]) == []


def test_price_grid_brackets_strikes():
    legs = [_leg("long", "call", 300, 1.0)]
    grid = price_grid(legs, 100)
    assert len(grid) == MIN_GRID_POINTS
    assert grid[0] == pytest.approx(50.0)
    assert grid[-1] == pytest.approx(360.0)


def test_price_grid_rejects_coarse_resolution():
    with pytest.raises(ValueError):
        price_grid([_leg("long", "call", 100, 1.0)], 100, points=50)


def test_payoff_scalar_and_array():
    legs = [_leg("long", "put", 100, 4.0)]
    assert payoff_at_expiry(legs, 90) == pytest.approx(600.0)
    out = payoff_at_expiry(legs, np.array([90.0, 100.0, 110.0]))
    assert out.tolist() == pytest.approx([600.0, -400.0, -400.0])


def test_net_premium_sign():
    assert net_premium([_leg("short", "put", 95, 2.0, quantity=2)]) == 400.0
    assert net_premium([_leg("long", "put", 95, 2.0)]) == -200.0


def test_profit_loss_at_expiry_date_matches_payoff():
    legs = [_leg("long", "call", 100, 5.0, days=30)]
    assert profit_loss_at_date(legs, 112, days_from_now=30) == pytest.approx(700.0)
    assert profit_loss_at_date(legs, 112, days_from_now=45) == pytest.approx(700.0)


def test_metrics_to_dict():
    d = strategy_metrics([_leg("long", "call", 100, 5.0)], 100).to_dict()
    assert d["max_profit"] is None
    assert d["max_profit_unbounded"] is True
    assert d["max_loss"] == pytest.approx(-500.0)
    assert d["max_loss_unbounded"] is False


@pytest.mark.parametrize("option_type", ["call", "put"])
def test_vectorised_intrinsic_matches_pricing_engine(option_type):
    leg = _leg("long", option_type, 100, 0.0)
    prices = np.array([0.0, 50.0, 99.99, 100.0, 100.01, 137.5, 250.0])
    expected = [intrinsic_value(option_type, p, 100) for p in prices]
    assert _intrinsic_array(leg, prices).tolist() == pytest.approx(expected)
    # payoff at expiry of a zero-premium long leg is its intrinsic value per contract
    assert payoff_at_expiry([leg], prices).tolist() == pytest.approx([100 * v for v in expected])
