"""
Composable contract-selection helpers shared by strategies.

Plain functions over sequences of OptionSnapshot; each returns a new list and
leaves its input untouched.
"""

from __future__ import annotations

from typing import Iterable, List

from ..data.models import OptionSnapshot


def _select_otm(
    options: Iterable[OptionSnapshot],
    option_type: str,
    min_dte: float,
    max_dte: float,
    min_premium: float,
) -> List[OptionSnapshot]:
    return [
        o
        for o in options
        if o.option_type == option_type
        and o.is_otm()
        and min_dte <= o.dte <= max_dte
        and o.mid_price >= min_premium
        and o.has_valid_quote()
    ]


def select_otm_puts(
    options: Iterable[OptionSnapshot], min_dte: float, max_dte: float, min_premium: float = 0.0
) -> List[OptionSnapshot]:
    """OTM puts with a valid quote inside the DTE window and at or above min_premium."""
    return _select_otm(options, "put", min_dte, max_dte, min_premium)


def select_otm_calls(
    options: Iterable[OptionSnapshot], min_dte: float, max_dte: float, min_premium: float = 0.0
) -> List[OptionSnapshot]:
    return _select_otm(options, "call", min_dte, max_dte, min_premium)


def select_by_strike_distance(
    options: Iterable[OptionSnapshot], min_distance_percent: float, max_distance_percent: float
) -> List[OptionSnapshot]:
    return [o for o in options if min_distance_percent <= o.strike_distance_percent <= max_distance_percent]


def select_by_delta(options: Iterable[OptionSnapshot], min_delta: float, max_delta: float) -> List[OptionSnapshot]:
    """Keep contracts whose |delta| lies in [min_delta, max_delta]; contracts without delta are dropped."""
    return [o for o in options if o.delta is not None and min_delta <= abs(o.delta) <= max_delta]


# sorted() is stable, so equal keys keep chain order
def sort_by_premium_desc(options: Iterable[OptionSnapshot]) -> List[OptionSnapshot]:
    return sorted(options, key=lambda o: o.mid_price, reverse=True)


def sort_by_premium_asc(options: Iterable[OptionSnapshot]) -> List[OptionSnapshot]:
    return sorted(options, key=lambda o: o.mid_price)


def sort_by_strike_distance_asc(options: Iterable[OptionSnapshot]) -> List[OptionSnapshot]:
    return sorted(options, key=lambda o: o.strike_distance)
