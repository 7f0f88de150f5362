"""
Closed-form European option valuation (Black-Scholes) and Greeks.

All functions are pure: plain values in, plain values out. Safe to call from
any thread or a UI loop at arbitrary frequency.

Conventions:
- time inputs are calendar days, converted with T = days / 365
- theta is per calendar day, vega per 1 vol point, rho per 1 rate point
- at or past expiry (T <= 0) prices collapse to intrinsic value and Greeks are zero
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from .legs import OptionLeg, OptionType

DAYS_PER_YEAR = 365.0
DEFAULT_VOLATILITY = 0.3
DEFAULT_RISK_FREE_RATE = 0.05

# Abramowitz & Stegun 26.2.17
_P = 0.2316419
_PDF_SCALE = 0.3989423
_B1 = 0.3193815
_B2 = -0.3565638
_B3 = 1.781478
_B4 = -1.821256
_B5 = 1.330274


def norm_cdf(x: float) -> float:
    """Standard normal CDF via the A&S polynomial approximation (|error| < 7.5e-8)."""
    t = 1.0 / (1.0 + _P * abs(x))
    d = _PDF_SCALE * math.exp(-x * x / 2.0)
    p = d * t * (_B1 + t * (_B2 + t * (_B3 + t * (_B4 + t * _B5))))
    return 1.0 - p if x > 0 else p


def norm_pdf(x: float) -> float:
    return math.exp(-x * x / 2.0) / math.sqrt(2.0 * math.pi)


def intrinsic_value(option_type: OptionType, spot: float, strike: float) -> float:
    if option_type == "call":
        return max(float(spot) - float(strike), 0.0)
    return max(float(strike) - float(spot), 0.0)


def _degenerate(S: float, K: float, T: float, sigma: float) -> bool:
    # No time value left, or inputs the log/sqrt terms cannot take
    return T <= 0 or sigma <= 0 or S <= 0 or K <= 0


def _d1_d2(S: float, K: float, T: float, r: float, sigma: float):
    vol_sqrt_t = sigma * math.sqrt(T)
    d1 = (math.log(S / K) + (r + sigma * sigma / 2.0) * T) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def black_scholes_call(S: float, K: float, T: float, r: float, sigma: float) -> float:
    if _degenerate(S, K, T, sigma):
        return intrinsic_value("call", S, K)
    d1, d2 = _d1_d2(S, K, T, r, sigma)
    return S * norm_cdf(d1) - K * math.exp(-r * T) * norm_cdf(d2)


def black_scholes_put(S: float, K: float, T: float, r: float, sigma: float) -> float:
    if _degenerate(S, K, T, sigma):
        return intrinsic_value("put", S, K)
    d1, d2 = _d1_d2(S, K, T, r, sigma)
    return K * math.exp(-r * T) * norm_cdf(-d2) - S * norm_cdf(-d1)


def price(
    option_type: OptionType,
    spot: float,
    strike: float,
    days_to_expiry: float,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """
    Theoretical value of one European option (per share).

    Args:
        option_type: "call" or "put"
        spot: Underlying price
        strike: Strike price
        days_to_expiry: Calendar days to expiry (fractional allowed)
        volatility: Annualised volatility as a fraction (0.3 = 30%)
        risk_free_rate: Annualised continuously-compounded rate as a fraction

    Returns:
        Option value per share
    """
    T = float(days_to_expiry) / DAYS_PER_YEAR
    if option_type == "call":
        return black_scholes_call(float(spot), float(strike), T, float(risk_free_rate), float(volatility))
    if option_type == "put":
        return black_scholes_put(float(spot), float(strike), T, float(risk_free_rate), float(volatility))
    raise ValueError(f"Invalid option_type: {option_type!r}. Expected 'call' or 'put'")


@dataclass(frozen=True)
class Greeks:
    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0

    @classmethod
    def zero(cls) -> "Greeks":
        return cls()

    def __add__(self, other: "Greeks") -> "Greeks":
        if not isinstance(other, Greeks):
            return NotImplemented
        return Greeks(
            delta=self.delta + other.delta,
            gamma=self.gamma + other.gamma,
            theta=self.theta + other.theta,
            vega=self.vega + other.vega,
            rho=self.rho + other.rho,
        )

    def scaled(self, factor: float) -> "Greeks":
        return Greeks(
            delta=self.delta * factor,
            gamma=self.gamma * factor,
            theta=self.theta * factor,
            vega=self.vega * factor,
            rho=self.rho * factor,
        )

    def to_dict(self):
        return {"delta": self.delta, "gamma": self.gamma, "theta": self.theta, "vega": self.vega, "rho": self.rho}


def greeks(
    leg: OptionLeg,
    spot: float,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> Greeks:
    """
    Position Greeks for one leg, signed by side and scaled by quantity.

    `volatility` is used as given; per-leg IV selection happens in strategy_greeks().
    """
    S = float(spot)
    K = float(leg.strike)
    T = float(leg.days_to_expiration) / DAYS_PER_YEAR
    sigma = float(volatility)
    r = float(risk_free_rate)

    if _degenerate(S, K, T, sigma):
        return Greeks.zero()

    d1, d2 = _d1_d2(S, K, T, r, sigma)
    sqrt_t = math.sqrt(T)
    pdf_d1 = norm_pdf(d1)
    discount = math.exp(-r * T)

    if leg.option_type == "call":
        delta = norm_cdf(d1)
        theta = (-S * pdf_d1 * sigma / (2.0 * sqrt_t) - r * K * discount * norm_cdf(d2)) / DAYS_PER_YEAR
        rho = K * T * discount * norm_cdf(d2) / 100.0
    else:
        delta = norm_cdf(d1) - 1.0
        theta = (-S * pdf_d1 * sigma / (2.0 * sqrt_t) + r * K * discount * norm_cdf(-d2)) / DAYS_PER_YEAR
        rho = -K * T * discount * norm_cdf(-d2) / 100.0

    gamma = pdf_d1 / (S * sigma * sqrt_t)
    vega = S * pdf_d1 * sqrt_t / 100.0

    raw = Greeks(delta=delta, gamma=gamma, theta=theta, vega=vega, rho=rho)
    return raw.scaled(leg.direction_sign * leg.quantity)


def strategy_greeks(
    legs: Iterable[OptionLeg],
    spot: float,
    volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> Greeks:
    """Sum of leg Greeks; a leg's own implied volatility wins over the shared fallback."""
    total = Greeks.zero()
    for leg in legs:
        vol = leg.implied_volatility if leg.has_iv else volatility
        total = total + greeks(leg, spot, vol, risk_free_rate)
    return total


def implied_volatility(
    option_type: OptionType,
    spot: float,
    strike: float,
    days_to_expiry: float,
    market_price: float,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    initial_guess: float = DEFAULT_VOLATILITY,
    max_iterations: int = 100,
    tolerance: float = 1e-4,
) -> float:
    """
    Solve for the volatility that reproduces `market_price` (Newton-Raphson on vega).

    Falls back to the initial guess when there is no time value to solve against.
    Sigma is kept within [1%, 300%] between iterations.
    """
    T = float(days_to_expiry) / DAYS_PER_YEAR
    S = float(spot)
    K = float(strike)
    if T <= 0 or market_price <= 0 or S <= 0 or K <= 0:
        return float(initial_guess)

    sigma = float(initial_guess)
    for _ in range(max_iterations):
        theoretical = price(option_type, S, K, days_to_expiry, sigma, risk_free_rate)
        diff = theoretical - float(market_price)
        if abs(diff) < tolerance:
            return sigma

        d1, _d2 = _d1_d2(S, K, T, float(risk_free_rate), sigma)
        raw_vega = S * norm_pdf(d1) * math.sqrt(T)
        if abs(raw_vega) < 1e-10:
            break

        sigma = sigma - diff / raw_vega
        sigma = max(0.01, min(3.0, sigma))

    return sigma


def leg_value(
    leg: OptionLeg,
    spot: float,
    days_elapsed: float = 0.0,
    fallback_volatility: float = DEFAULT_VOLATILITY,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> float:
    """Per-share theoretical value of a leg after `days_elapsed` calendar days."""
    remaining = max(0.0, float(leg.days_to_expiration) - float(days_elapsed))
    if remaining <= 0:
        return intrinsic_value(leg.option_type, spot, leg.strike)
    vol = leg.implied_volatility if leg.has_iv else fallback_volatility
    return price(leg.option_type, spot, leg.strike, remaining, vol, risk_free_rate)
