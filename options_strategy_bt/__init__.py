"""
Multi-leg Options Strategy Backtest Engine

Closed-form option valuation, strategy payoff metrics, and a deterministic
event-driven backtester that replays daily option-chain snapshots through
pluggable strategies.
"""

__version__ = "0.1.0"
