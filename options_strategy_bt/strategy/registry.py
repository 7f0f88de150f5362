"""
Name -> strategy lookup.

Bundled strategies add themselves with @register_strategy when
options_strategy_bt.strategy is imported; configs refer to them by name.
"""

from typing import Any, Callable, Dict, List, Optional
import importlib
import logging

from .base import Strategy

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[Dict[str, Any]], Strategy]

_strategy_registry: Dict[str, StrategyFactory] = {}


def register_strategy(name: str):
    """
    Class decorator adding a strategy under `name`.

    The class is called with the params dict from the run config:

        @register_strategy("short_put")
        class ShortPutStrategy:
            def __init__(self, params): ...
    """
    def decorator(factory):
        previous = _strategy_registry.get(name)
        if previous is not None and previous is not factory:
            logger.warning(f"Replacing strategy '{name}': {previous.__name__} -> {factory.__name__}")
        _strategy_registry[name] = factory
        logger.debug(f"Registered strategy '{name}' ({factory.__name__})")
        return factory
    return decorator


def list_strategies() -> List[str]:
    return sorted(_strategy_registry)


def get_strategy(name: str, params: Optional[Dict[str, Any]] = None) -> Strategy:
    """
    Build the strategy registered as `name` with a copy of `params`.

    Raises:
        ValueError: unknown name, or the strategy rejected its params
    """
    factory = _strategy_registry.get(name)
    if factory is None:
        known = list_strategies()
        hint = f"Known strategies: {', '.join(known)}" if known else "No strategies are registered"
        raise ValueError(
            f"Unknown strategy: '{name}'. {hint}. "
            f"New strategy modules must be imported in options_strategy_bt/strategy/__init__.py"
        )

    try:
        return factory(dict(params or {}))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Strategy '{name}' rejected its params: {e}") from e


def discover_strategies() -> List[str]:
    """Import the strategy package (registering bundled strategies) and return the known names."""
    importlib.import_module(__package__)
    names = list_strategies()
    logger.info(f"{len(names)} strategies available: {names}")
    return names
