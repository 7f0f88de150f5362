"""
Configuration loader with YAML/JSON support, environment overrides, and CLI overrides.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from .schemas import RunConfig

ENV_PREFIX = "OSBT__"


_READERS = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.load,
}


def load_config(path: str) -> RunConfig:
    """
    Read a YAML (.yaml/.yml) or JSON (.json) run config and validate it.

    Raises:
        FileNotFoundError: missing file
        ValueError: unknown suffix, or the document is not a mapping
        pydantic.ValidationError: the mapping does not fit RunConfig
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = config_path.suffix.lower()
    reader = _READERS.get(suffix)
    if reader is None:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .json")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = reader(f)

    if not isinstance(config_dict, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return RunConfig(**config_dict)


def _parse_value(value: str) -> Any:
    """Parse an override value (try JSON first, fallback to string)"""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        if lowered in ("null", "none"):
            return None
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            return value


def _set_nested(overrides: Dict[str, Any], parts: List[str], value: Any) -> None:
    current = overrides
    for key_part in parts[:-1]:
        current = current.setdefault(key_part, {})
    current[parts[-1]] = value


def _merge_overrides(cfg: RunConfig, overrides: Dict[str, Any]) -> RunConfig:
    if not overrides:
        return cfg
    config_dict = _deep_merge(cfg.model_dump(), overrides)
    # Re-validate
    return RunConfig(**config_dict)


def apply_env_overrides(cfg: RunConfig, environ: Optional[Dict[str, str]] = None) -> RunConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables must follow pattern: OSBT__{section}__{key}
    Example: OSBT__engine__initial_cash=50000
    Nested: OSBT__strategy__params__take_profit_percent=40

    Args:
        cfg: Base RunConfig
        environ: Mapping to read instead of os.environ

    Returns:
        RunConfig with environment overrides applied
    """
    environ = os.environ if environ is None else environ
    overrides: Dict[str, Any] = {}

    for key, value in environ.items():
        if not key.upper().startswith(ENV_PREFIX):
            continue
        # Normalize to lowercase (env vars are often uppercase)
        parts = key[len(ENV_PREFIX):].lower().split("__")
        if len(parts) < 2 or not all(parts):
            continue
        _set_nested(overrides, parts, _parse_value(value))

    return _merge_overrides(cfg, overrides)


def apply_cli_overrides(cfg: RunConfig, sets: List[str]) -> RunConfig:
    """
    Apply CLI --set key=value overrides to configuration.

    Supports nested keys: engine.initial_cash=50000 or strategy.params.exit_dte=10
    Uses json.loads for typed values, falls back to string.

    Args:
        cfg: Base RunConfig
        sets: List of "key=value" strings from CLI --set flags

    Returns:
        RunConfig with CLI overrides applied
    """
    if not sets:
        return cfg

    overrides: Dict[str, Any] = {}

    for set_str in sets:
        if "=" not in set_str:
            raise ValueError(f"Invalid --set format: {set_str}. Expected 'key=value'")

        key_str, value_str = set_str.split("=", 1)
        key_parts = key_str.strip().split(".")
        if len(key_parts) < 2 or not all(key_parts):
            raise ValueError(f"Invalid --set key format: {key_str}. Expected 'section.key' or 'section.nested.key'")

        _set_nested(overrides, key_parts, _parse_value(value_str))

    return _merge_overrides(cfg, overrides)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
