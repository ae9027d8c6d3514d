"""YAML configuration loaders for routecache.

All functions follow a 3-tier fallback chain:
    1. YAML config (routecache.yaml)
    2. Environment variables
    3. Hardcoded defaults

The strategy loader is stricter than the others: a missing explicit path,
an unparseable file or a malformed ``strategies:`` section raises
ConfigurationError instead of silently falling back, so a broken table
is caught at startup.
"""

import copy
import os
from pathlib import Path
from typing import Any

from routecache.core.config.utils import read_yaml_section
from routecache.core.defaults import DEFAULT_STRATEGIES, DEFAULT_TRACKED_PAIRS
from routecache.core.exceptions import ConfigurationError
from routecache.core.models import TradeType


def load_cache_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load cache configuration from routecache.yaml.

    3-tier fallback chain:
        1. YAML config (routecache.yaml cache)
        2. Environment variables (via Settings class - route_cache_ttl_minutes, etc.)
        3. Hardcoded defaults

    Returns:
        Dict with cache configuration

    Example:
        >>> config = load_cache_config()
        >>> config["ttl_minutes"]
        20
        >>> config["circuit_breaker"]["threshold"]
        5
    """
    # Import here to avoid circular import
    from routecache.core.config.settings import settings

    defaults: dict[str, Any] = {
        "enabled": settings.route_cache_enabled,
        "redis_url": settings.redis_url,
        "ttl_minutes": settings.route_cache_ttl_minutes,
        "key_prefix": settings.route_cache_key_prefix,
        "timeout": settings.redis_timeout,
        "circuit_breaker": {
            "threshold": settings.redis_circuit_breaker_threshold,
            "timeout": settings.redis_circuit_breaker_timeout,
        },
    }

    cache_config = read_yaml_section("cache", path)
    if not isinstance(cache_config, dict) or not cache_config:
        # Environment variables handled by Settings class
        return defaults

    # Deep merge circuit_breaker
    result = copy.deepcopy(defaults)
    for key, value in cache_config.items():
        existing = result.get(key)
        if isinstance(value, dict) and isinstance(existing, dict):
            result[key] = {**existing, **value}
        else:
            result[key] = value
    return result


def load_strategy_config(path: str | Path | None = None) -> list[dict[str, Any]]:
    """Load the caching strategy table from routecache.yaml.

    Args:
        path: Explicit YAML path (default: settings.strategy_config_path)

    Returns:
        List of raw strategy records, validated later by the registry

    Raises:
        ConfigurationError: If an explicit path is missing, the file cannot be
            parsed, or the ``strategies`` section is not a list of mappings

    Example:
        >>> records = load_strategy_config()
        >>> records[0]["pair"]
        'WETH/USDC'
    """
    strategies = read_yaml_section("strategies", path, strict=True)

    if strategies is None:
        return copy.deepcopy(DEFAULT_STRATEGIES)

    if not isinstance(strategies, list):
        raise ConfigurationError(
            "'strategies' must be a list of strategy records",
            details={"type": type(strategies).__name__},
        )

    for index, record in enumerate(strategies):
        if not isinstance(record, dict):
            raise ConfigurationError(
                f"Strategy record #{index} must be a mapping",
                details={"index": index},
            )

    return strategies


def load_tracked_pairs(path: str | Path | None = None) -> dict[int, dict[TradeType, set[str]]]:
    """Load the pairs whose requested quote amounts are recorded as metrics.

    3-tier fallback chain:
        1. YAML config (routecache.yaml tracked_pairs)
        2. Environment variable TRACKED_PAIRS ("1:ExactIn:WETH/USDC,1:ExactOut:USDC/WETH")
        3. Hardcoded defaults

    Returns:
        chain_id -> trade type -> set of upper-cased pairs
    """
    raw: Any = read_yaml_section("tracked_pairs", path)

    if not isinstance(raw, dict) or not raw:
        env_value = os.getenv("TRACKED_PAIRS")
        raw = _parse_tracked_pairs_env(env_value) if env_value else DEFAULT_TRACKED_PAIRS

    result: dict[int, dict[TradeType, set[str]]] = {}
    for chain_id, by_trade_type in raw.items():
        if not isinstance(by_trade_type, dict):
            continue
        try:
            chain = int(chain_id)
        except (TypeError, ValueError):
            continue
        for trade_type, pairs in by_trade_type.items():
            try:
                parsed = TradeType.parse(trade_type)
            except ValueError:
                continue
            if not isinstance(pairs, list):
                continue
            result.setdefault(chain, {}).setdefault(parsed, set()).update(
                str(pair).upper() for pair in pairs
            )

    return result


def _parse_tracked_pairs_env(value: str) -> dict[int, dict[str, list[str]]]:
    """Parse the TRACKED_PAIRS env format ("chain:tradeType:PAIR,...")."""
    parsed: dict[int, dict[str, list[str]]] = {}
    for item in value.split(","):
        parts = item.strip().split(":")
        if len(parts) != 3:
            continue
        chain, trade_type, pair = parts
        try:
            chain_id = int(chain)
        except ValueError:
            continue
        parsed.setdefault(chain_id, {}).setdefault(trade_type, []).append(pair)
    return parsed
