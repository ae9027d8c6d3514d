"""Caching strategies: amount buckets per pair, trade type and chain.

Usage:
    >>> from routecache.strategy import StrategyRegistry
    >>>
    >>> registry = StrategyRegistry.load()  # routecache.yaml or built-in table
    >>> strategy = registry.get(weth, usdc, "ExactIn", 1)
    >>> bucket = strategy.resolve_bucket(amount) if strategy else None
    >>> mode = bucket.cache_mode if bucket else CacheMode.DARKMODE
"""

from routecache.strategy.keys import (
    PairTradeTypeChainId,
    ProtocolsBucketKey,
    format_bound,
    route_cache_key,
)
from routecache.strategy.models import BucketSpec, StrategyConfig
from routecache.strategy.registry import StrategyRegistry
from routecache.strategy.strategy import BucketRange, CachingStrategy

__all__ = [
    "BucketSpec",
    "StrategyConfig",
    "CachingStrategy",
    "BucketRange",
    "StrategyRegistry",
    "PairTradeTypeChainId",
    "ProtocolsBucketKey",
    "route_cache_key",
    "format_bound",
]
