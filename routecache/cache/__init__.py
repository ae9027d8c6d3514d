"""Route cache: stores, records and the router-facing provider.

Cached routes are keyed by pair, trade type, chain, protocol set and
amount bucket. Reads check freshness themselves, so a store that purges
late never serves stale routes.

Key Features:
    - MessagePack serialization for compact storage
    - Circuit breaker for automatic failure recovery
    - Graceful degradation (store failures become misses)
    - Protocol superset matching
    - Performance statistics tracking

Usage:
    >>> from routecache.cache import RouteCacheProvider, InMemoryRouteStore
    >>> from routecache.strategy import StrategyRegistry
    >>>
    >>> provider = RouteCacheProvider(StrategyRegistry.load(), InMemoryRouteStore())
    >>>
    >>> mode = await provider.get_cache_mode(1, amount, usdc, "ExactIn", [])
    >>> cached = await provider.get_cached_route(1, amount, usdc, "ExactIn", [])
    >>> if cached is None:
    >>>     # Cache miss, compute routes live
    >>>     cached = await router.compute(...)
    >>>     await provider.set_cached_route(cached, amount)
"""

from routecache.cache.models import CacheConfig, CacheRecord, CacheStats
from routecache.cache.provider import (
    CacheCircuitBreaker,
    RouteCacheProvider,
    RouteCachingProvider,
)
from routecache.cache.stores import InMemoryRouteStore, RedisRouteStore, RouteStore

__all__ = [
    "RouteCachingProvider",
    "RouteCacheProvider",
    "CacheCircuitBreaker",
    "CacheConfig",
    "CacheStats",
    "CacheRecord",
    "RouteStore",
    "InMemoryRouteStore",
    "RedisRouteStore",
]
