"""routecache - route caching decisions for DEX aggregation.

Decides, per quote request, whether swap routes are served from a cache,
computed live, or both (to validate the cache), and keeps the cache
populated with routes computed live.

Basic usage:
    >>> from routecache import RouteCacheProvider, StrategyRegistry, InMemoryRouteStore
    >>> provider = RouteCacheProvider(StrategyRegistry.load(), InMemoryRouteStore())
    >>> mode = await provider.get_cache_mode(1, amount, usdc, "ExactIn", [])
    >>> print(mode)
    CacheMode.TAPCOMPARE

Services call LifecycleManager.startup() before the first quote and
await LifecycleManager.shutdown() on exit.
"""

from dotenv import load_dotenv

load_dotenv()

__version__ = "0.1.0"

from routecache.cache import (  # noqa: E402
    CacheConfig,
    CacheStats,
    InMemoryRouteStore,
    RedisRouteStore,
    RouteCacheProvider,
    RouteCachingProvider,
    RouteStore,
)
from routecache.core import (  # noqa: E402
    CachedRoute,
    CachedRoutes,
    CacheMode,
    ConfigurationError,
    CurrencyAmount,
    MarshallingError,
    Protocol,
    QuoteRequest,
    QuoteResult,
    RouteCacheError,
    StoreError,
    Token,
    TradeType,
    settings,
)
from routecache.core.lifecycle import LifecycleManager  # noqa: E402
from routecache.engines import QuoteCacheOrchestrator, RouteComputer  # noqa: E402
from routecache.strategy import BucketSpec, CachingStrategy, StrategyRegistry  # noqa: E402

__all__ = [
    # Main interface
    "RouteCacheProvider",
    "RouteCachingProvider",
    "QuoteCacheOrchestrator",
    "RouteComputer",
    "StrategyRegistry",
    "CachingStrategy",
    "BucketSpec",
    "LifecycleManager",
    # Stores
    "RouteStore",
    "InMemoryRouteStore",
    "RedisRouteStore",
    "CacheConfig",
    "CacheStats",
    # Models
    "CacheMode",
    "TradeType",
    "Protocol",
    "Token",
    "CurrencyAmount",
    "CachedRoute",
    "CachedRoutes",
    "QuoteRequest",
    "QuoteResult",
    # Configuration
    "settings",
    # Exceptions
    "RouteCacheError",
    "ConfigurationError",
    "StoreError",
    "MarshallingError",
    # Version
    "__version__",
]
