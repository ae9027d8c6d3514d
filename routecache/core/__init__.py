"""Core infrastructure for the route caching engine."""

from routecache.core.config import Settings, settings
from routecache.core.exceptions import (
    ConfigurationError,
    MarshallingError,
    RouteCacheError,
    StoreError,
)
from routecache.core.models import (
    CachedRoute,
    CachedRoutes,
    CacheMode,
    CurrencyAmount,
    Protocol,
    QuoteRequest,
    QuoteResult,
    Token,
    TradeType,
)

__all__ = [
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "RouteCacheError",
    "ConfigurationError",
    "StoreError",
    "MarshallingError",
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
]
