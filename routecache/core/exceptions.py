"""Exception hierarchy for the route caching engine.

Only ConfigurationError is allowed to escape the engine, and only while
strategies are being loaded. Store and marshalling failures are caught
by the provider and degrade to a cache miss or a skipped write.
"""

from typing import Any


class RouteCacheError(Exception):
    """Base exception for all routecache errors."""

    code: str = "ROUTECACHE_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(RouteCacheError):
    """Strategy table or settings are invalid (unsorted buckets, ambiguous wildcards)."""

    code: str = "CONFIGURATION_ERROR"


class StoreError(RouteCacheError):
    """Backing store operation failed (connection, timeout, protocol)."""

    code: str = "STORE_ERROR"


class MarshallingError(RouteCacheError):
    """Cached payload could not be encoded or decoded."""

    code: str = "MARSHALLING_ERROR"
