"""Quote serving engines built on the route cache."""

from routecache.engines.quote import QuoteCacheOrchestrator, RouteComputer

__all__ = ["QuoteCacheOrchestrator", "RouteComputer"]
