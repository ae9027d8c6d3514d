"""Cache configuration, statistics and record models."""

import time
from typing import Any

from pydantic import BaseModel, Field

from routecache.core.defaults import (
    DEFAULT_CIRCUIT_BREAKER_THRESHOLD,
    DEFAULT_CIRCUIT_BREAKER_TIMEOUT,
    DEFAULT_KEY_PREFIX,
    DEFAULT_STORE_TIMEOUT_SECONDS,
    DEFAULT_TTL_MINUTES,
)
from routecache.core.models import Protocol


class CacheConfig(BaseModel):
    """Configuration for the route cache.

    Attributes:
        enabled: Whether cached routes are used at all
        redis_url: Redis connection URL
        ttl_minutes: Minutes before a written route expires in the store
        key_prefix: Namespace for cached route keys
        timeout: Store operation timeout in seconds
        circuit_breaker_threshold: Failures before opening circuit
        circuit_breaker_timeout: Seconds before attempting recovery
    """

    enabled: bool = Field(default=True, description="Enable/disable route caching")
    redis_url: str = Field(
        default="redis://localhost:6379", description="Redis connection URL"
    )
    ttl_minutes: int = Field(
        default=DEFAULT_TTL_MINUTES, description="Route TTL in minutes", ge=1
    )
    key_prefix: str = Field(default=DEFAULT_KEY_PREFIX, description="Key namespace")
    timeout: float = Field(
        default=DEFAULT_STORE_TIMEOUT_SECONDS,
        description="Store operation timeout (seconds)",
        gt=0.0,
    )
    circuit_breaker_threshold: int = Field(
        default=DEFAULT_CIRCUIT_BREAKER_THRESHOLD,
        description="Failures before opening circuit",
    )
    circuit_breaker_timeout: int = Field(
        default=DEFAULT_CIRCUIT_BREAKER_TIMEOUT,
        description="Circuit breaker timeout (seconds)",
    )

    @property
    def ttl_seconds(self) -> int:
        return self.ttl_minutes * 60

    @classmethod
    def from_loaded(cls, loaded: dict[str, Any]) -> "CacheConfig":
        """Build from the dict returned by load_cache_config()."""
        circuit_breaker = loaded.get("circuit_breaker") or {}
        return cls(
            enabled=loaded.get("enabled", True),
            redis_url=loaded.get("redis_url", "redis://localhost:6379"),
            ttl_minutes=loaded.get("ttl_minutes", DEFAULT_TTL_MINUTES),
            key_prefix=loaded.get("key_prefix", DEFAULT_KEY_PREFIX),
            timeout=loaded.get("timeout", DEFAULT_STORE_TIMEOUT_SECONDS),
            circuit_breaker_threshold=circuit_breaker.get(
                "threshold", DEFAULT_CIRCUIT_BREAKER_THRESHOLD
            ),
            circuit_breaker_timeout=circuit_breaker.get(
                "timeout", DEFAULT_CIRCUIT_BREAKER_TIMEOUT
            ),
        )


class CacheStats(BaseModel):
    """Cache performance statistics.

    Attributes:
        hits: Number of reads that returned a usable route
        misses: Number of reads with nothing usable (missing, stale, mismatch)
        errors: Number of store or payload failures
        writes: Number of routes written
        skipped_writes: Writes skipped because no strategy or bucket applied
        hit_rate: Cache hit rate (hits / total reads)
        circuit_state: Current circuit breaker state
    """

    hits: int = Field(default=0, description="Cache hits")
    misses: int = Field(default=0, description="Cache misses")
    errors: int = Field(default=0, description="Cache errors")
    writes: int = Field(default=0, description="Routes written")
    skipped_writes: int = Field(default=0, description="Writes outside cached ranges")
    hit_rate: float = Field(default=0.0, description="Hit rate percentage")
    circuit_state: str = Field(
        default="closed", description="Circuit breaker state (closed/open/half_open)"
    )

    def update_hit_rate(self) -> None:
        """Recalculate hit rate based on current stats."""
        total = self.hits + self.misses
        self.hit_rate = (self.hits / total * 100) if total > 0 else 0.0


class CacheRecord(BaseModel):
    """What is persisted for one composite key.

    Attributes:
        key: Composite key (chain, pair, trade type, protocols, bucket)
        payload: Marshalled CachedRoutes
        block_number: Block the routes were computed at
        protocols: Protocols the routes were computed with
        bucket: Bucket bound, rendered as a string
        expires_at: Unix seconds after which the record is stale
        created_at: Unix seconds when the record was written
    """

    key: str
    payload: bytes
    block_number: int = Field(..., ge=0)
    protocols: list[Protocol] = Field(default_factory=list)
    bucket: str
    expires_at: float
    created_at: float = Field(default_factory=time.time)

    def is_expired(self, now: float | None = None) -> bool:
        """Check freshness independently of the store's own purge."""
        current = time.time() if now is None else now
        return current >= self.expires_at
