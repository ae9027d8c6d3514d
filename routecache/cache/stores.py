"""Backing stores for cached routes.

The provider needs three things from a store: put a record under a key,
read back the most recent record for a key, and let records expire.
Purging may lag behind ``expires_at``, so the provider checks freshness
itself on every read.

Storage Options:
- InMemoryRouteStore: dict-based storage for testing/development
- RedisRouteStore: Redis-based storage for production (native TTL)

Design Notes:
- Writes to the same key are last-write-wins, with no locking
- Store failures surface as StoreError; the provider turns them into misses

Usage:
    >>> from routecache.cache.stores import InMemoryRouteStore
    >>>
    >>> store = InMemoryRouteStore()
    >>> await store.put(record.key, record)
    >>> latest = await store.get_latest(record.key)
"""

import asyncio
import logging
import math
import time
from abc import ABC, abstractmethod

from redis.asyncio import Redis
from redis.exceptions import RedisError

from routecache.cache.marshalling import marshal_record, unmarshal_record
from routecache.cache.models import CacheConfig, CacheRecord
from routecache.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class RouteStore(ABC):
    """Abstract base class for cached route storage.

    Implementations must provide async methods for writing, reading and
    deleting CacheRecord objects keyed by the composite route key.
    """

    @abstractmethod
    async def put(self, key: str, record: CacheRecord) -> None:
        """Store a record, replacing whatever the key held.

        Args:
            key: Composite route key
            record: Record to store (carries its own expires_at)

        Raises:
            StoreError: If the store cannot be reached
        """
        pass

    @abstractmethod
    async def get_latest(self, key: str) -> CacheRecord | None:
        """Retrieve the most recent record for a key.

        May return a record whose expires_at has passed if the store has
        not purged it yet.

        Args:
            key: Composite route key

        Returns:
            CacheRecord if present, None otherwise

        Raises:
            StoreError: If the store cannot be reached
            MarshallingError: If the stored bytes are corrupt
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete the record for a key (no-op if missing)."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


class InMemoryRouteStore(RouteStore):
    """In-memory route store for development and testing.

    Simple dict-based storage with lazy expiry cleanup.
    Not suitable for production (not persistent, single-process only).

    Thread Safety:
        Uses asyncio.Lock so concurrent writers serialize per process.
    """

    def __init__(self, purge_on_read: bool = True):
        """Initialize in-memory store.

        Args:
            purge_on_read: Drop expired records when read. Disable to mimic a
                store whose background purge lags behind expires_at.
        """
        self._records: dict[str, CacheRecord] = {}
        self._lock = asyncio.Lock()
        self.purge_on_read = purge_on_read

    async def put(self, key: str, record: CacheRecord) -> None:
        """Save record to memory."""
        async with self._lock:
            self._records[key] = record
        logger.debug(f"Stored route record: {key}")

    async def get_latest(self, key: str) -> CacheRecord | None:
        """Retrieve record by key."""
        async with self._lock:
            record = self._records.get(key)

            if record is None:
                return None

            if self.purge_on_read and record.is_expired():
                del self._records[key]
                logger.debug(f"Route record expired: {key}")
                return None

            return record

    async def delete(self, key: str) -> None:
        """Delete record from memory."""
        async with self._lock:
            self._records.pop(key, None)

    async def cleanup_expired(self) -> int:
        """Remove all expired records.

        Returns:
            Number of records deleted
        """
        now = time.time()
        async with self._lock:
            expired_keys = [
                key for key, record in self._records.items() if record.is_expired(now)
            ]
            for key in expired_keys:
                del self._records[key]

        if expired_keys:
            logger.info(f"Cleaned up {len(expired_keys)} expired route records")

        return len(expired_keys)

    async def count(self) -> int:
        """Number of records currently held, expired ones included."""
        async with self._lock:
            return len(self._records)


class RedisRouteStore(RouteStore):
    """Redis-based route store for production.

    Records are msgpack-encoded and written with ``SET ... EXAT`` so Redis
    purges them at ``expires_at`` on its own.

    Key Pattern:
        {prefix}:{tokenIn}/{tokenOut}/{tradeType}/{chainId}:{protocols}/{bucket}
    """

    def __init__(self, redis: "Redis[bytes]"):
        """Initialize Redis store.

        Args:
            redis: Redis async client instance (decode_responses=False)
        """
        self.redis = redis

    @classmethod
    def from_config(cls, config: CacheConfig) -> "RedisRouteStore":
        """Create a store with a fail-fast Redis client."""
        redis: Redis[bytes] = Redis.from_url(
            config.redis_url,
            socket_timeout=config.timeout,
            socket_connect_timeout=config.timeout,
            retry_on_timeout=False,
            max_connections=10,
            decode_responses=False,  # We handle bytes for msgpack
        )
        logger.info(f"Route store initialized with Redis at {config.redis_url}")
        return cls(redis)

    async def put(self, key: str, record: CacheRecord) -> None:
        """Save record to Redis with absolute expiry."""
        data = marshal_record(record)
        try:
            await self.redis.set(key, data, exat=math.ceil(record.expires_at))
        except RedisError as e:
            raise StoreError(f"Redis write failed: {e}", details={"key": key}) from e
        logger.debug(f"Stored route record in Redis: {key}")

    async def get_latest(self, key: str) -> CacheRecord | None:
        """Retrieve record from Redis."""
        try:
            data = await self.redis.get(key)
        except RedisError as e:
            raise StoreError(f"Redis read failed: {e}", details={"key": key}) from e

        if data is None:
            return None

        return unmarshal_record(data)

    async def delete(self, key: str) -> None:
        """Delete record from Redis."""
        try:
            await self.redis.delete(key)
        except RedisError as e:
            raise StoreError(f"Redis delete failed: {e}", details={"key": key}) from e

    async def close(self) -> None:
        """Close Redis connection gracefully."""
        await self.redis.aclose()
        logger.info("Route store closed")
