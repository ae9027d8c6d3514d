"""Unit tests for route stores.

Tests the InMemoryRouteStore directly and the RedisRouteStore with a
mocked redis.asyncio client.
"""

import math
import time
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError, TimeoutError

from routecache.cache import CacheConfig, CacheRecord, InMemoryRouteStore, RedisRouteStore
from routecache.cache.marshalling import marshal_record
from routecache.core.exceptions import MarshallingError, StoreError
from routecache.core.models import Protocol


@pytest.fixture
def sample_record():
    """Create a record that expires in ten minutes."""
    return CacheRecord(
        key="routecache:routes:weth/usdc/ExactIn/1:V3/10",
        payload=b"\x81\xa6routes\x90",
        block_number=100,
        protocols=[Protocol.V3],
        bucket="10",
        expires_at=time.time() + 600,
    )


class TestInMemoryRouteStore:
    """Tests for InMemoryRouteStore."""

    async def test_put_and_get(self, sample_record):
        store = InMemoryRouteStore()

        await store.put(sample_record.key, sample_record)

        assert await store.get_latest(sample_record.key) == sample_record

    async def test_missing_key(self):
        store = InMemoryRouteStore()
        assert await store.get_latest("nope") is None

    async def test_last_write_wins(self, sample_record):
        store = InMemoryRouteStore()
        newer = sample_record.model_copy(update={"block_number": 101})

        await store.put(sample_record.key, sample_record)
        await store.put(sample_record.key, newer)

        assert (await store.get_latest(sample_record.key)).block_number == 101

    async def test_delete(self, sample_record):
        store = InMemoryRouteStore()
        await store.put(sample_record.key, sample_record)

        await store.delete(sample_record.key)
        await store.delete(sample_record.key)

        assert await store.count() == 0

    async def test_expired_record_purged_on_read(self, sample_record):
        store = InMemoryRouteStore()
        expired = sample_record.model_copy(update={"expires_at": time.time() - 1})
        await store.put(expired.key, expired)

        assert await store.get_latest(expired.key) is None
        assert await store.count() == 0

    async def test_lagging_purge_returns_expired_record(self, sample_record):
        store = InMemoryRouteStore(purge_on_read=False)
        expired = sample_record.model_copy(update={"expires_at": time.time() - 1})
        await store.put(expired.key, expired)

        record = await store.get_latest(expired.key)

        assert record is not None
        assert record.is_expired()

    async def test_cleanup_expired(self, sample_record):
        store = InMemoryRouteStore(purge_on_read=False)
        expired = sample_record.model_copy(
            update={"key": "expired", "expires_at": time.time() - 1}
        )
        await store.put(sample_record.key, sample_record)
        await store.put(expired.key, expired)

        assert await store.cleanup_expired() == 1
        assert await store.count() == 1


class TestRedisRouteStore:
    """Tests for RedisRouteStore."""

    @pytest.fixture
    def mock_redis(self):
        """Create a mock Redis client."""
        redis = AsyncMock()
        redis.set = AsyncMock()
        redis.get = AsyncMock(return_value=None)
        redis.delete = AsyncMock()
        redis.aclose = AsyncMock()
        return redis

    @pytest.fixture
    def store(self, mock_redis):
        return RedisRouteStore(mock_redis)

    async def test_put_sets_absolute_expiry(self, store, mock_redis, sample_record):
        await store.put(sample_record.key, sample_record)

        mock_redis.set.assert_called_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == sample_record.key
        assert args[1] == marshal_record(sample_record)
        assert kwargs["exat"] == math.ceil(sample_record.expires_at)

    async def test_get_latest_decodes_record(self, store, mock_redis, sample_record):
        mock_redis.get = AsyncMock(return_value=marshal_record(sample_record))

        record = await store.get_latest(sample_record.key)

        assert record == sample_record
        assert isinstance(record.payload, bytes)

    async def test_get_latest_missing(self, store):
        assert await store.get_latest("nope") is None

    async def test_corrupt_record_raises_marshalling_error(self, store, mock_redis):
        mock_redis.get = AsyncMock(return_value=b"\xc1")

        with pytest.raises(MarshallingError):
            await store.get_latest("corrupt")

    async def test_connection_error_becomes_store_error(self, store, mock_redis):
        mock_redis.get = AsyncMock(side_effect=ConnectionError("Connection refused"))

        with pytest.raises(StoreError) as exc_info:
            await store.get_latest("key")

        assert exc_info.value.code == "STORE_ERROR"
        assert exc_info.value.details == {"key": "key"}

    async def test_timeout_on_write_becomes_store_error(self, store, mock_redis, sample_record):
        mock_redis.set = AsyncMock(side_effect=TimeoutError("Operation timed out"))

        with pytest.raises(StoreError):
            await store.put(sample_record.key, sample_record)

    async def test_delete(self, store, mock_redis):
        await store.delete("key")
        mock_redis.delete.assert_called_once_with("key")

    async def test_close(self, store, mock_redis):
        await store.close()
        mock_redis.aclose.assert_called_once()

    def test_from_config_fails_fast(self):
        config = CacheConfig(redis_url="redis://cache:6379", timeout=0.1)

        with patch("routecache.cache.stores.Redis") as mock_redis_cls:
            store = RedisRouteStore.from_config(config)

        mock_redis_cls.from_url.assert_called_once()
        args, kwargs = mock_redis_cls.from_url.call_args
        assert args[0] == "redis://cache:6379"
        assert kwargs["socket_timeout"] == 0.1
        assert kwargs["decode_responses"] is False
        assert store.redis is mock_redis_cls.from_url.return_value
