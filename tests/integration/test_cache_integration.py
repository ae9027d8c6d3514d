"""Integration tests for the route cache.

The end-to-end tests run the orchestrator over the in-memory store. The
Redis tests need a running Redis instance at redis://localhost:6379 and
are skipped when it is unavailable.
"""

import uuid

import pytest
from redis.asyncio import Redis

from routecache.cache import CacheConfig, InMemoryRouteStore, RedisRouteStore, RouteCacheProvider
from routecache.core.models import CacheMode, CurrencyAmount, Protocol, QuoteRequest, TradeType
from routecache.engines import QuoteCacheOrchestrator, RouteComputer

pytestmark = pytest.mark.integration


class PriceRouter(RouteComputer):
    """Quotes 3000 USDC per WETH live and 2999 from cached routes."""

    def __init__(self, make_quote, make_cached_routes):
        self.make_quote = make_quote
        self.make_cached_routes = make_cached_routes
        self.live_calls = 0

    async def compute_live(self, request):
        self.live_calls += 1
        amount = request.amount.exact
        return self.make_quote(
            str(amount * 3000),
            block_number=request.block_number,
            cached_routes=self.make_cached_routes(
                block_number=request.block_number,
                protocols=list(request.protocols),
                amount=request.amount.to_exact(),
            ),
        )

    async def quote_cached(self, request, cached_routes):
        return self.make_quote(str(request.amount.exact * 2999), block_number=request.block_number)


@pytest.fixture
async def redis_available():
    """Check if Redis is available for testing."""
    try:
        redis = Redis.from_url("redis://localhost:6379", socket_connect_timeout=1)
        await redis.ping()
        await redis.aclose()
        return True
    except Exception:
        pytest.skip("Redis not available at localhost:6379")


@pytest.fixture
async def redis_provider(redis_available, registry):
    """Provider over Redis DB 15 with a per-test key prefix."""
    config = CacheConfig(
        redis_url="redis://localhost:6379/15",
        key_prefix=f"routecache-test:{uuid.uuid4().hex}",
        ttl_minutes=1,
        timeout=1.0,
    )
    store = RedisRouteStore.from_config(config)
    provider = RouteCacheProvider(registry, store, config)

    yield provider

    keys = [key async for key in store.redis.scan_iter(match=f"{config.key_prefix}:*")]
    if keys:
        await store.redis.delete(*keys)
    await provider.close()


@pytest.fixture
def request_for(weth, usdc):
    def _request(amount: str, block_number: int) -> QuoteRequest:
        return QuoteRequest(
            chain_id=1,
            amount=CurrencyAmount.from_exact(weth, amount),
            quote_token=usdc,
            trade_type=TradeType.EXACT_INPUT,
            protocols=[Protocol.V3],
            block_number=block_number,
        )

    return _request


class TestEndToEnd:
    """Quote flow for each cache mode over the in-memory store."""

    @pytest.fixture
    def router(self, make_quote, make_cached_routes):
        return PriceRouter(make_quote, make_cached_routes)

    @pytest.fixture
    def orchestrator(self, provider, router):
        return QuoteCacheOrchestrator(provider, router, tracked_pairs={})

    async def test_livemode_serves_from_cache_until_stale(
        self, orchestrator, router, store, request_for
    ):
        first = await orchestrator.get_quote(request_for("5", 100))
        await orchestrator.drain()
        second = await orchestrator.get_quote(request_for("7", 101))
        third = await orchestrator.get_quote(request_for("7", 102))
        await orchestrator.drain()

        assert not first.served_from_cache
        assert second.served_from_cache
        assert not third.served_from_cache
        assert router.live_calls == 2
        assert await store.count() == 1

    async def test_tapcompare_always_serves_live(self, orchestrator, router, request_for):
        for block in (100, 101, 102):
            result = await orchestrator.get_quote(request_for("50", block))
            await orchestrator.drain()
            assert not result.served_from_cache

        assert router.live_calls == 3

    async def test_darkmode_bypasses_cache(self, orchestrator, store, request_for):
        await orchestrator.get_quote(request_for("500", 100))
        await orchestrator.drain()

        assert await store.count() == 0

    async def test_wider_protocol_routes_serve_narrower_requests(
        self, provider, make_cached_routes, weth_amount, usdc
    ):
        await provider.set_cached_route(
            make_cached_routes(protocols=[Protocol.V2, Protocol.V3, Protocol.MIXED]),
            weth_amount(5),
        )

        for protocols in ([Protocol.V2], [Protocol.V3, Protocol.MIXED]):
            cached = await provider.get_cached_route(
                1, weth_amount(5), usdc, TradeType.EXACT_INPUT, protocols
            )
            assert cached is not None

    async def test_default_table(self, weth, usdc, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        provider = RouteCacheProvider.from_config_file(store=InMemoryRouteStore())
        amount = CurrencyAmount.from_exact(weth, 1)

        mode = await provider.get_cache_mode(1, amount, usdc, TradeType.EXACT_INPUT, [])

        assert mode == CacheMode.TAPCOMPARE


class TestRedisRoundTrip:
    """Provider reads and writes against a real Redis."""

    async def test_write_then_read(self, redis_provider, make_cached_routes, weth_amount, usdc):
        routes = make_cached_routes(block_number=200)

        assert await redis_provider.set_cached_route(routes, weth_amount(5)) is True
        cached = await redis_provider.get_cached_route(
            1, weth_amount(5), usdc, TradeType.EXACT_INPUT, [Protocol.V3], current_block=200
        )

        assert cached is not None
        assert cached.block_number == 200
        assert cached.blocks_to_live == 1

    async def test_newer_block_replaces_older(
        self, redis_provider, make_cached_routes, weth_amount, usdc
    ):
        await redis_provider.set_cached_route(make_cached_routes(block_number=200), weth_amount(5))
        await redis_provider.set_cached_route(make_cached_routes(block_number=201), weth_amount(5))

        cached = await redis_provider.get_cached_route(
            1, weth_amount(5), usdc, TradeType.EXACT_INPUT, [Protocol.V3]
        )

        assert cached.block_number == 201

    async def test_records_expire_in_redis(self, redis_provider, make_cached_routes, weth_amount):
        await redis_provider.set_cached_route(make_cached_routes(), weth_amount(5))

        redis = redis_provider.store.redis
        keys = [key async for key in redis.scan_iter(match=f"{redis_provider.config.key_prefix}:*")]

        assert len(keys) == 1
        assert 0 < await redis.ttl(keys[0]) <= 61
