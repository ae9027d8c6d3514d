"""Pytest configuration and fixtures for routecache tests."""

from decimal import Decimal

import pytest

from routecache.cache import CacheConfig, InMemoryRouteStore, RouteCacheProvider
from routecache.core.models import (
    CachedRoute,
    CachedRoutes,
    CurrencyAmount,
    Protocol,
    QuoteResult,
    Token,
    TradeType,
)
from routecache.strategy import StrategyRegistry

# =============================================================================
# SHARED TOKEN FIXTURES
# =============================================================================

WETH = Token(
    chain_id=1,
    address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    symbol="WETH",
    decimals=18,
)
USDC = Token(
    chain_id=1,
    address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    symbol="USDC",
    decimals=6,
)
DAI = Token(
    chain_id=1,
    address="0x6B175474E89094C44Da98b954EedeAC495271d0F",
    symbol="DAI",
    decimals=18,
)


@pytest.fixture
def weth() -> Token:
    return WETH


@pytest.fixture
def usdc() -> Token:
    return USDC


@pytest.fixture
def dai() -> Token:
    return DAI


# =============================================================================
# STRATEGY FIXTURES
# =============================================================================


@pytest.fixture
def strategy_records():
    """WETH/USDC ExactIn on mainnet: <=10 Livemode, <=100 Tapcompare."""
    return [
        {
            "pair": "WETH/USDC",
            "trade_type": "ExactIn",
            "chain_id": 1,
            "buckets": [
                {"bucket": 10, "blocks_to_live": 1, "cache_mode": "livemode"},
                {"bucket": 100, "blocks_to_live": 2, "cache_mode": "tapcompare"},
            ],
        }
    ]


@pytest.fixture
def registry(strategy_records) -> StrategyRegistry:
    return StrategyRegistry.from_config(strategy_records)


# =============================================================================
# CACHE FIXTURES
# =============================================================================


@pytest.fixture
def store() -> InMemoryRouteStore:
    return InMemoryRouteStore()


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(
        enabled=True,
        ttl_minutes=20,
        circuit_breaker_threshold=3,
        circuit_breaker_timeout=300,
    )


@pytest.fixture
def provider(registry, store, cache_config) -> RouteCacheProvider:
    return RouteCacheProvider(registry=registry, store=store, config=cache_config)


@pytest.fixture
def make_cached_routes():
    """Factory for WETH -> USDC cached routes."""

    def _make(
        block_number: int = 100,
        protocols: list[Protocol] | None = None,
        amount: str = "5",
        token_in: Token = WETH,
        token_out: Token = USDC,
        trade_type: TradeType = TradeType.EXACT_INPUT,
    ) -> CachedRoutes:
        return CachedRoutes(
            routes=[
                CachedRoute(
                    route={"pools": ["0x88e6a0c2ddd26feeb64f039a2c41296fcb3f5640"], "fee": 500},
                    percent=100,
                )
            ],
            chain_id=1,
            token_in=token_in,
            token_out=token_out,
            protocols_covered=protocols if protocols is not None else [Protocol.V3],
            block_number=block_number,
            trade_type=trade_type,
            original_amount=amount,
        )

    return _make


@pytest.fixture
def weth_amount():
    """Factory for whole-token WETH amounts."""

    def _amount(value: str | int) -> CurrencyAmount:
        return CurrencyAmount.from_exact(WETH, value)

    return _amount


@pytest.fixture
def make_quote():
    def _quote(
        quote: str,
        gas_adjusted: str | None = None,
        block_number: int = 100,
        cached_routes: CachedRoutes | None = None,
    ) -> QuoteResult:
        return QuoteResult(
            quote=Decimal(quote),
            quote_gas_adjusted=Decimal(gas_adjusted or quote),
            block_number=block_number,
            cached_routes=cached_routes,
        )

    return _quote
