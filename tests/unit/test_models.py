"""Unit tests for core and strategy data models."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from routecache.core.models import (
    CacheMode,
    CurrencyAmount,
    Protocol,
    QuoteRequest,
    TradeType,
    to_decimal,
)
from routecache.strategy import BucketSpec, StrategyConfig


class TestTradeType:
    @pytest.mark.parametrize(
        "value", ["ExactIn", "exact_in", "EXACT_INPUT", "exactIn", "0", 0]
    )
    def test_exact_in_aliases(self, value):
        assert TradeType.parse(value) == TradeType.EXACT_INPUT

    @pytest.mark.parametrize("value", ["ExactOut", "exact-out", "EXACT_OUTPUT", "1"])
    def test_exact_out_aliases(self, value):
        assert TradeType.parse(value) == TradeType.EXACT_OUTPUT

    def test_unknown_trade_type(self):
        with pytest.raises(ValueError, match="Unknown trade type"):
            TradeType.parse("ExactSideways")


class TestAmounts:
    def test_from_exact_scales_by_decimals(self, usdc):
        amount = CurrencyAmount.from_exact(usdc, "1.5")

        assert amount.quotient == 1_500_000
        assert amount.exact == Decimal("1.5")
        assert amount.to_exact() == "1.5"

    def test_from_exact_truncates_below_smallest_unit(self, usdc):
        assert CurrencyAmount.from_exact(usdc, "0.0000019").quotient == 1

    def test_large_amounts_keep_precision(self, weth):
        amount = CurrencyAmount.from_exact(weth, "123456789.123456789123456789")
        assert amount.quotient == 123456789123456789123456789
        assert amount.to_exact() == "123456789.123456789123456789"

    def test_to_decimal_float_uses_shortest_repr(self):
        assert to_decimal(10.01) == Decimal("10.01")

    def test_to_decimal_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)


class TestCachedRoutes:
    def test_not_expired_within_blocks_to_live(self, make_cached_routes):
        routes = make_cached_routes(block_number=100).model_copy(update={"blocks_to_live": 2})

        assert routes.not_expired(102)
        assert not routes.not_expired(103)

    def test_optimistic_allows_one_extra_block(self, make_cached_routes):
        routes = make_cached_routes(block_number=100).model_copy(update={"blocks_to_live": 1})

        assert not routes.not_expired(102)
        assert routes.not_expired(102, optimistic=True)

    def test_trade_type_alias_accepted(self, make_cached_routes):
        payload = make_cached_routes().model_dump(mode="json")
        payload["trade_type"] = "exact_in"

        assert make_cached_routes().model_validate(payload).trade_type == TradeType.EXACT_INPUT


class TestQuoteRequest:
    def test_exact_in_direction(self, weth, usdc):
        request = QuoteRequest(
            chain_id=1,
            amount=CurrencyAmount.from_exact(weth, 1),
            quote_token=usdc,
            trade_type="ExactIn",
        )
        assert request.token_in == weth
        assert request.token_out == usdc

    def test_exact_out_direction(self, weth, usdc):
        request = QuoteRequest(
            chain_id=1,
            amount=CurrencyAmount.from_exact(usdc, 1000),
            quote_token=weth,
            trade_type=TradeType.EXACT_OUTPUT,
            protocols=[Protocol.V3],
        )
        assert request.token_in == weth
        assert request.token_out == usdc


class TestBucketSpec:
    def test_camel_case_aliases(self):
        spec = BucketSpec.model_validate(
            {"bucketUpperBound": "50", "cacheMode": "Livemode", "blocksToLive": 2}
        )

        assert spec.bucket == Decimal(50)
        assert spec.upper_bound == Decimal(50)
        assert spec.cache_mode == CacheMode.LIVEMODE
        assert spec.blocks_to_live == 2

    def test_default_blocks_to_live(self):
        assert BucketSpec(bucket=1, cache_mode="TAPCOMPARE").blocks_to_live == 1

    @pytest.mark.parametrize("bound", [0, -1, True, "ten"])
    def test_invalid_bounds(self, bound):
        with pytest.raises(ValidationError):
            BucketSpec(bucket=bound, cache_mode="livemode")

    def test_unknown_cache_mode(self):
        with pytest.raises(ValidationError):
            BucketSpec(bucket=1, cache_mode="brightmode")


class TestStrategyConfig:
    def test_tokens_default_to_pair_halves(self):
        config = StrategyConfig(pair="WETH/USDC", trade_type="ExactIn", chain_id=1)
        assert (config.token_in, config.token_out) == ("WETH", "USDC")

    def test_wildcard_half_stays_wildcard(self):
        config = StrategyConfig(
            pair="WETH/*", token_out="0xabc", trade_type="ExactIn", chain_id=1
        )
        assert config.token_out == "*"

    def test_malformed_pair(self):
        with pytest.raises(ValidationError):
            StrategyConfig(pair="WETH-USDC", trade_type="ExactIn", chain_id=1)
