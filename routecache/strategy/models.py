"""Configuration models for caching strategies."""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from routecache.core.defaults import DEFAULT_BLOCKS_TO_LIVE, WILDCARD
from routecache.core.models import CacheMode, TradeType, to_decimal


class BucketSpec(BaseModel):
    """A single amount threshold and the caching behavior below it.

    Attributes:
        bucket: Inclusive upper bound, in whole tokens of the amount's currency
            (e.g. 50 means 50 WETH when the amount is denominated in WETH)
        blocks_to_live: How many blocks a route cached in this bucket stays valid
        cache_mode: Caching behavior for amounts that fall in this bucket
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket: Decimal = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("bucket", "upper_bound", "bucketUpperBound"),
    )
    blocks_to_live: int = Field(
        default=DEFAULT_BLOCKS_TO_LIVE,
        ge=0,
        validation_alias=AliasChoices("blocks_to_live", "blocksToLive"),
    )
    cache_mode: CacheMode = Field(
        ..., validation_alias=AliasChoices("cache_mode", "cacheMode")
    )

    @field_validator("bucket", mode="before")
    @classmethod
    def parse_bucket(cls, v: Any) -> Decimal:
        """Parse numeric bounds without float artifacts."""
        if isinstance(v, (int, float, str, Decimal)) and not isinstance(v, bool):
            try:
                bound = to_decimal(v)
            except InvalidOperation:
                raise ValueError(f"Bucket bound must be numeric, got {v!r}") from None
            if bound.is_finite():
                return bound
        raise ValueError(f"Bucket bound must be numeric, got {v!r}")

    @field_validator("cache_mode", mode="before")
    @classmethod
    def parse_cache_mode(cls, v: Any) -> Any:
        """Accept Livemode/LIVEMODE style spellings."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def upper_bound(self) -> Decimal:
        """Inclusive upper bound of this bucket."""
        return self.bucket


class StrategyConfig(BaseModel):
    """One record of the strategy table, as written in routecache.yaml.

    ``token_in``/``token_out`` default to the two halves of ``pair``, so a
    table may key strategies by symbol alone or by token address.

    Example:
        >>> StrategyConfig(
        ...     pair="WETH/USDC",
        ...     trade_type="ExactIn",
        ...     chain_id=1,
        ...     buckets=[{"bucket": 10, "cache_mode": "livemode"}],
        ... )
    """

    model_config = ConfigDict(populate_by_name=True)

    pair: str = Field(..., description="TOKENIN/TOKENOUT, either side may be '*'")
    token_in: str | None = Field(
        default=None, validation_alias=AliasChoices("token_in", "tokenIn")
    )
    token_out: str | None = Field(
        default=None, validation_alias=AliasChoices("token_out", "tokenOut")
    )
    trade_type: TradeType = Field(
        ..., validation_alias=AliasChoices("trade_type", "tradeType")
    )
    chain_id: int = Field(..., ge=1, validation_alias=AliasChoices("chain_id", "chainId"))
    buckets: list[BucketSpec] = Field(default_factory=list)

    @field_validator("trade_type", mode="before")
    @classmethod
    def parse_trade_type(cls, v: Any) -> TradeType:
        """Accept trade type aliases."""
        return TradeType.parse(v)

    @model_validator(mode="after")
    def fill_tokens_from_pair(self) -> "StrategyConfig":
        """Validate the pair and default token identifiers to its halves."""
        parts = self.pair.split("/")
        if len(parts) != 2 or not all(part.strip() for part in parts):
            raise ValueError(f"Pair must look like 'TOKENIN/TOKENOUT', got {self.pair!r}")
        if self.token_in is None:
            self.token_in = parts[0].strip()
        if self.token_out is None:
            self.token_out = parts[1].strip()
        # A wildcard in the pair must stay a wildcard in the key
        if parts[0].strip() == WILDCARD:
            self.token_in = WILDCARD
        if parts[1].strip() == WILDCARD:
            self.token_out = WILDCARD
        return self
