"""Bucketing of trade amounts for one pair, trade type and chain."""

from bisect import bisect_left
from collections.abc import Sequence
from decimal import Decimal

from routecache.core.defaults import WILDCARD
from routecache.core.exceptions import ConfigurationError
from routecache.core.models import CacheMode, CurrencyAmount, TradeType, to_decimal
from routecache.strategy.keys import PairTradeTypeChainId
from routecache.strategy.models import BucketSpec, StrategyConfig

BucketRange = tuple[Decimal, Decimal | None]


class CachingStrategy:
    """Strategy for categorizing cached routes into buckets by amount traded.

    Buckets approximate a histogram of commonly requested trade sizes so a
    few cache entries cover most live requests. Past the largest bucket
    amounts are too sparse to produce hits, so they are never cached.

    Bucket bounds are sorted numerically at construction and never change
    afterwards. Lookups rely on that ordering.

    Example:
        >>> strategy = CachingStrategy(
        ...     pair="WETH/USDC",
        ...     trade_type=TradeType.EXACT_INPUT,
        ...     chain_id=1,
        ...     buckets=[
        ...         BucketSpec(bucket=10, cache_mode=CacheMode.LIVEMODE),
        ...         BucketSpec(bucket=100, cache_mode=CacheMode.TAPCOMPARE),
        ...     ],
        ... )
        >>> strategy.resolve_bucket(5).cache_mode
        <CacheMode.LIVEMODE: 'livemode'>
        >>> strategy.resolve_bucket(500) is None
        True
    """

    def __init__(
        self,
        pair: str,
        trade_type: TradeType | str,
        chain_id: int,
        buckets: Sequence[BucketSpec],
        token_in: str | None = None,
        token_out: str | None = None,
        require_sorted: bool = False,
    ):
        """Initialize strategy.

        Args:
            pair: Readable pair ("WETH/USDC", "WETH/*")
            trade_type: ExactIn or ExactOut
            chain_id: Chain identifier
            buckets: Bucket specs, in any order unless require_sorted
            token_in: Input token identifier (default: left half of pair)
            token_out: Output token identifier (default: right half of pair)
            require_sorted: Reject bucket lists not already in ascending order

        Raises:
            ConfigurationError: On duplicate bounds, or unsorted bounds when
                require_sorted is set
        """
        parts = pair.split("/")
        if len(parts) != 2 or not all(part.strip() for part in parts):
            raise ConfigurationError(
                f"Pair must look like 'TOKENIN/TOKENOUT', got {pair!r}",
                details={"pair": pair},
            )

        parts = [part.strip() for part in parts]
        self.pair = "/".join(parts)
        self.trade_type = TradeType.parse(trade_type)
        self.chain_id = chain_id
        self.key = PairTradeTypeChainId(
            token_in=token_in or parts[0],
            token_out=token_out or parts[1],
            trade_type=self.trade_type,
            chain_id=chain_id,
        )

        bounds = [spec.bucket for spec in buckets]
        if len(set(bounds)) != len(bounds):
            raise ConfigurationError(
                f"Duplicate bucket bounds in strategy {self.readable_pair_trade_type_chain_id()}",
                details={"buckets": [str(b) for b in bounds]},
            )

        # Decimal comparison is numeric, so "100" never sorts before "50"
        ordered = sorted(bounds)
        if require_sorted and bounds != ordered:
            raise ConfigurationError(
                f"Buckets must be in ascending order in strategy {self.readable_pair_trade_type_chain_id()}",
                details={"buckets": [str(b) for b in bounds]},
            )

        self._buckets: tuple[Decimal, ...] = tuple(ordered)
        self._buckets_map: dict[Decimal, BucketSpec] = {spec.bucket: spec for spec in buckets}

        # Used for deciding whether Tapcompare metrics are worth reporting
        self.supports_tapcompare = any(
            spec.cache_mode == CacheMode.TAPCOMPARE for spec in buckets
        )

    @classmethod
    def from_config(cls, config: StrategyConfig, require_sorted: bool = False) -> "CachingStrategy":
        """Build a strategy from a validated configuration record."""
        return cls(
            pair=config.pair,
            trade_type=config.trade_type,
            chain_id=config.chain_id,
            buckets=config.buckets,
            token_in=config.token_in,
            token_out=config.token_out,
            require_sorted=require_sorted,
        )

    @property
    def buckets(self) -> tuple[Decimal, ...]:
        """Bucket upper bounds in ascending order."""
        return self._buckets

    @property
    def bucket_specs(self) -> tuple[BucketSpec, ...]:
        """Bucket specs in ascending order of their bound."""
        return tuple(self._buckets_map[bound] for bound in self._buckets)

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in (self.key.token_in, self.key.token_out)

    @property
    def lookup_keys(self) -> tuple[PairTradeTypeChainId, ...]:
        """Keys this strategy answers to: configured identifiers, then pair symbols."""
        token_in, token_out = self.pair.split("/")
        by_symbol = PairTradeTypeChainId(
            token_in=token_in,
            token_out=token_out,
            trade_type=self.trade_type,
            chain_id=self.chain_id,
        )
        return (self.key,) if by_symbol == self.key else (self.key, by_symbol)

    def readable_pair_trade_type_chain_id(self) -> str:
        """Readable identifier for logs and dashboards, e.g. WETH/USDC/ExactIn/1."""
        return f"{self.pair.upper()}/{self.trade_type.value}/{self.chain_id}"

    def bucket_ranges(self) -> list[BucketRange]:
        """Ranges covered by each bucket, for reporting only.

        Returns:
            ``[(0, b0), (b0, b1), ..., (b_last, None)]`` where None means
            unbounded. Empty when the strategy has no buckets.
        """
        if not self._buckets:
            return []

        lowers = (Decimal(0), *self._buckets)
        uppers: tuple[Decimal | None, ...] = (*self._buckets, None)
        return list(zip(lowers, uppers))

    def resolve_bucket(self, amount: CurrencyAmount | Decimal | int | float | str) -> BucketSpec | None:
        """Find the bucket whose cached routes serve this amount.

        The first bucket with ``bound >= amount`` wins, so an amount equal
        to a bound belongs to that bucket.

        e.g. buckets = [10, 50, 100]
            amount = 0.1 -> 10
            amount = 10 -> 10
            amount = 10.01 -> 50
            amount = 100.01 -> None (not cached)

        Args:
            amount: Amount in whole tokens, or a CurrencyAmount

        Returns:
            Matching BucketSpec, or None if the amount exceeds every bucket
        """
        value = amount.exact if isinstance(amount, CurrencyAmount) else to_decimal(amount)

        index = bisect_left(self._buckets, value)
        if index == len(self._buckets):
            return None
        return self._buckets_map[self._buckets[index]]

    def __repr__(self) -> str:
        return (
            f"CachingStrategy(pair={self.pair!r}, trade_type={self.trade_type.value!r}, "
            f"chain_id={self.chain_id}, buckets={[str(b) for b in self._buckets]})"
        )
