"""Route cache provider with circuit breaker pattern.

The provider is the router-facing side of the engine. The router asks it
for a cache mode before doing any work, then reads and writes cached
routes only when that mode calls for it.

Design Philosophy:
    The cache is an OPTIONAL optimization. Store failures, corrupt payloads
    and stale records all degrade to a miss (or a skipped write) and the
    router computes live routes instead.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from itertools import combinations
from pathlib import Path

from routecache.cache.marshalling import marshal_cached_routes, unmarshal_cached_routes
from routecache.cache.models import CacheConfig, CacheRecord, CacheStats
from routecache.cache.stores import RedisRouteStore, RouteStore
from routecache.core.config import load_cache_config
from routecache.core.exceptions import MarshallingError, StoreError
from routecache.core.models import (
    CacheMode,
    CachedRoutes,
    CurrencyAmount,
    Protocol,
    Token,
    TradeType,
)
from routecache.observability.logging import LogEvents, get_logger
from routecache.observability.metrics import (
    record_cache_error,
    record_cache_write,
    record_cached_route_lookup,
)
from routecache.observability.tracing import trace_operation
from routecache.strategy.keys import (
    PairTradeTypeChainId,
    ProtocolsBucketKey,
    format_bound,
    route_cache_key,
)
from routecache.strategy.models import BucketSpec
from routecache.strategy.registry import StrategyRegistry
from routecache.strategy.strategy import CachingStrategy

logger = get_logger(__name__)

ProtocolSet = frozenset[Protocol]


class CacheCircuitBreaker:
    """Circuit breaker for store failures with automatic recovery.

    States:
        closed: Normal operation, store requests allowed
        open: Circuit tripped, store bypassed entirely
        half_open: Testing recovery, requests allowed until one fails

    Pattern:
        closed -> (failures >= threshold) -> open
        open -> (timeout expired) -> half_open
        half_open -> (success) -> closed
        half_open -> (failure) -> open
    """

    def __init__(self, failure_threshold: int = 5, timeout: int = 300):
        """Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            timeout: Seconds before attempting recovery from open state
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.state = "closed"  # closed, open, half_open
        self.last_failure_time: float | None = None

    def on_success(self) -> None:
        """Record successful operation."""
        if self.state == "half_open":
            logger.info(LogEvents.CIRCUIT_BREAKER_CLOSED)
            self.state = "closed"
        self.failure_count = 0

    def on_failure(self) -> None:
        """Record failed operation and potentially open circuit."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == "half_open" or self.failure_count >= self.failure_threshold:
            if self.state != "open":
                logger.warning(
                    LogEvents.CIRCUIT_BREAKER_OPENED, failures=self.failure_count
                )
            self.state = "open"

    def can_attempt(self) -> bool:
        """Check if a store operation should be attempted.

        Returns:
            True if operation should proceed, False if circuit open
        """
        if self.state == "closed":
            return True

        if self.state == "open":
            if (
                self.last_failure_time
                and time.time() - self.last_failure_time > self.timeout
            ):
                logger.info(LogEvents.CIRCUIT_BREAKER_HALF_OPEN)
                self.state = "half_open"
                return True
            return False

        return True

    def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        self.state = "closed"
        self.failure_count = 0
        self.last_failure_time = None


def _protocol_set(protocols: Iterable[Protocol]) -> ProtocolSet:
    """Requested protocols as a set; empty means every protocol."""
    requested = frozenset(protocols)
    return requested or frozenset(Protocol)


def _protocol_supersets(requested: ProtocolSet) -> list[ProtocolSet]:
    """Every protocol set that covers ``requested``, smallest first."""
    extra = [p for p in Protocol if p not in requested]
    return [
        requested | frozenset(added)
        for size in range(len(extra) + 1)
        for added in combinations(extra, size)
    ]


class RouteCachingProvider(ABC):
    """Contract between the router and a route cache.

    The router calls ``get_cache_mode`` first and only reads or writes
    cached routes when the mode warrants it. Implementations provide the
    storage-specific hooks; freshness against the current block and the
    blocks_to_live stamping live here so every implementation gets them.
    """

    @abstractmethod
    async def get_cache_mode(
        self,
        chain_id: int,
        amount: CurrencyAmount,
        quote_token: Token,
        trade_type: TradeType,
        protocols: Sequence[Protocol],
    ) -> CacheMode:
        """Decide how routes for this request are cached (no side effects)."""

    async def get_cached_route(
        self,
        chain_id: int,
        amount: CurrencyAmount,
        quote_token: Token,
        trade_type: TradeType,
        protocols: Sequence[Protocol],
        current_block: int | None = None,
        optimistic: bool = False,
    ) -> CachedRoutes | None:
        """Read cached routes for a request.

        Args:
            chain_id: Chain identifier
            amount: Requested amount (input for ExactIn, output for ExactOut)
            quote_token: The other token of the trade
            trade_type: ExactIn or ExactOut
            protocols: Protocols the caller wants considered (empty = all)
            current_block: Latest block, used to drop routes past blocks_to_live
            optimistic: Allow one extra block of staleness

        Returns:
            CachedRoutes on a fresh hit, None otherwise (never raises)
        """
        cached_routes = await self._get_cached_route(
            chain_id, amount, quote_token, trade_type, protocols
        )

        if cached_routes is None or current_block is None:
            return cached_routes

        if not cached_routes.not_expired(current_block, optimistic):
            logger.debug(
                LogEvents.CACHE_MISS,
                reason="blocks_to_live_elapsed",
                block_number=cached_routes.block_number,
                current_block=current_block,
            )
            return None

        return cached_routes

    async def set_cached_route(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> bool:
        """Write routes computed live, stamped with their blocks_to_live.

        Returns:
            True if written, False if skipped or failed (never raises)
        """
        blocks_to_live = await self.get_blocks_to_live(cached_routes, amount)
        stamped = cached_routes.model_copy(update={"blocks_to_live": blocks_to_live})
        return await self._set_cached_route(stamped, amount)

    async def get_blocks_to_live(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> int:
        """Blocks for which routes written for this amount stay valid."""
        return await self._get_blocks_to_live(cached_routes, amount)

    @abstractmethod
    async def _get_cached_route(
        self,
        chain_id: int,
        amount: CurrencyAmount,
        quote_token: Token,
        trade_type: TradeType,
        protocols: Sequence[Protocol],
    ) -> CachedRoutes | None:
        pass

    @abstractmethod
    async def _set_cached_route(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> bool:
        pass

    @abstractmethod
    async def _get_blocks_to_live(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> int:
        pass


class RouteCacheProvider(RouteCachingProvider):
    """Route cache backed by a RouteStore and a StrategyRegistry.

    Features:
        - Cache mode per (pair, trade type, chain, amount bucket)
        - Protocol superset matching on read
        - Freshness checked on read, independently of store-side expiry
        - Circuit breaker for automatic failure recovery
        - Performance statistics tracking

    Example:
        >>> provider = RouteCacheProvider(registry, InMemoryRouteStore())
        >>> mode = await provider.get_cache_mode(1, amount, usdc, TradeType.EXACT_INPUT, [])
        >>> if mode == CacheMode.LIVEMODE:
        ...     cached = await provider.get_cached_route(1, amount, usdc, TradeType.EXACT_INPUT, [])
    """

    def __init__(
        self,
        registry: StrategyRegistry,
        store: RouteStore,
        config: CacheConfig | None = None,
    ):
        """Initialize provider.

        Args:
            registry: Strategy table, shared read-only
            store: Backing store for cache records
            config: Cache configuration (defaults from CacheConfig)
        """
        self.registry = registry
        self.store = store
        self.config = config or CacheConfig()
        self.circuit_breaker = CacheCircuitBreaker(
            failure_threshold=self.config.circuit_breaker_threshold,
            timeout=self.config.circuit_breaker_timeout,
        )
        self.stats = CacheStats()

        if self.config.enabled:
            logger.info(
                "route_cache_provider_initialized",
                strategies=len(registry),
                ttl_minutes=self.config.ttl_minutes,
            )
        else:
            logger.info("route_cache_provider_disabled")

    @classmethod
    def from_config_file(
        cls, path: str | Path | None = None, store: RouteStore | None = None
    ) -> "RouteCacheProvider":
        """Build a provider from routecache.yaml (Redis store unless given one)."""
        config = CacheConfig.from_loaded(load_cache_config(path))
        registry = StrategyRegistry.load(path)
        return cls(
            registry=registry,
            store=store or RedisRouteStore.from_config(config),
            config=config,
        )

    @staticmethod
    def determine_tokens(
        amount: CurrencyAmount, quote_token: Token, trade_type: TradeType
    ) -> tuple[Token, Token]:
        """Return (token_in, token_out) for the trade direction."""
        if TradeType.parse(trade_type) == TradeType.EXACT_INPUT:
            return amount.currency, quote_token
        return quote_token, amount.currency

    def _resolve(
        self,
        token_in: Token,
        token_out: Token,
        trade_type: TradeType,
        chain_id: int,
        amount: CurrencyAmount,
    ) -> tuple[CachingStrategy, BucketSpec] | None:
        """Strategy and bucket for a trade, shared by reads and writes."""
        strategy = self.registry.get(token_in, token_out, trade_type, chain_id)
        if strategy is None:
            return None

        bucket = strategy.resolve_bucket(amount)
        if bucket is None:
            return None

        return strategy, bucket

    def _cacheable(
        self,
        token_in: Token,
        token_out: Token,
        trade_type: TradeType,
        chain_id: int,
        amount: CurrencyAmount,
    ) -> tuple[CachingStrategy, BucketSpec] | None:
        if not self.config.enabled:
            return None
        resolved = self._resolve(token_in, token_out, trade_type, chain_id, amount)
        if resolved is None or resolved[1].cache_mode == CacheMode.DARKMODE:
            return None
        return resolved

    async def get_cache_mode(
        self,
        chain_id: int,
        amount: CurrencyAmount,
        quote_token: Token,
        trade_type: TradeType,
        protocols: Sequence[Protocol],
    ) -> CacheMode:
        """Cache mode of the bucket holding this amount, else Darkmode."""
        if not self.config.enabled:
            return CacheMode.DARKMODE

        token_in, token_out = self.determine_tokens(amount, quote_token, trade_type)
        resolved = self._resolve(token_in, token_out, trade_type, chain_id, amount)

        if resolved is None:
            logger.debug(
                LogEvents.CACHE_MODE_DARKMODE,
                token_in=token_in.symbol,
                token_out=token_out.symbol,
                trade_type=TradeType.parse(trade_type).value,
                chain_id=chain_id,
                amount=amount.to_exact(),
            )
            return CacheMode.DARKMODE

        strategy, bucket = resolved
        logger.debug(
            LogEvents.CACHE_MODE_RESOLVED,
            pair=strategy.readable_pair_trade_type_chain_id(),
            bucket=format_bound(bucket.bucket),
            cache_mode=bucket.cache_mode.value,
            amount=amount.to_exact(),
        )
        return bucket.cache_mode

    async def _read_candidate(
        self, key: str, requested: ProtocolSet
    ) -> CachedRoutes | None:
        record = await self.store.get_latest(key)
        if record is None:
            return None

        # The store may still hold a record it has not purged yet
        if record.is_expired():
            logger.debug(LogEvents.CACHE_MISS, reason="expired", key=key)
            return None

        if not requested.issubset(record.protocols):
            logger.debug(LogEvents.CACHE_MISS, reason="protocol_mismatch", key=key)
            return None

        return unmarshal_cached_routes(record.payload)

    @trace_operation("route_cache.get")
    async def _get_cached_route(
        self,
        chain_id: int,
        amount: CurrencyAmount,
        quote_token: Token,
        trade_type: TradeType,
        protocols: Sequence[Protocol],
    ) -> CachedRoutes | None:
        token_in, token_out = self.determine_tokens(amount, quote_token, trade_type)
        resolved = self._cacheable(token_in, token_out, trade_type, chain_id, amount)
        if resolved is None:
            return None

        if not self.circuit_breaker.can_attempt():
            logger.debug("circuit_breaker_open_skipping_read")
            return None

        strategy, bucket = resolved
        pair = strategy.readable_pair_trade_type_chain_id()
        partition = PairTradeTypeChainId(
            token_in=token_in.address,
            token_out=token_out.address,
            trade_type=trade_type,
            chain_id=chain_id,
        )
        requested = _protocol_set(protocols)
        keys = [
            route_cache_key(
                self.config.key_prefix,
                partition,
                ProtocolsBucketKey.build(candidate, bucket.bucket),
            )
            for candidate in _protocol_supersets(requested)
        ]

        results = await asyncio.gather(
            *(self._read_candidate(key, requested) for key in keys),
            return_exceptions=True,
        )

        hits: list[CachedRoutes] = []
        store_failed = False
        for result in results:
            if isinstance(result, CachedRoutes):
                hits.append(result)
            elif isinstance(result, StoreError):
                store_failed = True
                self._on_error("read", pair, result)
            elif isinstance(result, MarshallingError):
                self._on_error("read", pair, result)
            elif isinstance(result, Exception):
                logger.error(LogEvents.CACHE_ERROR, operation="read", pair=pair, error=str(result))
                self.stats.errors += 1
                record_cache_error("read")
            elif isinstance(result, BaseException):
                raise result

        if store_failed:
            self.circuit_breaker.on_failure()
        else:
            self.circuit_breaker.on_success()
        self.stats.circuit_state = self.circuit_breaker.state

        if not hits:
            self.stats.misses += 1
            self.stats.update_hit_rate()
            record_cached_route_lookup(False, bucket.cache_mode, pair)
            logger.debug(
                LogEvents.CACHE_MISS,
                pair=pair,
                bucket=format_bound(bucket.bucket),
                cache_mode=bucket.cache_mode.value,
            )
            return None

        cached_routes = max(hits, key=lambda routes: routes.block_number)
        self.stats.hits += 1
        self.stats.update_hit_rate()
        record_cached_route_lookup(True, bucket.cache_mode, pair)
        logger.debug(
            LogEvents.CACHE_HIT,
            pair=pair,
            bucket=format_bound(bucket.bucket),
            cache_mode=bucket.cache_mode.value,
            block_number=cached_routes.block_number,
        )
        return cached_routes

    @trace_operation("route_cache.set")
    async def _set_cached_route(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> bool:
        resolved = self._cacheable(
            cached_routes.token_in,
            cached_routes.token_out,
            cached_routes.trade_type,
            cached_routes.chain_id,
            amount,
        )
        if resolved is None:
            self.stats.skipped_writes += 1
            logger.debug(
                LogEvents.CACHE_WRITE_SKIPPED,
                token_in=cached_routes.token_in.symbol,
                token_out=cached_routes.token_out.symbol,
                trade_type=cached_routes.trade_type.value,
                chain_id=cached_routes.chain_id,
                amount=amount.to_exact(),
            )
            return False

        if not self.circuit_breaker.can_attempt():
            logger.debug("circuit_breaker_open_skipping_write")
            return False

        strategy, bucket = resolved
        pair = strategy.readable_pair_trade_type_chain_id()
        protocols = _protocol_set(cached_routes.protocols_covered)
        key = route_cache_key(
            self.config.key_prefix,
            PairTradeTypeChainId.from_cached_routes(cached_routes),
            ProtocolsBucketKey.build(protocols, bucket.bucket),
        )

        try:
            now = time.time()
            record = CacheRecord(
                key=key,
                payload=marshal_cached_routes(cached_routes),
                block_number=cached_routes.block_number,
                protocols=sorted(protocols, key=lambda p: p.value),
                bucket=format_bound(bucket.bucket),
                expires_at=now + self.config.ttl_seconds,
                created_at=now,
            )
            await self.store.put(key, record)
        except StoreError as e:
            self._on_error("write", pair, e)
            self.circuit_breaker.on_failure()
            self.stats.circuit_state = self.circuit_breaker.state
            return False
        except MarshallingError as e:
            self._on_error("write", pair, e)
            return False
        except Exception as e:
            self._on_error("write", pair, e)
            self.circuit_breaker.on_failure()
            self.stats.circuit_state = self.circuit_breaker.state
            return False

        self.circuit_breaker.on_success()
        self.stats.writes += 1
        self.stats.circuit_state = self.circuit_breaker.state
        record_cache_write(pair)
        logger.debug(
            LogEvents.CACHE_WRITE,
            pair=pair,
            bucket=record.bucket,
            block_number=record.block_number,
            blocks_to_live=cached_routes.blocks_to_live,
        )
        return True

    async def _get_blocks_to_live(
        self, cached_routes: CachedRoutes, amount: CurrencyAmount
    ) -> int:
        resolved = self._resolve(
            cached_routes.token_in,
            cached_routes.token_out,
            cached_routes.trade_type,
            cached_routes.chain_id,
            amount,
        )
        if resolved is None:
            return 0
        return resolved[1].blocks_to_live

    def _on_error(self, operation: str, pair: str, error: Exception) -> None:
        event = LogEvents.CACHE_ERROR if operation == "read" else LogEvents.CACHE_WRITE_FAILED
        logger.warning(
            event,
            operation=operation,
            pair=pair,
            error=str(error),
            code=getattr(error, "code", None),
        )
        self.stats.errors += 1
        record_cache_error(operation)

    def get_stats(self) -> CacheStats:
        """Get cache performance statistics.

        Returns:
            Copy of the current statistics with the circuit state refreshed
        """
        self.stats.circuit_state = self.circuit_breaker.state
        return self.stats.model_copy()

    def reset_circuit_breaker(self) -> None:
        """Manually close the circuit (e.g. after the store is repaired)."""
        self.circuit_breaker.reset()
        self.stats.circuit_state = self.circuit_breaker.state

    async def close(self) -> None:
        """Close the backing store."""
        await self.store.close()
        logger.info(LogEvents.PROVIDER_CLOSED)
