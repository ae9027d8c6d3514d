"""Quote serving with cached routes.

Drives one quote request through the cache mode state machine:

    Darkmode:   compute live, never touch the cache
    Livemode:   serve cached routes on a hit, else compute live and write
    Tapcompare: compute live and read the cache in parallel, serve live,
                compare in the background, write the live routes

Cache writes and Tapcompare comparisons run as background tasks. They
outlive the request that spawned them and never raise into it.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any

from routecache.cache.provider import RouteCachingProvider
from routecache.core.config import load_tracked_pairs
from routecache.core.models import (
    CacheMode,
    CachedRoutes,
    QuoteRequest,
    QuoteResult,
    TradeType,
)
from routecache.observability.logging import LogEvents, get_logger
from routecache.observability.metrics import (
    quote_amount_metric_name,
    record_quote_amount,
    record_tapcompare_diff,
)

logger = get_logger(__name__)


class RouteComputer(ABC):
    """The router side of quote serving.

    Implementations wrap the external routing library: one call finds
    routes from scratch, the other re-quotes routes that came from the
    cache at the current block.
    """

    @abstractmethod
    async def compute_live(self, request: QuoteRequest) -> QuoteResult:
        """Compute routes and a quote from on-chain state."""

    @abstractmethod
    async def quote_cached(
        self, request: QuoteRequest, cached_routes: CachedRoutes
    ) -> QuoteResult | None:
        """Re-quote cached routes. None when they can no longer be quoted."""


def readable_pair(request: QuoteRequest) -> str:
    """e.g. WETH/USDC/ExactIn/1 (by symbol, for logs)."""
    return (
        f"{request.token_in.symbol}/{request.token_out.symbol}".upper()
        + f"/{request.trade_type.value}/{request.chain_id}"
    )


class QuoteCacheOrchestrator:
    """Serves quotes through a route cache provider.

    Example:
        >>> orchestrator = QuoteCacheOrchestrator(provider, computer)
        >>> result = await orchestrator.get_quote(request)
        >>> await orchestrator.drain()  # on shutdown
    """

    def __init__(
        self,
        provider: RouteCachingProvider,
        computer: RouteComputer,
        tracked_pairs: dict[int, dict[TradeType, set[str]]] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            provider: Route cache provider
            computer: Live router
            tracked_pairs: chain -> trade type -> pairs whose requested
                amounts are recorded (default: load_tracked_pairs())
        """
        self.provider = provider
        self.computer = computer
        self.tracked_pairs = (
            tracked_pairs if tracked_pairs is not None else load_tracked_pairs()
        )
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def get_quote(self, request: QuoteRequest) -> QuoteResult:
        """Serve a quote according to the request's cache mode.

        Raises:
            Whatever compute_live raises; cache failures never propagate
        """
        self._record_tracked_amount(request)

        cache_mode = await self.provider.get_cache_mode(
            request.chain_id,
            request.amount,
            request.quote_token,
            request.trade_type,
            request.protocols,
        )

        if cache_mode == CacheMode.LIVEMODE:
            result = await self._serve_livemode(request)
        elif cache_mode == CacheMode.TAPCOMPARE:
            result = await self._serve_tapcompare(request)
        else:
            result = await self.computer.compute_live(request)

        logger.debug(
            LogEvents.QUOTE_SERVED,
            pair=readable_pair(request),
            cache_mode=cache_mode.value,
            served_from_cache=result.served_from_cache,
            block_number=result.block_number,
        )
        return result

    async def _read_cache(self, request: QuoteRequest) -> CachedRoutes | None:
        return await self.provider.get_cached_route(
            request.chain_id,
            request.amount,
            request.quote_token,
            request.trade_type,
            request.protocols,
            current_block=request.block_number,
        )

    async def _serve_livemode(self, request: QuoteRequest) -> QuoteResult:
        cached_routes = await self._read_cache(request)

        if cached_routes is not None:
            cached_result = await self._quote_cached(request, cached_routes)
            if cached_result is not None:
                return cached_result.model_copy(
                    update={"served_from_cache": True, "cached_routes": cached_routes}
                )

        live = await self.computer.compute_live(request)
        self._write_in_background(request, live)
        return live

    async def _serve_tapcompare(self, request: QuoteRequest) -> QuoteResult:
        cache_read = self._spawn(self._read_cache(request))

        try:
            live = await self.computer.compute_live(request)
        except BaseException:
            # Nothing will compare against the read once the live quote fails
            cache_read.cancel()
            raise

        self._spawn(self._compare(request, live, cache_read))
        self._write_in_background(request, live)
        return live

    async def _quote_cached(
        self, request: QuoteRequest, cached_routes: CachedRoutes
    ) -> QuoteResult | None:
        try:
            return await self.computer.quote_cached(request, cached_routes)
        except Exception as e:
            logger.warning(
                LogEvents.CACHED_QUOTE_FAILED,
                pair=readable_pair(request),
                block_number=cached_routes.block_number,
                error=str(e),
            )
            return None

    async def _compare(
        self,
        request: QuoteRequest,
        live: QuoteResult,
        cache_read: "asyncio.Task[CachedRoutes | None]",
    ) -> None:
        pair = readable_pair(request)
        try:
            cached_routes = await cache_read
            cached = (
                await self._quote_cached(request, cached_routes)
                if cached_routes is not None
                else None
            )

            quote_diff = None
            quote_gas_adjusted_diff = None
            if cached is not None:
                quote_diff = live.quote - cached.quote
                quote_gas_adjusted_diff = live.quote_gas_adjusted - cached.quote_gas_adjusted

            logger.info(
                LogEvents.TAPCOMPARE_RESULT,
                pair=pair,
                amount=request.amount.to_exact(),
                quoteDiff=str(quote_diff) if quote_diff is not None else None,
                quoteGasAdjustedDiff=(
                    str(quote_gas_adjusted_diff)
                    if quote_gas_adjusted_diff is not None
                    else None
                ),
                cache_present=cached is not None,
                block_number=live.block_number,
            )
            record_tapcompare_diff(pair, quote_gas_adjusted_diff, cached is not None)
        except Exception as e:
            logger.error(LogEvents.TAPCOMPARE_FAILED, pair=pair, error=str(e))

    def _write_in_background(self, request: QuoteRequest, live: QuoteResult) -> None:
        if live.cached_routes is None:
            return
        self._spawn(self._write(request, live.cached_routes))

    async def _write(self, request: QuoteRequest, cached_routes: CachedRoutes) -> None:
        try:
            await self.provider.set_cached_route(cached_routes, request.amount)
        except Exception as e:
            logger.error(
                LogEvents.CACHE_WRITE_FAILED, pair=readable_pair(request), error=str(e)
            )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    def _record_tracked_amount(self, request: QuoteRequest) -> None:
        pair = f"{request.token_in.symbol}/{request.token_out.symbol}".upper()
        tracked = self.tracked_pairs.get(request.chain_id, {}).get(request.trade_type, set())
        if pair not in tracked:
            return

        metric_name = quote_amount_metric_name(pair, request.trade_type, request.chain_id)
        record_quote_amount(metric_name, request.amount.exact)
        logger.debug(
            LogEvents.TRACKED_QUOTE_AMOUNT,
            metric_name=metric_name,
            amount=request.amount.to_exact(),
        )

    @property
    def pending(self) -> int:
        """Number of background tasks still running."""
        return len(self._background_tasks)

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for every background write and comparison to finish.

        Args:
            timeout: Seconds to wait before cancelling what is left (None = forever)

        Returns:
            Number of tasks cancelled because the timeout ran out
        """
        if timeout is None:
            while self._background_tasks:
                await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
            return 0

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self._background_tasks:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.wait(list(self._background_tasks), timeout=remaining)

        leftover = list(self._background_tasks)
        for task in leftover:
            task.cancel()
        return len(leftover)
