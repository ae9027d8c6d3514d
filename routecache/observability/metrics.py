"""OpenTelemetry metrics for the route caching engine.

Provides the counters and histograms behind the cached routes dashboards.

Metrics:
    - routecache.cached_route.hits: Counter of cache hits by cache mode
      (dashboard names GetCachedRoute_hit_livemode / _tapcompare)
    - routecache.cached_route.misses: Counter of cache misses by cache mode
    - routecache.cache.writes: Counter of routes written to the store
    - routecache.cache.errors: Counter of store and payload failures
    - routecache.quote.amount: Histogram of requested amounts for tracked pairs
    - routecache.tapcompare.quote_diff: Histogram of live minus cached quotes
"""

import logging
from decimal import Decimal
from typing import Any

from opentelemetry import metrics

from routecache.core.config import settings
from routecache.core.models import CacheMode, TradeType

logger = logging.getLogger(__name__)

# Global meter instance
_meter: metrics.Meter | None = None

# Metric instruments (created on first access)
_cached_route_hits_counter: metrics.Counter | None = None
_cached_route_misses_counter: metrics.Counter | None = None
_cache_writes_counter: metrics.Counter | None = None
_cache_errors_counter: metrics.Counter | None = None
_quote_amount_histogram: metrics.Histogram | None = None
_tapcompare_diff_histogram: metrics.Histogram | None = None


def get_meter(name: str = "routecache") -> metrics.Meter:
    """Get OpenTelemetry meter instance.

    Args:
        name: Meter name

    Returns:
        Meter instance (no-op if telemetry disabled)
    """
    global _meter
    if _meter is None:
        _meter = metrics.get_meter(name)
    return _meter


def _metrics_enabled() -> bool:
    return bool(settings.otel_enabled and settings.otel_metrics_enabled)


def _ensure_instruments() -> None:
    """Lazy initialization of metric instruments."""
    if not _metrics_enabled():
        return

    global _cached_route_hits_counter
    global _cached_route_misses_counter
    global _cache_writes_counter
    global _cache_errors_counter
    global _quote_amount_histogram
    global _tapcompare_diff_histogram

    meter = get_meter()

    if _cached_route_hits_counter is None:
        _cached_route_hits_counter = meter.create_counter(
            name="routecache.cached_route.hits",
            description="Number of cached route hits",
            unit="1",
        )

    if _cached_route_misses_counter is None:
        _cached_route_misses_counter = meter.create_counter(
            name="routecache.cached_route.misses",
            description="Number of cached route misses",
            unit="1",
        )

    if _cache_writes_counter is None:
        _cache_writes_counter = meter.create_counter(
            name="routecache.cache.writes",
            description="Number of routes written to the cache",
            unit="1",
        )

    if _cache_errors_counter is None:
        _cache_errors_counter = meter.create_counter(
            name="routecache.cache.errors",
            description="Number of cache store or payload failures",
            unit="1",
        )

    if _quote_amount_histogram is None:
        _quote_amount_histogram = meter.create_histogram(
            name="routecache.quote.amount",
            description="Requested quote amounts for tracked pairs",
            unit="1",
        )

    if _tapcompare_diff_histogram is None:
        _tapcompare_diff_histogram = meter.create_histogram(
            name="routecache.tapcompare.quote_diff",
            description="Gas adjusted quote difference between live and cached routes",
            unit="1",
        )


def cached_route_metric_name(hit: bool, cache_mode: CacheMode) -> str:
    """Dashboard metric name, e.g. GetCachedRoute_hit_livemode."""
    return f"GetCachedRoute_{'hit' if hit else 'miss'}_{cache_mode.value}"


def quote_amount_metric_name(pair: str, trade_type: TradeType, chain_id: int) -> str:
    """Dashboard metric name, e.g. GET_QUOTE_AMOUNT_WETH/USDC_EXACTIN_CHAIN_1."""
    return f"GET_QUOTE_AMOUNT_{pair.upper()}_{trade_type.value.upper()}_CHAIN_{chain_id}"


def record_cached_route_lookup(hit: bool, cache_mode: CacheMode, pair: str) -> None:
    """Record a cache read outcome.

    Args:
        hit: Whether a usable route was found
        cache_mode: Mode the read was made under (livemode or tapcompare)
        pair: Readable pair/trade type/chain identifier
    """
    if not _metrics_enabled():
        return

    _ensure_instruments()

    attributes = {
        "cache_mode": cache_mode.value,
        "pair": pair,
        "metric_name": cached_route_metric_name(hit, cache_mode),
    }
    counter = _cached_route_hits_counter if hit else _cached_route_misses_counter
    if counter:
        counter.add(1, attributes)


def record_cache_write(pair: str) -> None:
    """Record a route written to the store."""
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _cache_writes_counter:
        _cache_writes_counter.add(1, {"pair": pair})


def record_cache_error(operation: str) -> None:
    """Record a store or payload failure.

    Args:
        operation: "read" or "write"
    """
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _cache_errors_counter:
        _cache_errors_counter.add(1, {"operation": operation})


def record_quote_amount(metric_name: str, amount: Decimal) -> None:
    """Record a requested quote amount for a tracked pair."""
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _quote_amount_histogram:
        _quote_amount_histogram.record(float(amount), {"metric_name": metric_name})


def record_tapcompare_diff(pair: str, quote_diff: Decimal | None, cache_present: bool) -> None:
    """Record a Tapcompare comparison.

    Args:
        pair: Readable pair/trade type/chain identifier
        quote_diff: Live minus cached gas adjusted quote (None when no cached route)
        cache_present: Whether the cache held a usable route
    """
    if not _metrics_enabled():
        return

    _ensure_instruments()

    if _tapcompare_diff_histogram:
        _tapcompare_diff_histogram.record(
            float(quote_diff) if quote_diff is not None else 0.0,
            {"pair": pair, "cache_present": cache_present},
        )


def get_metrics_summary() -> dict[str, Any]:
    """Get current metrics configuration for debugging.

    Note:
        This is for debugging only. Use OTLP backend for production metrics.
    """
    return {
        "otel_enabled": settings.otel_enabled,
        "metrics_enabled": settings.otel_metrics_enabled,
        "service_name": settings.otel_service_name,
        "exporter_endpoint": settings.otel_exporter_otlp_endpoint,
    }
