"""Observability for routecache: structured logs, OpenTelemetry metrics and traces.

Exports to OTLP-compatible backends (Jaeger, Tempo, Prometheus, etc.).

Instrumented Components:
    - Route store operations (Redis auto-instrumentation)
    - Cached route hits and misses per cache mode
    - Requested quote amounts for tracked pairs
    - Tapcompare quote differences
"""

from routecache.observability.logging import (
    LogEvents,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from routecache.observability.metrics import (
    get_meter,
    record_cache_error,
    record_cache_write,
    record_cached_route_lookup,
    record_quote_amount,
    record_tapcompare_diff,
)
from routecache.observability.setup import setup_telemetry, shutdown_telemetry
from routecache.observability.tracing import get_tracer, trace_operation

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LogEvents",
    "setup_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "get_meter",
    "trace_operation",
    "record_cached_route_lookup",
    "record_cache_write",
    "record_cache_error",
    "record_quote_amount",
    "record_tapcompare_diff",
]
