"""OpenTelemetry setup for processes that embed the route cache.

Called by LifecycleManager.startup() and shutdown(). Exports go to the
OTLP endpoint in settings; the Redis client is auto-instrumented so
route store reads and writes show up as child spans of route_cache.get
and route_cache.set.
"""

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from routecache import __version__
from routecache.core.config import settings

logger = logging.getLogger(__name__)

_instrumented = False


def _parse_headers(raw: str) -> dict[str, str] | None:
    """Parse "k1=v1,k2=v2" OTLP headers."""
    if not raw:
        return None
    return dict(item.split("=", 1) for item in raw.split(",") if "=" in item)


def _build_resource() -> Resource:
    return Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.version": __version__,
            "deployment.environment": settings.environment,
        }
    )


def _install_tracer_provider(resource: Resource, headers: dict[str, str] | None) -> None:
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, headers=headers)
        )
    )
    trace.set_tracer_provider(provider)


def _install_meter_provider(resource: Resource, headers: dict[str, str] | None) -> None:
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=settings.otel_exporter_otlp_endpoint, headers=headers),
        export_interval_millis=settings.otel_metric_export_interval_ms,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))


def setup_telemetry(instrument_redis: bool = True) -> bool:
    """Install OTLP trace and metric providers.

    Args:
        instrument_redis: Also patch redis.asyncio so store calls are traced

    Returns:
        True if telemetry is active after the call (newly or already set up)
    """
    global _instrumented

    if not settings.otel_enabled:
        logger.info("OpenTelemetry disabled by configuration")
        return False

    if _instrumented:
        return True

    resource = _build_resource()
    headers = _parse_headers(settings.otel_exporter_otlp_headers)

    if settings.otel_traces_enabled:
        _install_tracer_provider(resource, headers)
    if settings.otel_metrics_enabled:
        _install_meter_provider(resource, headers)
    if instrument_redis:
        RedisInstrumentor().instrument()

    _instrumented = True
    logger.info(
        f"OpenTelemetry exporting to {settings.otel_exporter_otlp_endpoint} "
        f"(traces={settings.otel_traces_enabled}, metrics={settings.otel_metrics_enabled}, "
        f"redis={instrument_redis})"
    )
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and metrics, then shut the providers down."""
    global _instrumented

    if not _instrumented:
        return

    for provider in (trace.get_tracer_provider(), metrics.get_meter_provider()):
        shutdown = getattr(provider, "shutdown", None)
        if shutdown is not None:
            shutdown()

    _instrumented = False
    logger.info("OpenTelemetry shutdown complete")
