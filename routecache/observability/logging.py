"""Structured logging configuration for routecache.

This module provides structured logging using structlog. Logs are output
as JSON in production for easy parsing by log aggregators (CloudWatch,
Datadog, ELK) and as colored console output in development.

Configuration:
    Set via environment variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - LOG_FORMAT: json, console (default: json in production, console in dev)
    - ENVIRONMENT: development, production (affects format default)

Usage:
    >>> from routecache.observability.logging import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("cache_hit", pair="WETH/USDC/ExactIn/1", bucket="10")

Standard Events:
    Decision:
        - cache_mode_resolved: Strategy and bucket found for an amount
        - cache_mode_darkmode: No strategy or bucket, amount is never cached

    Cache:
        - cache_hit: Fresh route found for the composite key
        - cache_miss: Nothing usable (missing, stale, protocol mismatch)
        - cache_error: Store or payload failure, served as a miss
        - cache_write: Route written after a live computation
        - cache_write_skipped: Amount outside every configured bucket
        - circuit_breaker_opened: Too many store failures
        - circuit_breaker_closed: Store recovered

    Quote:
        - quote_served: Quote returned to the caller
        - "Comparing quotes between Chain and Cache": Tapcompare result
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from routecache.core.config.settings import settings

# Module-level flag to track initialization
_configured = False


def configure_logging(
    level: str | None = None,
    log_format: str | None = None,
    is_production: bool | None = None,
) -> None:
    """Configure structured logging for the application.

    Should be called once at application startup. Safe to call multiple times
    (subsequent calls are no-ops).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default from LOG_LEVEL env.
        log_format: Output format (json, console). Default based on environment.
        is_production: Override production detection. Default from ENVIRONMENT env.
    """
    global _configured
    if _configured:
        return

    # Arguments win over settings (LOG_LEVEL, LOG_FORMAT, ENVIRONMENT)
    if level is None:
        level = settings.log_level
    level = level.upper()

    if is_production is None:
        is_production = settings.is_production

    if log_format is None:
        log_format = settings.log_format or ("json" if is_production else "console")

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    # Build processor chain
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        # Production: JSON output for log aggregators
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Development: Colored console output
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Auto-configures logging on first call if not already configured.

    Args:
        name: Logger name (typically __name__). If None, returns root logger.

    Returns:
        Configured structlog BoundLogger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_context(**kwargs: Any) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Useful for adding request_id or chain_id to every entry logged while
    serving one quote.

    Example:
        >>> bind_context(request_id="abc123", chain_id=1)
        >>> logger.info("cache_hit")  # Includes request_id and chain_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Call at the end of a request to prevent context leakage.
    """
    structlog.contextvars.clear_contextvars()


class LogEvents:
    """Standard event names for structured logging.

    Example:
        >>> logger.info(LogEvents.CACHE_HIT, pair="WETH/USDC/ExactIn/1")
    """

    # Decision events
    CACHE_MODE_RESOLVED = "cache_mode_resolved"
    CACHE_MODE_DARKMODE = "cache_mode_darkmode"

    # Cache events
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CACHE_ERROR = "cache_error"
    CACHE_WRITE = "cache_write"
    CACHE_WRITE_SKIPPED = "cache_write_skipped"
    CACHE_WRITE_FAILED = "cache_write_failed"
    CIRCUIT_BREAKER_OPENED = "circuit_breaker_opened"
    CIRCUIT_BREAKER_CLOSED = "circuit_breaker_closed"
    CIRCUIT_BREAKER_HALF_OPEN = "circuit_breaker_half_open"

    # Quote events
    QUOTE_SERVED = "quote_served"
    CACHED_QUOTE_FAILED = "cached_quote_failed"
    TAPCOMPARE_RESULT = "Comparing quotes between Chain and Cache"
    TAPCOMPARE_FAILED = "tapcompare_failed"
    TRACKED_QUOTE_AMOUNT = "tracked_quote_amount"

    # Lifecycle events
    REGISTRY_LOADED = "registry_loaded"
    PROVIDER_CLOSED = "provider_closed"
