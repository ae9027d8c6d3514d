"""Startup and graceful shutdown for services that embed the route cache.

A quote service owns one QuoteCacheOrchestrator and one RouteCacheProvider
for its whole life. LifecycleManager brings up logging and telemetry before
the first quote, and on shutdown:
- Waits for background cache writes and tapcompare comparisons (with timeout)
- Closes the route store connection
- Flushes pending spans and metrics

Usage:
    >>> manager = LifecycleManager(orchestrator=orchestrator, provider=provider)
    >>> manager.startup()
    >>> manager.install_signal_handlers()
    >>> # ... serve quotes ...
    >>> await manager.shutdown()
"""

import asyncio
import logging
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from routecache.observability.logging import configure_logging
from routecache.observability.setup import setup_telemetry, shutdown_telemetry

if TYPE_CHECKING:
    from routecache.cache.provider import RouteCachingProvider
    from routecache.engines.quote import QuoteCacheOrchestrator

logger = logging.getLogger(__name__)


class ShutdownPhase(Enum):
    """Shutdown phases for tracking progress."""

    NOT_STARTED = "not_started"
    STARTED = "started"
    DRAINING_TASKS = "draining_tasks"
    CLOSING_STORE = "closing_store"
    FLUSHING_TELEMETRY = "flushing_telemetry"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ShutdownState:
    """Tracks shutdown progress and timing."""

    phase: ShutdownPhase = ShutdownPhase.NOT_STARTED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    signal_received: str | None = None
    abandoned_tasks: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float | None:
        """Shutdown duration in seconds, or None before shutdown starts."""
        if self.started_at is None:
            return None
        end = self.completed_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()


class LifecycleManager:
    """Owns process-level setup and teardown around the route cache.

    Shutdown continues when an individual step fails; failures are logged
    and collected in ShutdownState.errors, and the final phase is FAILED.
    A drain that times out is not a failure: the leftover background tasks
    are cancelled and counted in ShutdownState.abandoned_tasks.

    Attributes:
        orchestrator: Orchestrator whose background tasks are drained (optional)
        provider: Provider whose store is closed (optional)
        shutdown_timeout: Max seconds to wait for background tasks
        telemetry_active: Whether startup() brought OpenTelemetry up
        state: Current shutdown state
    """

    def __init__(
        self,
        orchestrator: "QuoteCacheOrchestrator | None" = None,
        provider: "RouteCachingProvider | None" = None,
        shutdown_timeout: float = 10.0,
        instrument_redis: bool = True,
    ) -> None:
        """Initialize lifecycle manager.

        Args:
            orchestrator: Drained on shutdown. Skipped if None.
            provider: Closed on shutdown. Defaults to orchestrator.provider.
            shutdown_timeout: Seconds to wait for background tasks. Default: 10.0
            instrument_redis: Trace redis.asyncio calls when telemetry is on
        """
        self.orchestrator = orchestrator
        self.provider = provider or (orchestrator.provider if orchestrator else None)
        self.shutdown_timeout = shutdown_timeout
        self.instrument_redis = instrument_redis

        self.telemetry_active = False
        self.state = ShutdownState()
        self._shutdown_lock = asyncio.Lock()
        self._signal_handlers_installed = False

    @property
    def is_shutting_down(self) -> bool:
        """Check if shutdown is in progress."""
        return self.state.phase not in (
            ShutdownPhase.NOT_STARTED,
            ShutdownPhase.COMPLETE,
            ShutdownPhase.FAILED,
        )

    def startup(self) -> None:
        """Configure logging and OpenTelemetry. Call once before serving."""
        configure_logging()
        self.telemetry_active = setup_telemetry(instrument_redis=self.instrument_redis)
        logger.info(f"routecache started (telemetry={self.telemetry_active})")

    def install_signal_handlers(self) -> None:
        """Run shutdown() on SIGTERM or SIGINT.

        Must be called from inside the running event loop. Safe to call
        multiple times.
        """
        if self._signal_handlers_installed:
            return

        loop = asyncio.get_running_loop()

        def create_handler(sig: signal.Signals) -> Callable[[], None]:
            def handler() -> None:
                self.state.signal_received = sig.name
                logger.info(f"Received {sig.name}, shutting down")
                asyncio.ensure_future(self.shutdown())

            return handler

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, create_handler(sig))

        self._signal_handlers_installed = True

    def remove_signal_handlers(self) -> None:
        """Remove handlers installed by install_signal_handlers()."""
        if not self._signal_handlers_installed:
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except (ValueError, RuntimeError) as e:
                logger.debug(f"Could not remove {sig.name} handler: {e}")

        self._signal_handlers_installed = False

    async def drain_background_tasks(self) -> bool:
        """Wait for pending cache writes and comparisons.

        Returns:
            True if everything finished, False if the timeout cancelled the rest
        """
        if self.orchestrator is None or self.orchestrator.pending == 0:
            return True

        pending = self.orchestrator.pending
        logger.info(f"Waiting for {pending} background tasks (timeout: {self.shutdown_timeout}s)")
        abandoned = await self.orchestrator.drain(timeout=self.shutdown_timeout)
        if abandoned:
            self.state.abandoned_tasks = abandoned
            logger.warning(f"Timeout draining background tasks, {abandoned} cancelled")
            return False

        logger.info(f"Drained {pending} background tasks")
        return True

    async def close_provider(self) -> bool:
        """Close the route store connection.

        Returns:
            True if close succeeded (or there is nothing to close)
        """
        if self.provider is None:
            return True

        try:
            await self.provider.close()
            return True
        except Exception as e:
            error_msg = f"Failed to close route store: {e}"
            logger.error(error_msg)
            self.state.errors.append(error_msg)
            return False

    def flush_telemetry(self) -> bool:
        """Flush and shut down OpenTelemetry providers set up by startup()."""
        if not self.telemetry_active:
            return True

        try:
            shutdown_telemetry()
            self.telemetry_active = False
            return True
        except Exception as e:
            error_msg = f"Failed to shut down telemetry: {e}"
            logger.error(error_msg)
            self.state.errors.append(error_msg)
            return False

    async def shutdown(self) -> ShutdownState:
        """Drain, close and flush, in that order.

        Idempotent: later calls return the existing ShutdownState.

        Returns:
            ShutdownState with shutdown results and timing
        """
        async with self._shutdown_lock:
            if self.state.phase != ShutdownPhase.NOT_STARTED:
                return self.state

            self.state.phase = ShutdownPhase.STARTED
            self.state.started_at = datetime.now(timezone.utc)
            logger.info("Starting graceful shutdown")

            self.remove_signal_handlers()

            self.state.phase = ShutdownPhase.DRAINING_TASKS
            await self.drain_background_tasks()

            self.state.phase = ShutdownPhase.CLOSING_STORE
            await self.close_provider()

            self.state.phase = ShutdownPhase.FLUSHING_TELEMETRY
            self.flush_telemetry()

            self.state.completed_at = datetime.now(timezone.utc)
            if self.state.errors:
                self.state.phase = ShutdownPhase.FAILED
                logger.warning(
                    f"Shutdown completed with {len(self.state.errors)} errors "
                    f"in {self.state.duration_seconds:.1f}s"
                )
            else:
                self.state.phase = ShutdownPhase.COMPLETE
                logger.info(f"Graceful shutdown completed in {self.state.duration_seconds:.1f}s")

            return self.state
