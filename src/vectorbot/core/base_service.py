"""
Abstract base class for periodic background components.

``BaseService[ConfigT]`` provides the lifecycle shared by every loop a bot
client runs next to its dispatch task (today: the relay health monitor):
structured logging via [Logger][vectorbot.core.logger.Logger], interruptible
interval-based cycling with
[run_forever()][vectorbot.core.base_service.BaseService.run_forever],
consecutive failure limits, Prometheus counters, and ``start()``/``stop()``
helpers that own the background task.

See Also:
    [RelayHealthMonitor][vectorbot.services.health.RelayHealthMonitor]: The
        poll loop built on this class.
    [BaseServiceConfig][vectorbot.core.base_service.BaseServiceConfig]: Base
        configuration model.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any, ClassVar, Generic, Self, TypeVar, cast

from pydantic import BaseModel, Field

from .logger import Logger
from .metrics import MetricsConfig, MetricsRecorder


class BaseServiceConfig(BaseModel):
    """Base configuration shared by all components that run in a loop.

    Subclass this to add component-specific fields.
    """

    interval: float = Field(
        default=15.0,
        gt=0.0,
        description="Seconds between run cycles",
    )
    max_consecutive_failures: int = Field(
        default=0,
        ge=0,
        description="Stop after this many consecutive errors (0 = unlimited)",
    )


ConfigT = TypeVar("ConfigT", bound=BaseServiceConfig)


class BaseService(ABC, Generic[ConfigT]):
    """Abstract base class for periodic components.

    Subclasses set ``SERVICE_NAME`` and ``CONFIG_CLASS`` and implement
    [run()][vectorbot.core.base_service.BaseService.run], one bounded cycle
    of work.

    Attributes:
        SERVICE_NAME: Identifier used in logging and metrics labels.
        CONFIG_CLASS: Pydantic model used by the factory methods.
        _config: Typed configuration (defaults from ``CONFIG_CLASS``).
        _logger: [Logger][vectorbot.core.logger.Logger] named after the service.
        _metrics: [MetricsRecorder][vectorbot.core.metrics.MetricsRecorder]
            labelled with the service name.
        _shutdown_event: Clear while running; set once shutdown is requested.
    """

    SERVICE_NAME: ClassVar[str]
    CONFIG_CLASS: ClassVar[type[BaseModel]]

    def __init__(
        self,
        config: ConfigT | None = None,
        *,
        metrics: MetricsConfig | None = None,
    ) -> None:
        self._config: ConfigT = (
            config if config is not None else cast("ConfigT", self.CONFIG_CLASS())
        )
        self._logger = Logger(self.SERVICE_NAME)
        self._metrics = MetricsRecorder(self.SERVICE_NAME, metrics)
        self._shutdown_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def config(self) -> ConfigT:
        """The typed configuration (read-only)."""
        return self._config

    @abstractmethod
    async def run(self) -> None:
        """Execute one cycle of the component's work.

        Called repeatedly by
        [run_forever()][vectorbot.core.base_service.BaseService.run_forever].
        """
        ...

    def request_shutdown(self) -> None:
        """Request a graceful exit from the run loop."""
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Whether shutdown has not been requested yet."""
        return not self._shutdown_event.is_set()

    async def wait(self, timeout: float) -> bool:  # noqa: ASYNC109
        """Wait for a shutdown signal or ``timeout`` seconds.

        Returns ``True`` if shutdown was requested during the wait.
        """
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except TimeoutError:
            return False

    async def run_forever(self) -> None:
        """Call ``run()`` every ``config.interval`` seconds until shutdown.

        Exceptions from a cycle are logged and counted; the loop stops only
        on shutdown or when ``max_consecutive_failures`` (non-zero) is
        reached. ``CancelledError`` always propagates.
        """
        interval = self._config.interval
        max_consecutive_failures = self._config.max_consecutive_failures

        self._logger.debug(
            "run_forever_started",
            interval=interval,
            max_consecutive_failures=max_consecutive_failures,
        )

        consecutive_failures = 0

        while self.is_running:
            cycle_start = time.monotonic()
            try:
                await self.run()
                self._metrics.inc_counter("cycles_success")
                self._metrics.set_gauge("last_cycle_duration", time.monotonic() - cycle_start)
                consecutive_failures = 0

            except asyncio.CancelledError:
                raise

            except Exception as e:  # Intentionally broad: top-level error boundary for the loop
                consecutive_failures += 1
                self._metrics.inc_counter("cycles_failed")
                self._metrics.inc_counter(f"errors_{type(e).__name__}")
                self._logger.error(
                    "run_cycle_error",
                    error=str(e),
                    consecutive_failures=consecutive_failures,
                )
                if 0 < max_consecutive_failures <= consecutive_failures:
                    self._logger.critical(
                        "max_consecutive_failures_reached",
                        failures=consecutive_failures,
                        limit=max_consecutive_failures,
                    )
                    break

            if await self.wait(interval):
                break

        self._logger.debug("run_forever_stopped")

    # -------------------------------------------------------------------------
    # Background task
    # -------------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Run ``run_forever()`` in a background task (idempotent)."""
        if self._task is None or self._task.done():
            self._shutdown_event.clear()
            self._task = asyncio.create_task(
                self.run_forever(), name=f"vectorbot-{self.SERVICE_NAME}"
            )
        return self._task

    async def stop(self) -> None:
        """Request shutdown and wait for the background task to exit."""
        self.request_shutdown()
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create an instance from a configuration dictionary."""
        config = cast("ConfigT", cls.CONFIG_CLASS(**data))
        return cls(config, **kwargs)

    # -------------------------------------------------------------------------
    # Context Manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()
