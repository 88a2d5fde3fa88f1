"""Relay health monitor with hysteresis and backoff-limited reconnects.

Each poll reads [RelayPool.connection_status()][vectorbot.utils.pool.RelayPool]
and feeds one boolean per relay into that relay's
[RelayEndpoint][vectorbot.models.relay.RelayEndpoint]:

- The first observation only seeds ``stable``.
- A stable relay is reported ``disconnect`` after ``down_threshold``
  consecutive down polls, and never before the warm-up window
  (``max(2 * interval, warmup_floor)``) has elapsed since the monitor started.
- An unstable relay is reported ``reconnect`` after ``up_threshold``
  consecutive up polls.
- Independently, a relay that is down right now gets a reconnect attempt at
  most once per backoff window (``max(2 * interval, backoff_floor)``). The
  attempt runs in its own task so a slow relay never delays the poll; only
  one attempt per relay is in flight at a time.

See Also:
    [BaseService][vectorbot.core.base_service.BaseService]: Provides the
        interval loop, failure limits, and ``start()``/``stop()``.
    [HealthConfig][vectorbot.services.configs.HealthConfig]: Thresholds and
        windows.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, ClassVar

from vectorbot.core.base_service import BaseService
from vectorbot.core.exceptions import ConnectivityError
from vectorbot.models.relay import RelayEndpoint
from vectorbot.services.configs import HealthConfig


if TYPE_CHECKING:
    from vectorbot.core.bus import NotificationBus
    from vectorbot.core.metrics import MetricsConfig
    from vectorbot.utils.pool import RelayPool


class RelayHealthMonitor(BaseService[HealthConfig]):
    """Polls relay connectivity and reports debounced state changes.

    Notifications:
        ``disconnect`` ``{"relay": url, "error": ConnectivityError}``;
        ``reconnect`` ``{"relay": url}``; ``error`` with a
        [ConnectivityError][vectorbot.core.exceptions.ConnectivityError]
        when a reconnect attempt fails.
    """

    SERVICE_NAME: ClassVar[str] = "health"
    CONFIG_CLASS: ClassVar[type[HealthConfig]] = HealthConfig

    def __init__(  # noqa: PLR0913
        self,
        pool: RelayPool,
        bus: NotificationBus,
        relays: list[str],
        config: HealthConfig | None = None,
        *,
        metrics: MetricsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config, metrics=metrics)
        self._pool = pool
        self._bus = bus
        self._clock = clock
        self._endpoints: dict[str, RelayEndpoint] = {url: RelayEndpoint(url) for url in relays}
        self._started_at: float | None = None
        self._reconnects: dict[str, asyncio.Task[None]] = {}

    @property
    def endpoints(self) -> dict[str, RelayEndpoint]:
        return self._endpoints

    @property
    def pending_reconnects(self) -> list[asyncio.Task[None]]:
        return [task for task in self._reconnects.values() if not task.done()]

    def start(self) -> asyncio.Task[None]:
        if self._started_at is None:
            self._started_at = self._clock()
        return super().start()

    async def run(self) -> None:
        """Poll once and update every relay's state machine."""
        now = self._clock()
        if self._started_at is None:
            self._started_at = now

        status = await self._pool.connection_status()
        for url, endpoint in self._endpoints.items():
            self._observe(endpoint, status.get(url, False), now)

        self._metrics.set_gauge(
            "relays_connected", sum(1 for url in self._endpoints if status.get(url, False))
        )

    def _observe(self, endpoint: RelayEndpoint, connected: bool, now: float) -> None:
        config = self._config
        endpoint.observe(connected)

        if endpoint.stable is None:
            endpoint.stable = connected
            self._logger.debug("relay_seeded", relay=endpoint.url, connected=connected)

        elif (
            endpoint.stable
            and not connected
            and endpoint.down_streak >= config.down_threshold
            and self._warmed_up(now)
        ):
            endpoint.stable = False
            self._logger.warning("relay_disconnected", relay=endpoint.url)
            self._metrics.inc_counter("disconnects")
            self._bus.emit(
                "disconnect",
                {"relay": endpoint.url, "error": ConnectivityError("Relay disconnected")},
            )

        elif (
            endpoint.stable is False and connected and endpoint.up_streak >= config.up_threshold
        ):
            endpoint.stable = True
            self._logger.info("relay_reconnected", relay=endpoint.url)
            self._metrics.inc_counter("reconnects")
            self._bus.emit("reconnect", {"relay": endpoint.url})

        if not connected and config.reconnect:
            self._maybe_reconnect(endpoint, now)

    def _warmed_up(self, now: float) -> bool:
        started_at = self._started_at if self._started_at is not None else now
        return now - started_at >= self._config.warmup

    def _maybe_reconnect(self, endpoint: RelayEndpoint, now: float) -> None:
        in_flight = self._reconnects.get(endpoint.url)
        if in_flight is not None and not in_flight.done():
            return
        last = endpoint.last_reconnect_attempt
        if last is not None and now - last < self._config.backoff:
            return

        endpoint.last_reconnect_attempt = now
        self._reconnects[endpoint.url] = asyncio.create_task(
            self._reconnect(endpoint.url), name=f"vectorbot-reconnect-{endpoint.url}"
        )

    async def _reconnect(self, url: str) -> None:
        logger = self._logger.bind(relay=url)
        logger.debug("reconnect_attempt")
        try:
            await self._pool.ensure_connection(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Intentionally broad: reconnect failures are reported, not raised
            logger.warning("reconnect_failed", error=str(e))
            self._metrics.inc_counter("reconnect_failures")
            self._bus.emit("error", ConnectivityError(f"Reconnect failed for {url}: {e}"))
            return
        logger.debug("reconnect_succeeded")
