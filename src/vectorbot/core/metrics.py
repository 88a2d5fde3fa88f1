"""
Prometheus metrics collection and HTTP exposition.

Module-level metric objects are shared by every component of a bot process.
Components record through a [MetricsRecorder][vectorbot.core.metrics.MetricsRecorder]
bound to their name, which is a no-op while metrics are disabled.

Architecture:
    BOT_INFO:                  Static metadata (bot pubkey, mode) set once at connect.
    BOT_GAUGE:                 Point-in-time values (known groups, relays up).
    BOT_COUNTER:               Cumulative totals (messages emitted, duplicates dropped).
    PUBLISH_DURATION_SECONDS:  Histogram of quorum publish latency.

The ``MetricsServer`` provides an aiohttp endpoint for Prometheus scraping.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for the Prometheus metrics endpoint.

    The endpoint is only started when ``enabled`` is True.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

BOT_INFO = Info(
    "vectorbot",
    "Bot identity and runtime mode",
)

PUBLISH_DURATION_SECONDS = Histogram(
    "vectorbot_publish_duration_seconds",
    "Duration of a quorum publish (all attempts) in seconds",
    buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)

BOT_GAUGE = Gauge(
    "vectorbot_gauge",
    "Bot gauge values (point-in-time state)",
    ["component", "name"],
)

BOT_COUNTER = Counter(
    "vectorbot_counter",
    "Bot counter values (cumulative totals)",
    ["component", "name"],
)


class MetricsRecorder:
    """Records counters and gauges under a fixed ``component`` label.

    Examples:
        ```python
        metrics = MetricsRecorder("emitter", MetricsConfig(enabled=True))
        metrics.inc_counter("messages_emitted")
        metrics.set_gauge("dedup_size", 42)
        ```
    """

    def __init__(self, component: str, config: MetricsConfig | None = None) -> None:
        self._component = component
        self._config = config or MetricsConfig()

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    def inc_counter(self, name: str, value: float = 1) -> None:
        """Increment a named counter. No-op if metrics are disabled."""
        if not self._config.enabled:
            return
        BOT_COUNTER.labels(component=self._component, name=name).inc(value)

    def set_gauge(self, name: str, value: float) -> None:
        """Set a named gauge. No-op if metrics are disabled."""
        if not self._config.enabled:
            return
        BOT_GAUGE.labels(component=self._component, name=name).set(value)

    def observe_publish(self, seconds: float) -> None:
        if not self._config.enabled:
            return
        PUBLISH_DURATION_SECONDS.observe(seconds)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... bot runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for scrape requests; no-op when metrics are disabled.

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Idempotent."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(
            body=generate_latest(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )


async def start_metrics_server(config: MetricsConfig | None = None) -> MetricsServer:
    """Create and start a metrics server; the caller must ``stop()`` it."""
    server = MetricsServer(config or MetricsConfig())
    await server.start()
    return server
