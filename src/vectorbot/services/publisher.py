"""Quorum publish: one acknowledging relay is enough.

[QuorumPublisher][vectorbot.services.publisher.QuorumPublisher] favours
availability. It first tries to open every relay connection in parallel
(failures are tolerated, a relay may still accept the event on an already
open channel), then publishes to all relays at once. The publish succeeds
as soon as any relay acknowledged the event; otherwise it is retried without
delay until ``retries`` is exhausted.

See Also:
    [RelayPool.publish()][vectorbot.utils.pool.RelayPool]: Per-relay
        outcomes consumed here.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from vectorbot.core.exceptions import ConfigurationError, PublishingError
from vectorbot.core.logger import Logger
from vectorbot.core.metrics import MetricsRecorder


if TYPE_CHECKING:
    from vectorbot.models.event import Event
    from vectorbot.utils.pool import RelayPool


class QuorumPublisher:
    """Publishes signed events to a relay set with retry on total failure.

    Examples:
        ```python
        publisher = QuorumPublisher(pool, retries=1)
        await publisher.publish(event, ["wss://relay.damus.io", "wss://nos.lol"])
        ```
    """

    def __init__(
        self,
        pool: RelayPool,
        *,
        retries: int = 1,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._pool = pool
        self._retries = retries
        self._logger = Logger("publisher")
        self._metrics = metrics or MetricsRecorder("publisher")

    @property
    def retries(self) -> int:
        return self._retries

    async def publish(
        self, event: Event, relays: list[str], retries: int | None = None
    ) -> None:
        """Publish ``event`` until at least one relay acknowledges it.

        Args:
            event: Signed event.
            relays: Target relay URLs (must be non-empty).
            retries: Extra attempts after a total failure (defaults to the
                publisher's configured value).

        Raises:
            ConfigurationError: If ``relays`` is empty (before any I/O).
            PublishingError: If no relay acknowledged after all attempts.
        """
        if not relays:
            raise ConfigurationError("At least one relay is required")

        start = time.monotonic()
        try:
            await self._publish(event, relays, self._retries if retries is None else retries)
        finally:
            self._metrics.observe_publish(time.monotonic() - start)

    async def _publish(self, event: Event, relays: list[str], retries: int) -> None:
        await asyncio.gather(
            *(self._pool.ensure_connection(url) for url in relays),
            return_exceptions=True,
        )

        try:
            outcomes = await self._pool.publish(relays, event)
        except Exception as e:  # Intentionally broad: a pool failure rejects every relay
            outcomes = dict.fromkeys(relays, str(e) or type(e).__name__)

        accepted = [url for url in relays if url in outcomes and outcomes[url] is None]
        if accepted:
            self._metrics.inc_counter("events_published")
            self._logger.debug(
                "publish_succeeded",
                event_id=event.id,
                kind=event.kind,
                accepted=len(accepted),
                relays=len(relays),
            )
            return

        if retries > 0:
            self._logger.debug("publish_retry", event_id=event.id, retries_left=retries - 1)
            await self._publish(event, relays, retries - 1)
            return

        reason = next((outcomes[url] for url in relays if outcomes.get(url)), None)
        self._metrics.inc_counter("events_failed")
        self._logger.warning("publish_failed", event_id=event.id, kind=event.kind, reason=reason)
        raise PublishingError(reason or "Failed to publish to relays", reason=reason)
