"""Historical group discovery run once on connect.

[HistoryBootstrap][vectorbot.services.bootstrap.HistoryBootstrap] queries
the relays for gift-wraps addressed to the bot and for group wrappers
within the lookback window, replays both through the
[EnvelopeDispatcher][vectorbot.services.dispatcher.EnvelopeDispatcher] in
history mode, then merges the group lists reported by the adapter's
``sync_welcomes`` and ``bootstrap_groups`` operations.

Every failure is reported through ``error`` and the run carries on: the
bootstrap never aborts client startup.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from vectorbot.core.exceptions import AdapterError, ConnectivityError
from vectorbot.core.logger import Logger
from vectorbot.models.constants import DiscoverySource, InboundSource
from vectorbot.nips.filters import (
    history_gift_wrap_filter,
    history_group_filter,
    without_tag_constraints,
)
from vectorbot.services.adapter import adapter_method


if TYPE_CHECKING:
    from collections.abc import Callable

    from vectorbot.core.bus import NotificationBus
    from vectorbot.models.event import Event
    from vectorbot.services.adapter import AdapterContext
    from vectorbot.services.configs import GroupHistoryConfig
    from vectorbot.services.dispatcher import EnvelopeDispatcher
    from vectorbot.services.registry import GroupRegistry
    from vectorbot.utils.pool import RelayPool


class HistoryBootstrap:
    """One-shot historical discovery of the groups the bot belongs to."""

    def __init__(  # noqa: PLR0913
        self,
        pool: RelayPool,
        bus: NotificationBus,
        registry: GroupRegistry,
        dispatcher: EnvelopeDispatcher,
        config: GroupHistoryConfig,
        *,
        context: Callable[[], AdapterContext] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._pool = pool
        self._bus = bus
        self._registry = registry
        self._dispatcher = dispatcher
        self._config = config
        self._context = context
        self._clock = clock
        self._logger = Logger("bootstrap")

    async def run(self, relays: list[str], bot_pubkey: str) -> int:
        """Run the bootstrap and return the number of newly known groups."""
        config = self._config
        known_before = set(self._registry.known_group_ids())
        since = int(self._clock()) - config.since_hours * 3600

        gift_wraps = await self._query(
            relays, history_gift_wrap_filter(bot_pubkey, since, config.max_events)
        )
        wrappers = await self._query(
            relays, history_group_filter(self._dispatcher.wrapper_kind, since, config.max_events)
        )
        self._bus.emit(
            "group_bootstrap_debug",
            {
                "relays": list(relays),
                "gift_wrap_events": len(gift_wraps),
                "group_wrapper_events": len(wrappers),
                "since_hours": config.since_hours,
                "limit": config.max_events,
            },
        )

        for event in [*gift_wraps, *wrappers]:
            try:
                await self._dispatcher.dispatch(event, source=InboundSource.HISTORY)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Intentionally broad: one bad event must not stop the replay
                self._logger.warning("history_event_failed", event_id=event.id, error=str(e))
                self._bus.emit("error", e)

        await self._sync_adapter()

        known = self._registry.known_group_ids()
        discovered = len(set(known) - known_before)
        self._logger.info("bootstrap_completed", discovered=discovered, known=len(known))
        self._bus.emit(
            "group_bootstrap_complete", {"discovered": discovered, "known_group_ids": known}
        )
        return discovered

    async def _query(self, relays: list[str], filter_: dict[str, Any]) -> list[Event]:
        """Query ``filter_``, retrying without tag constraints on a timeout or an empty result.

        Some relays do not index the tags the filter constrains on; the
        untagged retry relies on the dispatcher to drop foreign events.
        """
        max_wait = self._config.max_wait
        untagged = without_tag_constraints(filter_)
        try:
            try:
                events = await self._pool.query_sync(relays, filter_, max_wait)
            except TimeoutError:
                self._logger.debug("history_query_timeout", filter=filter_)
                return await self._pool.query_sync(relays, untagged, max_wait)
            if events or untagged == filter_:
                return events
            self._logger.debug("history_query_empty_fallback", filter=filter_)
            return await self._pool.query_sync(relays, untagged, max_wait)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Intentionally broad: history is best effort
            self._logger.warning("history_query_failed", filter=filter_, error=str(e))
            self._bus.emit("error", ConnectivityError(f"History query failed: {e}"))
            return []

    async def _sync_adapter(self) -> None:
        adapter = self._dispatcher.adapter
        context = self._context() if self._context is not None else None
        if context is None:
            return

        sync_welcomes = adapter_method(adapter, "sync_welcomes")
        if sync_welcomes is not None:
            try:
                result = await sync_welcomes(context)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Intentionally broad: adapter failures are never fatal
                self._logger.warning("welcome_sync_failed", error=str(e))
                self._bus.emit("error", AdapterError(f"Welcome sync failed: {e}"))
            else:
                groups = list(getattr(result, "groups", ()) or ())
                self._bus.emit(
                    "mls_welcome_sync",
                    {
                        "processed": getattr(result, "processed", 0),
                        "accepted": getattr(result, "accepted", 0),
                        "groups": groups,
                    },
                )
                self._register(groups)

        bootstrap_groups = adapter_method(adapter, "bootstrap_groups")
        if bootstrap_groups is not None:
            try:
                groups = await bootstrap_groups(context)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Intentionally broad: adapter failures are never fatal
                self._logger.warning("bootstrap_groups_failed", error=str(e))
                self._bus.emit("error", AdapterError(f"Group listing failed: {e}"))
            else:
                self._register(groups or [])

    def _register(self, group_ids: list[str]) -> None:
        for group_id in group_ids:
            if group_id and group_id.strip():
                self._dispatcher.discover(group_id.strip(), DiscoverySource.HISTORY, joined=True)
