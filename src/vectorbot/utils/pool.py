"""Relay pool abstraction and its ``nostr_sdk`` implementation.

[RelayPool][vectorbot.utils.pool.RelayPool] is everything the bot runtime
needs from the transport: best-effort connection, multi-relay publish with
per-relay outcomes, live subscriptions with event and close callbacks,
bounded historical queries, and a per-relay connectivity snapshot.

[NostrSdkRelayPool][vectorbot.utils.pool.NostrSdkRelayPool] wraps one
``nostr_sdk.Client``. A single notification task routes incoming events to
the subscription that requested them, so callbacks run on the event loop
and never on an FFI thread.

Note:
    Relay URLs are compared in their normalized
    [Relay][vectorbot.models.relay.Relay] form; the SDK may report them with
    a trailing slash.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol

from nostr_sdk import Event as NostrEvent
from nostr_sdk import (
    Client,
    ClientBuilder,
    Filter,
    HandleNotification,
    NostrSigner,
    RelayUrl,
)

from vectorbot.models.event import Event
from vectorbot.models.relay import Relay


if TYPE_CHECKING:
    from nostr_sdk import Keys, RelayMessage


logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0

EventCallback = Callable[[Event], None]
CloseCallback = Callable[[list[str]], None]


class SubscriptionHandle(Protocol):
    def close(self, reason: str = "closed") -> None:
        """Stop delivering events; idempotent."""
        ...


class RelayPool(Protocol):
    """Transport operations consumed by the bot runtime."""

    async def ensure_connection(self, url: str) -> None:
        """Open (or confirm) a connection to ``url``.

        Raises:
            ConnectionError: If the relay cannot be reached.
        """
        ...

    async def publish(self, urls: list[str], event: Event) -> dict[str, str | None]:
        """Send ``event`` to every relay in ``urls``.

        Returns:
            Mapping of relay URL to ``None`` (acknowledged) or a rejection reason.
        """
        ...

    async def subscribe(
        self,
        urls: list[str],
        filter_: dict[str, Any],
        on_event: EventCallback,
        on_close: CloseCallback | None = None,
    ) -> SubscriptionHandle:
        """Open a live subscription; ``on_event`` is called per matching event."""
        ...

    async def query_sync(
        self, urls: list[str], filter_: dict[str, Any], max_wait: float
    ) -> list[Event]:
        """Collect stored events matching ``filter_``.

        Raises:
            TimeoutError: If the relays did not finish within ``max_wait``.
        """
        ...

    async def connection_status(self) -> dict[str, bool]:
        """Current connectivity per relay URL."""
        ...

    async def close(self) -> None:
        """Disconnect every relay and release resources."""
        ...


def _normalize(url: str) -> str:
    try:
        return Relay(url).url
    except ValueError:
        return url.rstrip("/")


class _NostrSdkSubscription:
    def __init__(self, pool: NostrSdkRelayPool, subscription_id: str) -> None:
        self._pool = pool
        self.id = subscription_id
        self.closed = False

    def close(self, reason: str = "closed") -> None:
        if self.closed:
            return
        self.closed = True
        self._pool._drop_subscription(self.id, reason)


class _NotificationRouter(HandleNotification):
    """Routes SDK notifications to subscription callbacks by subscription id."""

    def __init__(self, pool: NostrSdkRelayPool) -> None:
        self._pool = pool

    async def handle(self, relay_url: RelayUrl, subscription_id: str, event: NostrEvent) -> None:
        callbacks = self._pool._callbacks.get(subscription_id)
        if callbacks is None:
            return
        try:
            parsed = Event.from_json(event.as_json())
        except (ValueError, TypeError) as e:
            logger.debug("event_parse_failed relay=%s error=%s", relay_url, e)
            return
        callbacks[0](parsed)

    async def handle_msg(self, relay_url: RelayUrl, msg: RelayMessage) -> None:
        try:
            payload = json.loads(msg.as_json())
        except (ValueError, TypeError):
            return
        if not isinstance(payload, list) or len(payload) < 2 or payload[0] != "CLOSED":  # noqa: PLR2004
            return
        subscription_id = payload[1]
        reason = payload[2] if len(payload) > 2 else ""  # noqa: PLR2004
        callbacks = self._pool._callbacks.pop(subscription_id, None)
        logger.debug(
            "subscription_closed_by_relay relay=%s id=%s reason=%s",
            relay_url,
            subscription_id,
            reason,
        )
        if callbacks is not None and callbacks[1] is not None:
            callbacks[1]([f"{_normalize(str(relay_url))}: {reason}"])


class NostrSdkRelayPool:
    """[RelayPool][vectorbot.utils.pool.RelayPool] backed by a ``nostr_sdk.Client``.

    Examples:
        ```python
        pool = NostrSdkRelayPool(keys)
        await pool.ensure_connection("wss://relay.damus.io")
        outcomes = await pool.publish(["wss://relay.damus.io"], event)
        await pool.close()
        ```
    """

    def __init__(
        self,
        keys: Keys | None = None,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        builder = ClientBuilder()
        if keys is not None:
            builder = builder.signer(NostrSigner.keys(keys))
        self._client: Client = builder.build()
        self._connect_timeout = connect_timeout
        self._callbacks: dict[str, tuple[EventCallback, CloseCallback | None]] = {}
        self._notifications: asyncio.Task[None] | None = None
        self._pending_unsubscribes: set[asyncio.Task[None]] = set()

    async def ensure_connection(self, url: str) -> None:
        relay_url = RelayUrl.parse(url)
        await self._client.add_relay(relay_url)
        relay = await self._client.relay(relay_url)
        if relay.is_connected():
            return
        output = await self._client.try_connect(timedelta(seconds=self._connect_timeout))
        if relay_url not in output.success:
            error_message = output.failed.get(relay_url, "Unknown error")
            raise ConnectionError(f"Connection failed: {url} ({error_message})")

    async def publish(self, urls: list[str], event: Event) -> dict[str, str | None]:
        relay_urls = [RelayUrl.parse(url) for url in urls]
        try:
            output = await self._client.send_event_to(
                relay_urls, NostrEvent.from_json(event.to_json())
            )
        except Exception as e:  # nostr-sdk FFI raises its own error type
            return dict.fromkeys(urls, str(e) or type(e).__name__)

        outcomes: dict[str, str | None] = {}
        for url, relay_url in zip(urls, relay_urls, strict=True):
            if relay_url in output.success:
                outcomes[url] = None
            else:
                outcomes[url] = output.failed.get(relay_url) or "not acknowledged"
        return outcomes

    async def subscribe(
        self,
        urls: list[str],
        filter_: dict[str, Any],
        on_event: EventCallback,
        on_close: CloseCallback | None = None,
    ) -> SubscriptionHandle:
        self._ensure_notification_task()
        output = await self._client.subscribe_to(
            [RelayUrl.parse(url) for url in urls], Filter.from_json(json.dumps(filter_))
        )
        subscription_id = str(output.id)
        self._callbacks[subscription_id] = (on_event, on_close)
        return _NostrSdkSubscription(self, subscription_id)

    async def query_sync(
        self, urls: list[str], filter_: dict[str, Any], max_wait: float
    ) -> list[Event]:
        events = await asyncio.wait_for(
            self._client.fetch_events_from(
                [RelayUrl.parse(url) for url in urls],
                Filter.from_json(json.dumps(filter_)),
                timedelta(seconds=max_wait),
            ),
            timeout=max_wait + 1.0,
        )
        parsed: list[Event] = []
        for evt in events.to_vec():
            try:
                parsed.append(Event.from_json(evt.as_json()))
            except (ValueError, TypeError):
                continue
        return parsed

    async def connection_status(self) -> dict[str, bool]:
        relays = await self._client.relays()
        return {_normalize(str(url)): relay.is_connected() for url, relay in relays.items()}

    async def close(self) -> None:
        for subscription_id in list(self._callbacks):
            self._drop_subscription(subscription_id, "shutdown")
        if self._pending_unsubscribes:
            await asyncio.gather(*self._pending_unsubscribes, return_exceptions=True)
        # nostr-sdk Rust FFI can raise arbitrary exception types during shutdown.
        with contextlib.suppress(Exception):
            await self._client.shutdown()
        if self._notifications is not None:
            self._notifications.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._notifications
            self._notifications = None

    def _ensure_notification_task(self) -> None:
        if self._notifications is None or self._notifications.done():
            self._notifications = asyncio.create_task(
                self._client.handle_notifications(_NotificationRouter(self)),
                name="vectorbot-notifications",
            )

    def _drop_subscription(self, subscription_id: str, reason: str) -> None:
        if self._callbacks.pop(subscription_id, None) is None:
            return
        logger.debug("subscription_closing id=%s reason=%s", subscription_id, reason)
        task = asyncio.ensure_future(self._client.unsubscribe(subscription_id))
        self._pending_unsubscribes.add(task)
        task.add_done_callback(self._pending_unsubscribes.discard)
