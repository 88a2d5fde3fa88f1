"""Bot client: connection lifecycle, inbound dispatch loop, outbound API.

[VectorBotClient][vectorbot.services.client.VectorBotClient] wires the
components of a bot together:

```text
subscriptions (gift-wrap, dm, group) --put_nowait--> asyncio.Queue
                                                        |
                                          dispatch task (single writer)
                                                        |
                        EnvelopeDispatcher -> GroupRegistry / MessageEmitter
                                                        |
                                               NotificationBus -> handlers

RelayHealthMonitor (own task) ---- connection_status ----> RelayPool
send_* ---- QuorumPublisher ---- publish ----------------> RelayPool
```

Lifecycle:
    1. ``connect()``: validate configuration (no network before this passes),
       publish the kind-0 profile, make sure an MLS key package exists,
       run the historical bootstrap, open subscriptions, start the dispatch
       task and the health monitor, notify ``ready``. A failure part way
       through tears down whatever was already started.
    2. ``send_*()``: sign, publish through the quorum publisher. Without
       auto-discovery, every newly known group widens the ``#h`` filter of
       the group subscription.
    3. ``close()``: stop the monitor, close subscriptions, stop the dispatch
       task, close the pool. Idempotent.

Examples:
    ```python
    client = VectorBotClient.from_yaml("config/vectorbot.yaml")

    @client.on("message")
    async def reply(message: BotMessage) -> None:
        if not message.self_authored and message.content == "!ping":
            await client.send_message(message.sender, "pong")

    async with client:
        await asyncio.Event().wait()
    ```
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

from vectorbot.core.bus import NotificationBus
from vectorbot.core.exceptions import (
    AdapterError,
    ConfigurationError,
    ConnectivityError,
    PublishingError,
)
from vectorbot.core.logger import Logger
from vectorbot.core.metrics import BOT_INFO, MetricsRecorder
from vectorbot.core.yaml import load_yaml
from vectorbot.models.attachment import AttachmentFile
from vectorbot.models.constants import DiscoverySource, GroupMode, InboundSource
from vectorbot.models.profile import Profile
from vectorbot.nips.event_builders import (
    build_direct_message,
    build_file_message,
    build_group_chat_message,
    build_private_message_rumor,
    build_profile_event,
    build_reaction,
    build_typing_indicator,
)
from vectorbot.nips.filters import (
    create_gift_wrap_filter,
    direct_message_filter,
    group_subscription_filter,
    profile_filter,
)
from vectorbot.services.adapter import AdapterContext, SidecarAdapter, adapter_method
from vectorbot.services.bootstrap import HistoryBootstrap
from vectorbot.services.configs import VectorBotConfig
from vectorbot.services.dispatcher import EnvelopeDispatcher
from vectorbot.services.emitter import DedupCache, MessageEmitter, ProfileCache
from vectorbot.services.health import RelayHealthMonitor
from vectorbot.services.publisher import QuorumPublisher
from vectorbot.services.registry import GroupRegistry
from vectorbot.utils.crypto import (
    NostrSdkCrypto,
    calculate_file_hash,
    encrypt_data,
    generate_encryption_params,
)
from vectorbot.utils.keys import normalize_public_key
from vectorbot.utils.pool import NostrSdkRelayPool
from vectorbot.utils.upload import Nip96Uploader


if TYPE_CHECKING:
    from collections.abc import Callable

    from vectorbot.models.event import Event, EventTemplate
    from vectorbot.utils.crypto import CryptoPrimitives
    from vectorbot.utils.pool import RelayPool, SubscriptionHandle


PROFILE_LOOKUP_WAIT = 4.0


class VectorBotClient:
    """A bot identity connected to a relay set.

    Args:
        config: Validated [VectorBotConfig][vectorbot.services.configs.VectorBotConfig].
        pool: Relay pool (defaults to a
            [NostrSdkRelayPool][vectorbot.utils.pool.NostrSdkRelayPool]).
        crypto: Crypto primitives (defaults to
            [NostrSdkCrypto][vectorbot.utils.crypto.NostrSdkCrypto]).
        adapter: Group-crypto adapter (defaults to a
            [SidecarAdapter][vectorbot.services.adapter.SidecarAdapter] when
            ``config.sidecar.enabled``, else none).
        bus: Notification bus (a fresh one by default).
    """

    def __init__(
        self,
        config: VectorBotConfig,
        *,
        pool: RelayPool | None = None,
        crypto: CryptoPrimitives | None = None,
        adapter: object | None = None,
        bus: NotificationBus | None = None,
    ) -> None:
        self._config = config
        self._logger = Logger("client")
        self._bus = bus or NotificationBus()
        self._pool: RelayPool = pool if pool is not None else NostrSdkRelayPool(config.keys)
        self._crypto: CryptoPrimitives = crypto if crypto is not None else NostrSdkCrypto(config.keys)
        if adapter is None and config.sidecar.enabled:
            adapter = SidecarAdapter(
                config.sidecar.bin_path, config.sidecar.state_dir, timeout=config.sidecar.timeout
            )
        self._adapter = adapter
        self._pubkey = self._crypto.public_key

        metrics = config.metrics
        self._metrics = MetricsRecorder("client", metrics)
        self._registry = GroupRegistry(config.groups.group_ids)
        self._emitter = MessageEmitter(
            self._bus,
            self._pubkey,
            ProfileCache(self._lookup_profile),
            DedupCache(config.dedup.capacity),
            metrics=MetricsRecorder("emitter", metrics),
        )
        self._dispatcher = EnvelopeDispatcher(
            self._bus,
            self._registry,
            self._emitter,
            self._crypto,
            names=(config.profile.name, config.profile.display_name),
            mode=config.groups.mode,
            adapter=self._adapter,
            context=self.adapter_context,
            metrics=MetricsRecorder("dispatcher", metrics),
        )
        self._publisher = QuorumPublisher(
            self._pool,
            retries=config.publishing.retries,
            metrics=MetricsRecorder("publisher", metrics),
        )
        self._uploader = Nip96Uploader(
            self._crypto,
            server_url=config.upload.server_url,
            retry_count=config.upload.retry_count,
            retry_spacing=config.upload.retry_spacing,
            timeout=config.upload.timeout,
        )

        self._queue: asyncio.Queue[tuple[Event, InboundSource]] = asyncio.Queue()
        self._dispatch_task: asyncio.Task[None] | None = None
        self._subscriptions: dict[str, SubscriptionHandle] = {}
        self._group_ids: list[str] = []
        self._group_lock = asyncio.Lock()
        self._health: RelayHealthMonitor | None = None
        self._connected = False
        self._closing = False

        if not config.groups.auto_discover:
            self._bus.on("group_discovered", self._refresh_group_subscription)

    # -------------------------------------------------------------------------
    # Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict[str, Any], **kwargs: Any) -> Self:
        """Create a client from a configuration dictionary."""
        return cls(VectorBotConfig(**data), **kwargs)

    @classmethod
    def from_yaml(cls, config_path: str | Path, **kwargs: Any) -> Self:
        """Create a client from a YAML configuration file."""
        return cls.from_dict(load_yaml(str(config_path)), **kwargs)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> VectorBotConfig:
        return self._config

    @property
    def pubkey(self) -> str:
        return self._pubkey

    @property
    def bus(self) -> NotificationBus:
        return self._bus

    @property
    def registry(self) -> GroupRegistry:
        return self._registry

    @property
    def dispatcher(self) -> EnvelopeDispatcher:
        return self._dispatcher

    @property
    def relays(self) -> list[str]:
        return list(self._config.relays)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def known_group_ids(self) -> list[str]:
        return self._registry.known_group_ids()

    def joined_group_ids(self) -> list[str]:
        return self._registry.joined_group_ids()

    def observed_group_ids(self) -> list[str]:
        return self._registry.observed_group_ids()

    def on(self, name: str, handler: Callable[[Any], Any] | None = None) -> Any:
        """Subscribe to a notification; usable as ``@client.on("message")``."""
        if handler is None:
            return lambda fn: self._bus.on(name, fn)
        return self._bus.on(name, handler)

    def off(self, name: str, handler: Callable[[Any], Any]) -> None:
        self._bus.off(name, handler)

    def adapter_context(self) -> AdapterContext:
        private_key = (
            self._config.keys.secret_key().to_hex()
            if self._config.sidecar.share_private_key
            else None
        )
        return AdapterContext(
            bot_public_key=self._pubkey,
            relays=tuple(self._config.relays),
            bot_private_key=private_key,
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect the bot; see the module docstring for the sequence.

        Raises:
            ConfigurationError: If the relay list is empty (before any I/O).
            Exception: Any subscription or pool failure, re-raised after the
                partially started client is torn down.
        """
        if self._connected:
            return
        relays = self.relays
        if not relays:
            raise ConfigurationError("At least one relay is required")

        self._closing = False
        if self._metrics.enabled:
            BOT_INFO.info({"pubkey": self._pubkey, "mode": str(self._config.groups.mode)})

        try:
            await self._start(relays)
        except BaseException as e:
            self._logger.error("connect_failed", error=str(e))
            self._closing = True
            await self._teardown()
            raise

        self._connected = True
        profile = self._config.profile
        self._logger.info("connected", pubkey=self._pubkey, relays=len(relays))
        self._bus.emit(
            "ready",
            {
                "pubkey": self._pubkey,
                "profile": {"name": profile.name, "display_name": profile.display_name},
            },
        )

    async def close(self) -> None:
        """Stop the monitor, close subscriptions and the dispatch task, close the pool."""
        if not self._connected or self._closing:
            return
        self._closing = True
        await self._teardown()
        self._logger.info("closed")

    async def _teardown(self) -> None:
        if self._health is not None:
            await self._health.stop()
            self._health = None

        for handle in self._subscriptions.values():
            handle.close("shutdown")
        self._subscriptions.clear()
        self._group_ids = []

        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._dispatch_task
            self._dispatch_task = None

        await self._pool.close()
        self._connected = False

    async def wait_idle(self) -> None:
        """Wait until every queued event is dispatched and every async handler returned."""
        await self._queue.join()
        await self._bus.drain()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_val: BaseException | None,
        _exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Startup steps
    # -------------------------------------------------------------------------

    async def _start(self, relays: list[str]) -> None:
        await self._publish_profile()
        await self._ensure_key_package()

        if self._config.groups.history.enabled:
            bootstrap = HistoryBootstrap(
                self._pool,
                self._bus,
                self._registry,
                self._dispatcher,
                self._config.groups.history,
                context=self.adapter_context if self._adapter is not None else None,
            )
            try:
                await bootstrap.run(relays, self._pubkey)
            except Exception as e:  # Intentionally broad: bootstrap never aborts startup
                self._logger.exception("bootstrap_failed", error=str(e))
                self._bus.emit("error", e)

        await self._open_subscriptions(relays)
        self._dispatch_task = asyncio.create_task(
            self._dispatch_loop(), name="vectorbot-dispatch"
        )

        if self._config.health.enabled:
            self._health = RelayHealthMonitor(
                self._pool, self._bus, relays, self._config.health, metrics=self._config.metrics
            )
            self._health.start()

    async def _publish_profile(self) -> None:
        try:
            await self._publish(self._crypto.sign_event(build_profile_event(self._config.profile)))
        except Exception as e:  # Intentionally broad: a missing profile never blocks startup
            self._logger.warning("profile_publish_failed", error=str(e))

    async def _ensure_key_package(self) -> None:
        ensure = adapter_method(self._adapter, "ensure_key_package")
        if ensure is None:
            return
        try:
            result = await ensure(self.adapter_context())
        except Exception as e:  # Intentionally broad: adapter failures are never fatal
            self._logger.warning("key_package_failed", error=str(e))
            self._bus.emit("error", AdapterError(f"Key package publish failed: {e}"))
            return
        self._bus.emit(
            "mls_keypackage",
            {
                "published": bool(getattr(result, "published", False)),
                "event_id": getattr(result, "event_id", None),
            },
        )

    async def _open_subscriptions(self, relays: list[str]) -> None:
        groups = self._config.groups
        plans: list[tuple[str, dict[str, Any], InboundSource]] = [
            ("gift-wrap", create_gift_wrap_filter(self._pubkey), InboundSource.GIFT_WRAP),
            ("dm", direct_message_filter(self._pubkey), InboundSource.DM),
        ]
        known = self._registry.known_group_ids()
        if groups.auto_discover or known:
            group_filter = group_subscription_filter(
                self._dispatcher.wrapper_kind,
                None if groups.auto_discover else known,
                since=int(time.time()),
            )
            plans.append(("group", group_filter, InboundSource.GROUP))
            self._group_ids = known

        for name, filter_, source in plans:
            self._subscriptions[name] = await self._subscribe(relays, name, filter_, source)

    async def _subscribe(
        self, relays: list[str], name: str, filter_: dict[str, Any], source: InboundSource
    ) -> SubscriptionHandle:
        handle = await self._pool.subscribe(
            relays,
            filter_,
            self._make_enqueue(source),
            self._make_on_close(name),
        )
        self._logger.debug("subscription_opened", name=name, filter=filter_)
        return handle

    async def _refresh_group_subscription(self, _payload: Any = None) -> None:
        """Widen the ``#h``-restricted group subscription to every known group id.

        The new subscription is opened before the old one is closed so no
        wrapper is missed in between.
        """
        async with self._group_lock:
            if not self._connected or self._closing:
                return
            known = self._registry.known_group_ids()
            if not known or known == self._group_ids:
                return
            filter_ = group_subscription_filter(
                self._dispatcher.wrapper_kind, known, since=int(time.time())
            )
            try:
                handle = await self._subscribe(self.relays, "group", filter_, InboundSource.GROUP)
            except Exception as e:  # Intentionally broad: the previous subscription stays open
                self._logger.warning("group_resubscribe_failed", groups=len(known), error=str(e))
                self._bus.emit("error", ConnectivityError(f"Group resubscribe failed: {e}"))
                return
            previous = self._subscriptions.get("group")
            self._subscriptions["group"] = handle
            self._group_ids = known
            if previous is not None:
                previous.close("resubscribe")
            self._logger.info("group_subscription_refreshed", groups=len(known))

    def _make_enqueue(self, source: InboundSource) -> Callable[[Event], None]:
        def enqueue(event: Event) -> None:
            self._queue.put_nowait((event, source))

        return enqueue

    def _make_on_close(self, name: str) -> Callable[[list[str]], None]:
        def on_close(reasons: list[str]) -> None:
            if self._closing:
                return
            self._logger.warning("subscription_closed", name=name, reasons=reasons)
            self._bus.emit(
                "disconnect", {"relay": name, "error": ConnectivityError(", ".join(reasons))}
            )

        return on_close

    async def _dispatch_loop(self) -> None:
        while True:
            event, source = await self._queue.get()
            try:
                await self._dispatcher.dispatch(event, source=source)
            except asyncio.CancelledError:
                raise
            except Exception as e:  # Intentionally broad: one event must not stop dispatch
                self._logger.exception("dispatch_failed", event_id=event.id, error=str(e))
                self._bus.emit("error", e)
            finally:
                self._queue.task_done()

    async def _lookup_profile(self, pubkey: str) -> Profile | None:
        events = await self._pool.query_sync(
            self.relays, profile_filter(pubkey), PROFILE_LOOKUP_WAIT
        )
        if not events:
            return None
        newest = max(events, key=lambda event: event.created_at)
        return Profile.from_metadata_json(newest.content)

    # -------------------------------------------------------------------------
    # Outbound API
    # -------------------------------------------------------------------------

    def _require_connected(self) -> None:
        if not self._connected:
            raise ConfigurationError("Bot is not connected")

    async def _publish(self, event: Event) -> None:
        await self._publisher.publish(event, self.relays)

    async def _sign_and_publish(self, template: EventTemplate) -> None:
        await self._publish(self._crypto.sign_event(template))

    async def send_message(self, recipient: str, text: str) -> bool:
        """Send a direct message as both NIP-04 and NIP-17 gift-wrap.

        Returns:
            Whether at least one of the two forms was published.
        """
        self._require_connected()
        recipient = normalize_public_key(recipient)
        sent = False

        try:
            ciphertext = self._crypto.encrypt_direct(recipient, text)
            await self._sign_and_publish(build_direct_message(recipient, ciphertext))
            sent = True
        except Exception as e:  # Intentionally broad: the NIP-17 form may still succeed
            self._logger.warning("nip04_send_failed", recipient=recipient, error=str(e))

        try:
            wrapped = await self._crypto.wrap_envelope(
                build_private_message_rumor(recipient, text), recipient
            )
            await self._publish(wrapped)
            sent = True
        except Exception as e:  # Intentionally broad: reported through the return value
            self._logger.warning("gift_wrap_send_failed", recipient=recipient, error=str(e))

        self._logger.debug("message_sent", recipient=recipient, sent=sent)
        return sent

    async def send_reaction(self, recipient: str, event_id: str, emoji: str) -> bool:
        self._require_connected()
        try:
            await self._sign_and_publish(
                build_reaction(normalize_public_key(recipient), event_id, emoji)
            )
        except Exception as e:  # Intentionally broad: reported through the return value
            self._logger.warning("reaction_send_failed", event_id=event_id, error=str(e))
            return False
        return True

    async def send_typing_indicator(self, recipient: str) -> bool:
        self._require_connected()
        try:
            await self._sign_and_publish(build_typing_indicator(normalize_public_key(recipient)))
        except Exception as e:  # Intentionally broad: reported through the return value
            self._logger.warning("typing_send_failed", recipient=recipient, error=str(e))
            return False
        return True

    async def send_file(self, recipient: str, path: str | Path) -> bool:
        """Encrypt a file, upload it, and send a kind-15 file message."""
        self._require_connected()
        recipient = normalize_public_key(recipient)
        try:
            attachment = AttachmentFile.from_path(path)
            params = generate_encryption_params()
            encrypted = encrypt_data(attachment.data, params)
            url = await self._uploader.upload(encrypted, attachment.mime_type)
            template = build_file_message(
                recipient,
                url,
                mime_type=attachment.mime_type,
                size=len(encrypted),
                decryption_key=params.key,
                decryption_nonce=params.nonce,
                file_hash=calculate_file_hash(attachment.data),
                image=attachment.image,
            )
            await self._sign_and_publish(template)
        except Exception as e:  # Intentionally broad: reported through the return value
            self._logger.warning("file_send_failed", recipient=recipient, error=str(e))
            return False
        self._logger.debug("file_sent", recipient=recipient, url=url)
        return True

    async def send_group_message(self, group_id: str, text: str) -> bool:
        """Send ``text`` to a group.

        Restricted mode with an adapter able to send uses the adapter; any
        other case publishes a kind-9 chat message with an ``h`` tag.

        Raises:
            ConfigurationError: If ``group_id`` is blank.
        """
        group_id = group_id.strip()
        if not group_id:
            raise ConfigurationError("Group id is required")
        self._require_connected()

        send = adapter_method(self._adapter, "send_group_message")
        if self._config.groups.mode == GroupMode.RESTRICTED and send is not None:
            try:
                sent = bool(await send(group_id, text, self.adapter_context()))
            except Exception as e:  # Intentionally broad: adapter failures are never fatal
                self._logger.warning("group_send_failed", group_id=group_id, error=str(e))
                self._bus.emit("error", AdapterError(f"Group send failed: {e}"))
                return False
        else:
            try:
                await self._sign_and_publish(build_group_chat_message(group_id, text))
                sent = True
            except PublishingError as e:
                self._logger.warning("group_send_failed", group_id=group_id, error=str(e))
                return False

        if sent:
            self._dispatcher.discover(group_id, DiscoverySource.SEND, joined=True)
        return sent
