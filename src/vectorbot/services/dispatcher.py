"""Inbound event classification and routing.

[EnvelopeDispatcher][vectorbot.services.dispatcher.EnvelopeDispatcher] is
the single entry point for every event the bot receives, live or
historical. It runs on the client's dispatch task only, so registry, dedup,
and profile-cache mutations have a single writer.

```text
kind 4      -> NIP-04 decrypt -> emitter (dm)
kind 1059   -> unwrap (silent on failure) -> rumor kind:
                 14       -> emitter (dm, wrapped)
                 wrapper  -> rebuild normalized event -> group wrapper path
                 444      -> welcome: register hint, notify, adapter
wrapper     -> group id -> observed -> restricted: tracked? adapter decrypt -> emitter
                                   -> open: plaintext -> emitter
```

Historical events (``source=InboundSource.HISTORY``) take the same path with
two differences: direct messages are only marked as seen, never replayed,
and group wrappers only register their group id as known.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from vectorbot.core.exceptions import AdapterError, DecryptionError
from vectorbot.core.logger import Logger
from vectorbot.core.metrics import MetricsRecorder
from vectorbot.models._validation import is_hex64
from vectorbot.models.constants import (
    DiscoverySource,
    EventKind,
    GroupMode,
    InboundSource,
    MessageOrigin,
)
from vectorbot.models.event import Event
from vectorbot.services.adapter import WelcomeInput, adapter_method
from vectorbot.services.directed import extract_group_id, is_directed_to_bot


if TYPE_CHECKING:
    from vectorbot.core.bus import NotificationBus
    from vectorbot.services.adapter import AdapterContext
    from vectorbot.services.emitter import MessageEmitter
    from vectorbot.services.registry import GroupRegistry
    from vectorbot.utils.crypto import CryptoPrimitives


def rebuild_wrapper(rumor: Event, envelope: Event) -> Event:
    """Normalized group-wrapper event from a gift-wrapped wrapper rumor.

    The rumor id and timestamp are kept when structurally valid (64 hex
    characters, positive timestamp), otherwise the envelope's are used. The
    signature is always the envelope's; author, kind, tags, and content are
    the rumor's.
    """
    return Event(
        id=rumor.id if is_hex64(rumor.id) else envelope.id,
        pubkey=rumor.pubkey,
        kind=rumor.kind,
        created_at=rumor.created_at if rumor.created_at > 0 else envelope.created_at,
        tags=rumor.tags,
        content=rumor.content,
        sig=envelope.sig,
    )


class EnvelopeDispatcher:
    """Routes inbound events to the emitter, the registry, and the adapter.

    Args:
        bus: Notification bus for diagnostics and discovery notifications.
        registry: Group sets owned by the client.
        emitter: Deduplicating message emitter.
        crypto: Bot-bound crypto primitives.
        names: Bot short name and display name used for mentions.
        mode: Group mode; selects the wrapper kind and its handling.
        adapter: Optional group-crypto adapter (methods checked per call).
        context: Factory of the [AdapterContext][vectorbot.services.adapter.AdapterContext]
            passed to adapter calls.
    """

    def __init__(  # noqa: PLR0913
        self,
        bus: NotificationBus,
        registry: GroupRegistry,
        emitter: MessageEmitter,
        crypto: CryptoPrimitives,
        *,
        names: Iterable[str | None] = (),
        mode: GroupMode = GroupMode.RESTRICTED,
        adapter: object | None = None,
        context: Callable[[], AdapterContext] | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._bus = bus
        self._registry = registry
        self._emitter = emitter
        self._crypto = crypto
        self._bot_pubkey = crypto.public_key
        self._names = tuple(name for name in names if name)
        self._mode = mode
        self._adapter = adapter
        self._context = context
        self._logger = Logger("dispatcher")
        self._metrics = metrics or MetricsRecorder("dispatcher")

    @property
    def wrapper_kind(self) -> int:
        if self._mode == GroupMode.OPEN:
            return EventKind.CHAT_MESSAGE
        return EventKind.MLS_GROUP_MESSAGE

    @property
    def adapter(self) -> object | None:
        return self._adapter

    async def dispatch(self, event: Event, *, source: InboundSource = InboundSource.DM) -> None:
        """Classify one inbound event and route it."""
        history = source == InboundSource.HISTORY
        self._metrics.inc_counter(f"events_{source}")

        if event.kind == EventKind.ENCRYPTED_DIRECT_MESSAGE:
            await self._handle_direct(event, history=history)
        elif event.kind == EventKind.GIFT_WRAP:
            await self._handle_gift_wrap(event, history=history)
        elif event.kind == self.wrapper_kind:
            await self._handle_group_wrapper(event, history=history)
        else:
            self._logger.debug("event_ignored", event_id=event.id, kind=event.kind, source=source)

    # -------------------------------------------------------------------------
    # Registry helpers
    # -------------------------------------------------------------------------

    def discover(self, group_id: str, source: DiscoverySource, *, joined: bool = False) -> bool:
        """Register ``group_id`` and notify ``group_discovered`` if it is newly known.

        Returns:
            Whether the id was new to the known set.
        """
        is_new = not self._registry.is_known(group_id)
        if joined:
            self._registry.register_joined(group_id)
        else:
            self._registry.register_known(group_id)
        if is_new:
            self._metrics.inc_counter("groups_discovered")
            self._logger.info("group_discovered", group_id=group_id, source=source)
            self._bus.emit("group_discovered", {"group_id": group_id, "source": source})
        return is_new

    def is_bot_in_group(self, group_id: str, sender: str) -> bool:
        """Whether the bot belongs to ``group_id``; a message sent by the bot marks it joined."""
        if sender == self._bot_pubkey:
            self._registry.register_joined(group_id)
            return True
        return self._registry.is_joined(group_id) or self._registry.is_configured(group_id)

    def _adapter_context(self) -> AdapterContext | None:
        return self._context() if self._context is not None else None

    # -------------------------------------------------------------------------
    # Direct messages
    # -------------------------------------------------------------------------

    async def _handle_direct(self, event: Event, *, history: bool) -> None:
        if history:
            self._emitter.mark_seen(event.id)
            return
        try:
            plaintext = self._crypto.decrypt_direct(event.pubkey, event.content)
        except Exception as e:  # nostr-sdk FFI raises its own error type
            self._logger.warning("dm_decrypt_failed", event_id=event.id, error=str(e))
            self._bus.emit("error", DecryptionError(f"Failed to decrypt NIP-04 DM {event.id}: {e}"))
            return

        await self._emitter.emit(
            sender=event.pubkey,
            content=plaintext,
            kind=event.kind,
            raw_event=event,
            origin=MessageOrigin.DM,
            wrapped=False,
        )

    # -------------------------------------------------------------------------
    # Gift-wraps
    # -------------------------------------------------------------------------

    async def _handle_gift_wrap(self, envelope: Event, *, history: bool) -> None:
        try:
            rumor = await self._crypto.unwrap_envelope(envelope)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Expected: the subscription sees wraps for other identities
            self._logger.debug("gift_wrap_unwrap_failed", event_id=envelope.id, error=str(e))
            return

        if rumor.kind == EventKind.PRIVATE_DIRECT_MESSAGE:
            if not rumor.content:
                return
            if history:
                self._emitter.mark_seen(envelope.id)
                return
            await self._emitter.emit(
                sender=rumor.pubkey,
                content=rumor.content,
                kind=rumor.kind,
                raw_event=envelope,
                origin=MessageOrigin.DM,
                wrapped=True,
            )
        elif rumor.kind == self.wrapper_kind:
            await self._handle_group_wrapper(rebuild_wrapper(rumor, envelope), history=history)
        elif rumor.kind == EventKind.MLS_WELCOME:
            await self._handle_welcome(rumor, envelope, history=history)
        else:
            self._logger.debug("rumor_ignored", event_id=envelope.id, kind=rumor.kind)

    async def _handle_welcome(self, rumor: Event, envelope: Event, *, history: bool) -> None:
        source = DiscoverySource.HISTORY if history else DiscoverySource.WELCOME
        hint = extract_group_id(rumor.tags)
        if hint is not None:
            self.discover(hint, source, joined=True)

        self._bus.emit(
            "mls_welcome",
            {"group_id": hint, "event_id": envelope.id, "sender": rumor.pubkey, "rumor": rumor},
        )

        process = adapter_method(self._adapter, "process_welcome")
        context = self._adapter_context()
        if process is None or context is None:
            return
        try:
            result = await process(
                WelcomeInput(
                    wrapper_event=envelope, rumor=rumor, context=context, group_id_hint=hint
                )
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Intentionally broad: adapter failures are never fatal
            self._logger.warning("welcome_process_failed", event_id=envelope.id, error=str(e))
            self._bus.emit("error", AdapterError(f"Welcome processing failed: {e}"))
            self._bus.emit("mls_welcome_process_failed", {"group_id": hint, "error": str(e)})
            return

        group_id = getattr(result, "group_id", None) or hint
        if group_id:
            self.discover(group_id, source, joined=True)
        self._bus.emit("mls_welcome_processed", {"group_id": group_id})

    # -------------------------------------------------------------------------
    # Group wrappers
    # -------------------------------------------------------------------------

    async def _handle_group_wrapper(self, event: Event, *, history: bool) -> None:
        group_id = extract_group_id(event.tags)
        if group_id is None:
            if history:
                self._logger.debug("history_wrapper_unresolved", event_id=event.id)
                return
            self._bus.emit(
                "group_wrapper_unresolved",
                {"event_id": event.id, "sender": event.pubkey, "tag_keys": event.tag_keys()},
            )
            return

        self._registry.observe(group_id)

        if history:
            if event.id:
                self._emitter.mark_seen(event.id)
            self.discover(group_id, DiscoverySource.HISTORY)
            return

        if event.id and event.id in self._emitter.dedup:
            self._logger.debug("wrapper_replay_skipped", event_id=event.id, group_id=group_id)
            return

        if self._mode == GroupMode.OPEN:
            await self._handle_open_message(event, group_id)
        else:
            await self._handle_restricted_wrapper(event, group_id)

    async def _handle_restricted_wrapper(self, event: Event, group_id: str) -> None:
        if not self._registry.is_tracked(group_id):
            self._logger.debug("wrapper_untracked", event_id=event.id, group_id=group_id)
            return

        self.discover(group_id, DiscoverySource.LIVE)
        self._bus.emit("group_wrapper", {"group_id": group_id, "raw_event": event})

        decrypt = adapter_method(self._adapter, "decrypt_group_wrapper")
        if decrypt is None:
            return

        diagnostics: dict[str, Any] = {"group_id": group_id, "event_id": event.id}
        try:
            result = await decrypt(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # Intentionally broad: adapter failures are never fatal
            self._logger.warning("wrapper_decrypt_failed", **diagnostics, error=str(e))
            self._bus.emit("error", AdapterError(f"Group wrapper decrypt failed: {e}"))
            self._bus.emit("mls_wrapper_decrypt_failed", {**diagnostics, "error": str(e)})
            return

        if result is None:
            self._bus.emit("mls_wrapper_decrypt_miss", diagnostics)
            return

        resolved_group = result.group_id or group_id
        self._bus.emit(
            "mls_wrapper_decrypt_hit",
            {"group_id": resolved_group, "event_id": event.id, "sender": result.sender_pubkey},
        )
        self.discover(resolved_group, DiscoverySource.LIVE, joined=True)

        directed = is_directed_to_bot(
            event.tags, result.content, self._bot_pubkey, self._names, bot_in_group=True
        )
        await self._emitter.emit(
            sender=result.sender_pubkey,
            content=result.content,
            kind=result.kind,
            raw_event=event,
            origin=MessageOrigin.GROUP,
            group_id=resolved_group,
            bot_in_group=True,
            directed_to_bot=directed,
        )

    async def _handle_open_message(self, event: Event, group_id: str) -> None:
        self.discover(group_id, DiscoverySource.LIVE)
        in_group = self.is_bot_in_group(group_id, event.pubkey)
        directed = is_directed_to_bot(
            event.tags, event.content, self._bot_pubkey, self._names, bot_in_group=in_group
        )
        await self._emitter.emit(
            sender=event.pubkey,
            content=event.content,
            kind=event.kind,
            raw_event=event,
            origin=MessageOrigin.GROUP,
            group_id=group_id,
            bot_in_group=in_group,
            directed_to_bot=directed,
        )
