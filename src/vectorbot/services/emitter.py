"""Deduplicated emission of normalized messages.

The same event can reach the bot through several relays, or through both a
live subscription and the historical bootstrap. The
[DedupCache][vectorbot.services.emitter.DedupCache] is the correctness
boundary against duplicate delivery: a raw event id is emitted at most once
while it is retained.

[MessageEmitter][vectorbot.services.emitter.MessageEmitter] resolves the
sender profile through a memoizing
[ProfileCache][vectorbot.services.emitter.ProfileCache] and publishes a
[BotMessage][vectorbot.models.message.BotMessage] on the ``message``
notification. Self-authored messages are flagged, not suppressed.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from vectorbot.core.logger import Logger
from vectorbot.core.metrics import MetricsRecorder
from vectorbot.models.message import BotMessage, MessageTags
from vectorbot.models.profile import Profile


if TYPE_CHECKING:
    from vectorbot.core.bus import NotificationBus
    from vectorbot.models.constants import MessageOrigin
    from vectorbot.models.event import Event


ProfileLookup = Callable[[str], Awaitable[Profile | None]]


class DedupCache:
    """Bounded insertion-ordered set of event ids; the oldest id is evicted first."""

    def __init__(self, capacity: int = 10_000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, event_id: str) -> bool:
        """Insert ``event_id``; returns ``False`` if it was already present."""
        if event_id in self._ids:
            return False
        self._ids[event_id] = None
        while len(self._ids) > self._capacity:
            self._ids.popitem(last=False)
        return True


class ProfileCache:
    """Process-lifetime memo of sender profiles.

    A miss triggers exactly one lookup. Missing profiles and failed lookups
    are cached as an empty [Profile][vectorbot.models.profile.Profile].
    """

    def __init__(self, lookup: ProfileLookup, logger: Logger | None = None) -> None:
        self._lookup = lookup
        self._profiles: dict[str, Profile] = {}
        self._logger = logger or Logger("profiles")

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._profiles

    async def get(self, pubkey: str) -> Profile:
        cached = self._profiles.get(pubkey)
        if cached is not None:
            return cached
        try:
            profile = await self._lookup(pubkey) or Profile()
        except Exception as e:  # Intentionally broad: enrichment must never block a message
            self._logger.debug("profile_lookup_failed", pubkey=pubkey, error=str(e))
            profile = Profile()
        self._profiles[pubkey] = profile
        return profile


class MessageEmitter:
    """Builds and publishes ``message`` notifications, at most once per event id."""

    def __init__(
        self,
        bus: NotificationBus,
        bot_pubkey: str,
        profiles: ProfileCache,
        dedup: DedupCache | None = None,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._bus = bus
        self._bot_pubkey = bot_pubkey
        self._profiles = profiles
        self._dedup = dedup or DedupCache()
        self._logger = Logger("emitter")
        self._metrics = metrics or MetricsRecorder("emitter")

    @property
    def dedup(self) -> DedupCache:
        return self._dedup

    def mark_seen(self, event_id: str) -> bool:
        """Record ``event_id`` without emitting; returns whether it was new."""
        return self._dedup.add(event_id)

    async def emit(  # noqa: PLR0913
        self,
        *,
        sender: str,
        content: str,
        kind: int,
        raw_event: Event,
        origin: MessageOrigin,
        wrapped: bool = False,
        group_id: str | None = None,
        bot_in_group: bool = False,
        directed_to_bot: bool = True,
    ) -> BotMessage | None:
        """Emit one normalized message unless ``raw_event.id`` was already seen.

        Returns:
            The emitted message, or ``None`` for a duplicate.
        """
        if raw_event.id and not self._dedup.add(raw_event.id):
            self._metrics.inc_counter("duplicates_dropped")
            self._logger.debug("duplicate_dropped", event_id=raw_event.id)
            return None

        profile = await self._profiles.get(sender)
        is_group = group_id is not None
        tags = MessageTags(
            pubkey=sender,
            conversation_id=group_id if is_group else sender,
            origin=origin,
            kind=kind,
            raw_event=raw_event,
            group_id=group_id,
            is_group=is_group,
            bot_in_group=bot_in_group if is_group else False,
            directed_to_bot=directed_to_bot if is_group else True,
            wrapped=wrapped,
            display_name=profile.label,
        )
        message = BotMessage(
            sender=sender,
            tags=tags,
            content=content,
            self_authored=sender == self._bot_pubkey,
        )

        self._metrics.inc_counter("messages_emitted")
        self._metrics.set_gauge("dedup_size", len(self._dedup))
        self._logger.debug(
            "message_emitted",
            event_id=raw_event.id,
            origin=origin,
            group_id=group_id,
            directed=tags.directed_to_bot,
        )
        self._bus.emit("message", message)
        return message
