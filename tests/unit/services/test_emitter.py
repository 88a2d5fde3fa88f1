"""
Unit tests for services.emitter module.

Tests:
- DedupCache FIFO eviction and capacity validation
- ProfileCache memoization, including failures
- MessageEmitter normalization, dedup, and self-authored flag
"""

from unittest.mock import AsyncMock

import pytest

from fixtures.bot import ALICE_PUBKEY, BOT_PUBKEY, collect, make_event
from vectorbot.core.bus import NotificationBus
from vectorbot.models.constants import MessageOrigin
from vectorbot.models.profile import Profile
from vectorbot.services.emitter import DedupCache, MessageEmitter, ProfileCache


class TestDedupCache:
    def test_add_reports_novelty(self) -> None:
        cache = DedupCache()
        assert cache.add("a") is True
        assert cache.add("a") is False
        assert "a" in cache

    def test_oldest_evicted_first(self) -> None:
        cache = DedupCache(capacity=2)
        for event_id in ("a", "b", "c"):
            cache.add(event_id)
        assert "a" not in cache
        assert "b" in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            DedupCache(capacity=0)


class TestProfileCache:
    async def test_lookup_once_per_pubkey(self) -> None:
        lookup = AsyncMock(return_value=Profile(name="alice"))
        cache = ProfileCache(lookup)

        assert (await cache.get(ALICE_PUBKEY)).name == "alice"
        assert (await cache.get(ALICE_PUBKEY)).name == "alice"
        lookup.assert_awaited_once_with(ALICE_PUBKEY)
        assert ALICE_PUBKEY in cache

    async def test_missing_profile_cached_empty(self) -> None:
        lookup = AsyncMock(return_value=None)
        cache = ProfileCache(lookup)

        assert (await cache.get(ALICE_PUBKEY)).is_empty
        await cache.get(ALICE_PUBKEY)
        lookup.assert_awaited_once()

    async def test_failure_cached_empty(self) -> None:
        lookup = AsyncMock(side_effect=TimeoutError())
        cache = ProfileCache(lookup)

        assert (await cache.get(ALICE_PUBKEY)).is_empty
        await cache.get(ALICE_PUBKEY)
        lookup.assert_awaited_once()


def _emitter(bus: NotificationBus, profile: Profile | None = None) -> MessageEmitter:
    return MessageEmitter(bus, BOT_PUBKEY, ProfileCache(AsyncMock(return_value=profile)))


class TestMessageEmitter:
    async def test_direct_message(self, bus: NotificationBus) -> None:
        messages = collect(bus, "message")
        event = make_event(4, "enc:hi")

        message = await _emitter(bus, Profile(display_name="Alice")).emit(
            sender=ALICE_PUBKEY,
            content="hi",
            kind=4,
            raw_event=event,
            origin=MessageOrigin.DM,
            directed_to_bot=False,
        )

        assert messages == [message]
        assert message.content == "hi"
        assert message.self_authored is False
        assert message.tags.conversation_id == ALICE_PUBKEY
        assert message.tags.directed_to_bot is True
        assert message.tags.is_group is False
        assert message.tags.display_name == "Alice"
        assert message.tags.raw_event is event

    async def test_group_message(self, bus: NotificationBus) -> None:
        message = await _emitter(bus).emit(
            sender=ALICE_PUBKEY,
            content="chatter",
            kind=9,
            raw_event=make_event(9, "chatter"),
            origin=MessageOrigin.GROUP,
            group_id="g1",
            bot_in_group=True,
            directed_to_bot=False,
        )

        assert message.tags.is_group
        assert message.tags.conversation_id == "g1"
        assert message.tags.bot_in_group
        assert not message.tags.directed_to_bot
        assert message.reply_target == "g1"

    async def test_duplicate_event_emitted_once(self, bus: NotificationBus) -> None:
        messages = collect(bus, "message")
        emitter = _emitter(bus)
        event = make_event(4, "enc:x")

        for _ in range(3):
            await emitter.emit(
                sender=ALICE_PUBKEY, content="x", kind=4, raw_event=event, origin=MessageOrigin.DM
            )

        assert len(messages) == 1

    async def test_mark_seen_suppresses_emit(self, bus: NotificationBus) -> None:
        emitter = _emitter(bus)
        event = make_event(4, "enc:x")

        assert emitter.mark_seen(event.id) is True
        result = await emitter.emit(
            sender=ALICE_PUBKEY, content="x", kind=4, raw_event=event, origin=MessageOrigin.DM
        )
        assert result is None

    async def test_self_authored_flagged_not_suppressed(self, bus: NotificationBus) -> None:
        messages = collect(bus, "message")
        await _emitter(bus).emit(
            sender=BOT_PUBKEY,
            content="my own",
            kind=9,
            raw_event=make_event(9, "my own", pubkey=BOT_PUBKEY),
            origin=MessageOrigin.GROUP,
            group_id="g1",
        )
        assert messages[0].self_authored is True
