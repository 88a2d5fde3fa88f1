"""
Unit tests for services.bootstrap module.

Tests:
- Historical wrappers and welcomes register groups
- Query fallback without tag constraints on timeout or empty result
- Query failures reported without aborting
- Adapter welcome sync and group listing merged as joined
"""

from unittest.mock import AsyncMock

from fixtures.bot import (
    ALICE_PUBKEY,
    BOT_PUBKEY,
    FakeAdapter,
    FakeCrypto,
    FakePool,
    collect,
    gift_wrap,
    make_event,
)
from vectorbot.core.bus import NotificationBus
from vectorbot.core.exceptions import AdapterError, ConnectivityError
from vectorbot.models.event import Event
from vectorbot.services.adapter import AdapterContext, WelcomeSyncResult
from vectorbot.services.bootstrap import HistoryBootstrap
from vectorbot.services.configs import GroupHistoryConfig
from vectorbot.services.dispatcher import EnvelopeDispatcher
from vectorbot.services.emitter import MessageEmitter, ProfileCache
from vectorbot.services.registry import GroupRegistry


RELAYS = ["wss://r.example"]
NOW = 1_700_100_000
CONTEXT = AdapterContext(bot_public_key=BOT_PUBKEY, relays=tuple(RELAYS))


class TagBlindPool(FakePool):
    """Relay that answers nothing to filters carrying tag constraints."""

    async def query_sync(self, urls, filter_, max_wait):
        events = await super().query_sync(urls, filter_, max_wait)
        if any(key.startswith("#") for key in filter_):
            return []
        return events


def _bootstrap(
    pool: FakePool,
    bus: NotificationBus,
    registry: GroupRegistry,
    *,
    adapter: object | None = None,
) -> HistoryBootstrap:
    emitter = MessageEmitter(bus, BOT_PUBKEY, ProfileCache(AsyncMock(return_value=None)))
    dispatcher = EnvelopeDispatcher(
        bus, registry, emitter, FakeCrypto(), adapter=adapter, context=lambda: CONTEXT
    )
    return HistoryBootstrap(
        pool,
        bus,
        registry,
        dispatcher,
        GroupHistoryConfig(since_hours=24, max_events=100),
        context=(lambda: CONTEXT) if adapter is not None else None,
        clock=lambda: NOW,
    )


class TestHistoryReplay:
    async def test_wrapper_discovers_group(self, bus: NotificationBus) -> None:
        pool = FakePool()
        pool.query_results[445] = [make_event(445, "x", tags=(("h", "g1"),))]
        registry = GroupRegistry()
        complete = collect(bus, "group_bootstrap_complete")
        debug = collect(bus, "group_bootstrap_debug")

        discovered = await _bootstrap(pool, bus, registry).run(RELAYS, BOT_PUBKEY)

        assert discovered == 1
        assert registry.known_group_ids() == ["g1"]
        assert registry.joined_group_ids() == []
        assert complete == [{"discovered": 1, "known_group_ids": ["g1"]}]
        assert debug[0]["gift_wrap_events"] == 0
        assert debug[0]["group_wrapper_events"] == 1
        assert debug[0]["since_hours"] == 24

    async def test_queries_use_lookback_window(self, bus: NotificationBus) -> None:
        pool = FakePool()

        await _bootstrap(pool, bus, GroupRegistry()).run(RELAYS, BOT_PUBKEY)

        since = NOW - 24 * 3600
        assert pool.queries == [
            {"kinds": [1059], "#p": [BOT_PUBKEY], "since": since, "limit": 100},
            {"kinds": [1059], "since": since, "limit": 100},
            {"kinds": [445], "since": since, "limit": 100},
        ]

    async def test_historical_welcome_joins_group(self, bus: NotificationBus) -> None:
        pool = FakePool()
        rumor = Event(
            id="", pubkey=ALICE_PUBKEY, kind=444, created_at=NOW - 60, tags=(("h", "g2"),)
        )
        pool.query_results[1059] = [gift_wrap(rumor)]
        registry = GroupRegistry()

        assert await _bootstrap(pool, bus, registry).run(RELAYS, BOT_PUBKEY) == 1
        assert registry.joined_group_ids() == ["g2"]

    async def test_history_does_not_emit_messages(self, bus: NotificationBus) -> None:
        pool = FakePool()
        rumor = Event(id="", pubkey=ALICE_PUBKEY, kind=14, created_at=NOW - 60, content="old")
        pool.query_results[1059] = [gift_wrap(rumor)]
        messages = collect(bus, "message")

        await _bootstrap(pool, bus, GroupRegistry()).run(RELAYS, BOT_PUBKEY)

        assert messages == []

    async def test_already_known_not_counted(self, bus: NotificationBus) -> None:
        pool = FakePool()
        pool.query_results[445] = [make_event(445, "x", tags=(("h", "g1"),))]

        assert await _bootstrap(pool, bus, GroupRegistry(["g1"])).run(RELAYS, BOT_PUBKEY) == 0


class TestQueryFailures:
    async def test_timeout_retries_without_tag_constraints(self, bus: NotificationBus) -> None:
        pool = FakePool()
        pool.query_errors.append(TimeoutError())
        errors = collect(bus, "error")

        await _bootstrap(pool, bus, GroupRegistry()).run(RELAYS, BOT_PUBKEY)

        assert len(pool.queries) == 3
        assert "#p" in pool.queries[0]
        assert "#p" not in pool.queries[1]
        assert pool.queries[1]["kinds"] == [1059]
        assert errors == []

    async def test_empty_result_retries_without_tag_constraints(
        self, bus: NotificationBus
    ) -> None:
        pool = TagBlindPool()
        rumor = Event(
            id="", pubkey=ALICE_PUBKEY, kind=444, created_at=NOW - 60, tags=(("h", "g7"),)
        )
        pool.query_results[1059] = [gift_wrap(rumor)]
        registry = GroupRegistry()
        errors = collect(bus, "error")

        assert await _bootstrap(pool, bus, registry).run(RELAYS, BOT_PUBKEY) == 1

        assert registry.joined_group_ids() == ["g7"]
        assert "#p" in pool.queries[0]
        assert "#p" not in pool.queries[1]
        assert errors == []

    async def test_untagged_filter_not_retried(self, bus: NotificationBus) -> None:
        pool = FakePool()

        await _bootstrap(pool, bus, GroupRegistry()).run(RELAYS, BOT_PUBKEY)

        assert [query["kinds"] for query in pool.queries].count([445]) == 1

    async def test_failure_reported_and_run_continues(self, bus: NotificationBus) -> None:
        pool = FakePool()
        pool.query_errors.append(OSError("refused"))
        pool.query_results[445] = [make_event(445, "x", tags=(("h", "g3"),))]
        errors = collect(bus, "error")
        complete = collect(bus, "group_bootstrap_complete")

        await _bootstrap(pool, bus, GroupRegistry()).run(RELAYS, BOT_PUBKEY)

        assert isinstance(errors[0], ConnectivityError)
        assert complete[0]["known_group_ids"] == ["g3"]


class TestAdapterSync:
    async def test_sync_and_listing_register_joined(self, bus: NotificationBus) -> None:
        registry = GroupRegistry()
        adapter = FakeAdapter(
            sync_welcomes=AsyncMock(
                return_value=WelcomeSyncResult(processed=2, accepted=1, groups=("g4",))
            ),
            bootstrap_groups=AsyncMock(return_value=["g5", " ", "g4"]),
        )
        syncs = collect(bus, "mls_welcome_sync")

        discovered = await _bootstrap(FakePool(), bus, registry, adapter=adapter).run(
            RELAYS, BOT_PUBKEY
        )

        assert discovered == 2
        assert registry.joined_group_ids() == ["g4", "g5"]
        assert syncs == [{"processed": 2, "accepted": 1, "groups": ["g4"]}]
        adapter.sync_welcomes.assert_awaited_once_with(CONTEXT)

    async def test_adapter_failure_reported(self, bus: NotificationBus) -> None:
        registry = GroupRegistry()
        adapter = FakeAdapter(
            sync_welcomes=AsyncMock(side_effect=RuntimeError("sidecar down")),
            bootstrap_groups=AsyncMock(return_value=["g6"]),
        )
        errors = collect(bus, "error")

        await _bootstrap(FakePool(), bus, registry, adapter=adapter).run(RELAYS, BOT_PUBKEY)

        assert isinstance(errors[0], AdapterError)
        assert registry.joined_group_ids() == ["g6"]
