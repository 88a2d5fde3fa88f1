"""In-memory collaborators for bot tests: relay pool, crypto, adapter.

Usage: Registered via ``pytest_plugins`` in the root ``conftest.py``; the
classes and helpers are also imported directly by test modules.
"""

from __future__ import annotations

import hashlib
import itertools
import json
from collections.abc import Callable
from typing import Any

import pytest

from vectorbot.core.bus import NotificationBus
from vectorbot.models.constants import EventKind
from vectorbot.models.event import Event, EventTemplate


BOT_PUBKEY = "b0" * 32
ALICE_PUBKEY = "a1" * 32
CAROL_PUBKEY = "c2" * 32
GROUP_ID = "9f" * 16

RELAYS = ["wss://relay.one.example", "wss://relay.two.example"]

_ids = itertools.count(1)


def next_event_id() -> str:
    return hashlib.sha256(f"event-{next(_ids)}".encode()).hexdigest()


def make_event(
    kind: int,
    content: str = "",
    *,
    tags: tuple[tuple[str, ...], ...] = (),
    pubkey: str = ALICE_PUBKEY,
    event_id: str | None = None,
    created_at: int = 1_700_000_000,
    sig: str = "s" * 128,
) -> Event:
    return Event(
        id=event_id or next_event_id(),
        pubkey=pubkey,
        kind=kind,
        created_at=created_at,
        tags=tags,
        content=content,
        sig=sig,
    )


def gift_wrap(rumor: Event, recipient: str = BOT_PUBKEY, *, event_id: str | None = None) -> Event:
    """Envelope that [FakeCrypto][] opens back into ``rumor`` for ``recipient``."""
    return make_event(
        EventKind.GIFT_WRAP,
        json.dumps(rumor.to_dict()),
        tags=(("p", recipient),),
        pubkey="e7" * 32,
        event_id=event_id,
    )


def collect(bus: NotificationBus, name: str) -> list[Any]:
    """Subscribe a recorder to ``name`` and return the list it appends to."""
    received: list[Any] = []
    bus.on(name, received.append)
    return received


# ============================================================================
# Fakes
# ============================================================================


class FakeCrypto:
    """Reversible stand-in for the nostr-sdk primitives.

    NIP-04 ciphertext is ``enc:<plaintext>``; gift-wraps carry the rumor JSON
    as content and open only for the bot's ``p`` tag.
    """

    def __init__(self, public_key: str = BOT_PUBKEY) -> None:
        self._public_key = public_key
        self.signed: list[Event] = []

    @property
    def public_key(self) -> str:
        return self._public_key

    def decrypt_direct(self, sender_pubkey: str, ciphertext: str) -> str:
        if not ciphertext.startswith("enc:"):
            raise ValueError("bad ciphertext")
        return ciphertext[4:]

    def encrypt_direct(self, recipient_pubkey: str, plaintext: str) -> str:
        return f"enc:{plaintext}"

    async def unwrap_envelope(self, envelope: Event) -> Event:
        if self._public_key not in envelope.tag_values("p"):
            raise ValueError("not addressed to this key")
        return Event.from_json(envelope.content)

    async def wrap_envelope(self, rumor: EventTemplate, recipient_pubkey: str) -> Event:
        inner = Event(
            id="",
            pubkey=self._public_key,
            kind=rumor.kind,
            created_at=rumor.created_at,
            tags=rumor.tags,
            content=rumor.content,
        )
        return gift_wrap(inner, recipient_pubkey)

    def sign_event(self, template: EventTemplate) -> Event:
        event = Event(
            id=next_event_id(),
            pubkey=self._public_key,
            kind=template.kind,
            created_at=template.created_at,
            tags=template.tags,
            content=template.content,
            sig="f" * 128,
        )
        self.signed.append(event)
        return event


class FakeSubscription:
    def __init__(
        self,
        urls: list[str],
        filter_: dict[str, Any],
        on_event: Callable[[Event], None],
        on_close: Callable[[list[str]], None],
    ) -> None:
        self.urls = urls
        self.filter = filter_
        self.on_event = on_event
        self.on_close = on_close
        self.closed_reason: str | None = None

    def close(self, reason: str = "closed") -> None:
        self.closed_reason = reason


class FakePool:
    """Records every call; publishes are accepted unless outcomes are queued."""

    def __init__(self) -> None:
        self.connected: list[str] = []
        self.connect_errors: dict[str, Exception] = {}
        self.published: list[tuple[list[str], Event]] = []
        self.publish_outcomes: list[dict[str, str | None]] = []
        self.publish_error: Exception | None = None
        self.subscriptions: list[FakeSubscription] = []
        self.queries: list[dict[str, Any]] = []
        self.query_results: dict[int, list[Event]] = {}
        self.query_errors: list[Exception] = []
        self.status: dict[str, bool] = {}
        self.closed = False

    async def ensure_connection(self, url: str) -> None:
        self.connected.append(url)
        error = self.connect_errors.get(url)
        if error is not None:
            raise error

    async def publish(self, urls: list[str], event: Event) -> dict[str, str | None]:
        self.published.append((list(urls), event))
        if self.publish_error is not None:
            raise self.publish_error
        if self.publish_outcomes:
            return self.publish_outcomes.pop(0)
        return dict.fromkeys(urls)

    async def subscribe(
        self,
        urls: list[str],
        filter_: dict[str, Any],
        on_event: Callable[[Event], None],
        on_close: Callable[[list[str]], None],
    ) -> FakeSubscription:
        subscription = FakeSubscription(list(urls), filter_, on_event, on_close)
        self.subscriptions.append(subscription)
        return subscription

    async def query_sync(
        self, urls: list[str], filter_: dict[str, Any], max_wait: float
    ) -> list[Event]:
        self.queries.append(filter_)
        if self.query_errors:
            raise self.query_errors.pop(0)
        return list(self.query_results.get(filter_["kinds"][0], []))

    async def connection_status(self) -> dict[str, bool]:
        return dict(self.status)

    async def close(self) -> None:
        self.closed = True

    def published_kinds(self) -> list[int]:
        return [event.kind for _, event in self.published]


class FakeAdapter:
    """Group-crypto adapter with canned answers; only the given methods exist."""

    def __init__(self, **methods: Callable[..., Any]) -> None:
        for name, method in methods.items():
            setattr(self, name, method)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def fake_crypto() -> FakeCrypto:
    return FakeCrypto()
