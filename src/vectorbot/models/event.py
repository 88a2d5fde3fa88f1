"""
Immutable Nostr event records.

[Event][vectorbot.models.event.Event] is the shape every layer above the
relay pool works with: inbound events from subscriptions and history
queries, rumors recovered from gift-wrap envelopes, and signed outbound
events. It is a plain frozen dataclass (no SDK object inside) so the
dispatcher, the registry, and the tests can build and compare events
without touching the transport.

[EventTemplate][vectorbot.models.event.EventTemplate] is the unsigned
counterpart produced by [vectorbot.nips.event_builders][] and turned into an
``Event`` by [CryptoPrimitives.sign_event()][vectorbot.utils.crypto.CryptoPrimitives].

Examples:
    ```python
    event = Event.from_json(raw)
    event.first_tag_value("h")   # 'ab12...' or None
    event.tag_keys()             # ['h', 'ms']
    ```
"""

from __future__ import annotations

import json
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeAlias

from ._validation import validate_instance, validate_str_no_null, validate_timestamp


Tags: TypeAlias = tuple[tuple[str, ...], ...]


def freeze_tags(tags: Iterable[Iterable[Any]]) -> Tags:
    """Convert a JSON tag array (list of lists) into nested tuples of ``str``.

    Raises:
        TypeError: If ``tags`` or one of its entries is not a sequence, or a
            tag value is not a string.
    """
    if isinstance(tags, str | bytes):
        raise TypeError("tags must be a sequence of sequences")
    frozen: list[tuple[str, ...]] = []
    for tag in tags:
        if isinstance(tag, str | bytes) or not isinstance(tag, Iterable):
            raise TypeError(f"tag must be a sequence of str, got {type(tag).__name__}")
        values = tuple(tag)
        for value in values:
            validate_instance(value, str, "tag value")
        frozen.append(values)
    return tuple(frozen)


@dataclass(frozen=True, slots=True)
class Event:
    """Immutable Nostr event.

    Rumors (the plaintext inner event of a gift-wrap) use the same type
    with an empty ``sig``.

    Attributes:
        id: 64-char hex event id (SHA-256 of the serialized event).
        pubkey: 64-char hex author public key.
        kind: Integer discriminator (see
            [EventKind][vectorbot.models.constants.EventKind]).
        created_at: Unix timestamp in seconds.
        tags: Ordered tag arrays, each a tuple of strings.
        content: Raw content (ciphertext for encrypted kinds).
        sig: Schnorr signature, empty for rumors.

    Raises:
        TypeError: On wrongly-typed fields.
        ValueError: On negative kind/timestamp or null bytes in id/pubkey.
    """

    id: str
    pubkey: str
    kind: int
    created_at: int
    tags: Tags = ()
    content: str = ""
    sig: str = ""

    def __post_init__(self) -> None:
        validate_str_no_null(self.id, "id")
        validate_str_no_null(self.pubkey, "pubkey")
        validate_timestamp(self.kind, "kind")
        validate_timestamp(self.created_at, "created_at")
        validate_instance(self.content, str, "content")
        validate_instance(self.sig, str, "sig")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    # -------------------------------------------------------------------------
    # Tag helpers
    # -------------------------------------------------------------------------

    def first_tag_value(self, name: str) -> str | None:
        """Value of the first tag named ``name`` that carries one, else ``None``."""
        for tag in self.tags:
            if len(tag) > 1 and tag[0] == name:
                return tag[1]
        return None

    def tag_values(self, name: str) -> list[str]:
        """Values of every tag named ``name``, in order."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]

    def tag_keys(self) -> list[str]:
        """Tag names in order, used for unresolved-wrapper diagnostics."""
        return [tag[0] for tag in self.tags if tag]

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """NIP-01 JSON object (tags as lists)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        """Build an event from a NIP-01 JSON object.

        ``id`` and ``sig`` may be absent (unsigned rumors). ``pubkey`` and
        ``kind`` are required.

        Raises:
            ValueError: If a required field is missing.
            TypeError: If a field has the wrong type.
        """
        validate_instance(data, Mapping, "event")
        missing = [key for key in ("pubkey", "kind") if key not in data]
        if missing:
            raise ValueError(f"event is missing required fields: {', '.join(missing)}")
        return cls(
            id=data.get("id") or "",
            pubkey=data["pubkey"],
            kind=data["kind"],
            created_at=data.get("created_at", 0),
            tags=data.get("tags") or (),
            content=data.get("content") or "",
            sig=data.get("sig") or "",
        )

    @classmethod
    def from_json(cls, raw: str) -> Event:
        """Parse a NIP-01 JSON string.

        Raises:
            ValueError: On invalid JSON or missing fields.
        """
        return cls.from_dict(json.loads(raw))


InboundEvent: TypeAlias = Event
Rumor: TypeAlias = Event


@dataclass(frozen=True, slots=True)
class EventTemplate:
    """Unsigned event content awaiting a signature.

    Attributes:
        kind: Integer event kind.
        content: Plaintext or already-encrypted content.
        tags: Ordered tag arrays.
        created_at: Unix timestamp in seconds (defaults to now).
    """

    kind: int
    content: str = ""
    tags: Tags = ()
    created_at: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self) -> None:
        validate_timestamp(self.kind, "kind")
        validate_timestamp(self.created_at, "created_at")
        validate_instance(self.content, str, "content")
        object.__setattr__(self, "tags", freeze_tags(self.tags))

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "created_at": self.created_at,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
        }
