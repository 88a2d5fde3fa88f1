"""Pure frozen dataclasses with zero I/O for events, relays, and messages.

The models layer is the foundation of the diamond DAG. It depends on no
other vectorbot package; the only third-party imports are ``rfc3986`` for
relay URL validation and ``pydantic`` for the operator-facing
[BotProfile][vectorbot.models.profile.BotProfile].

Attributes:
    Event: Immutable Nostr event (also used for rumors, with an empty
        signature) with tag helpers and NIP-01 JSON conversion.
    EventTemplate: Unsigned event content produced by the event builders.
    Relay: Validated relay URL with
        [NetworkType][vectorbot.models.constants.NetworkType] detection.
        Local addresses are allowed.
    RelayEndpoint: Mutable hysteresis state owned by the health monitor.
    MessageTags: Dispatch context of a normalized inbound message.
    BotMessage: Payload of the ``message`` notification.
    BotProfile: Bot identity published as kind-0 metadata.
    Profile: Cached sender name and display name.
    AttachmentFile: File bytes plus extension for NIP-17 file messages.

See Also:
    [vectorbot.models.constants][]: Event kinds and string enumerations.
"""

from .attachment import AttachmentFile, ImageMetadata, infer_extension
from .constants import (
    DiscoverySource,
    EventKind,
    GroupMode,
    InboundSource,
    MessageOrigin,
    NetworkType,
)
from .event import Event, EventTemplate, InboundEvent, Rumor, Tags, freeze_tags
from .message import BotMessage, MessageTags
from .profile import BotProfile, Profile
from .relay import Relay, RelayEndpoint, normalize_relay_urls


__all__ = [
    "AttachmentFile",
    "BotMessage",
    "BotProfile",
    "DiscoverySource",
    "Event",
    "EventKind",
    "EventTemplate",
    "GroupMode",
    "ImageMetadata",
    "InboundEvent",
    "InboundSource",
    "MessageOrigin",
    "MessageTags",
    "NetworkType",
    "Profile",
    "Relay",
    "RelayEndpoint",
    "Rumor",
    "Tags",
    "freeze_tags",
    "infer_extension",
    "normalize_relay_urls",
]
