"""Shared constants for the models layer.

Enumerations used across models, nips, and services. Keeping them here
avoids circular dependencies between the layers.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum


class EventKind(IntEnum):
    """Nostr event kinds handled or produced by the bot runtime.

    Attributes:
        METADATA: Kind 0, profile metadata (NIP-01).
        ENCRYPTED_DIRECT_MESSAGE: Kind 4, NIP-04 encrypted DM.
        REACTION: Kind 7, reaction (NIP-25).
        CHAT_MESSAGE: Kind 9, plaintext group chat message (open mode).
        PRIVATE_DIRECT_MESSAGE: Kind 14, NIP-17 DM rumor.
        FILE_MESSAGE: Kind 15, NIP-17 encrypted file message.
        MLS_KEY_PACKAGE: Kind 443, MLS key package.
        MLS_WELCOME: Kind 444, MLS welcome rumor (inside a gift-wrap).
        MLS_GROUP_MESSAGE: Kind 445, encrypted MLS group wrapper.
        GIFT_WRAP: Kind 1059, NIP-59 gift-wrap envelope.
        HTTP_AUTH: Kind 27235, NIP-98 HTTP authorization.
        APPLICATION: Kind 30078, application data (typing indicators).
    """

    METADATA = 0
    ENCRYPTED_DIRECT_MESSAGE = 4
    REACTION = 7
    CHAT_MESSAGE = 9
    PRIVATE_DIRECT_MESSAGE = 14
    FILE_MESSAGE = 15
    MLS_KEY_PACKAGE = 443
    MLS_WELCOME = 444
    MLS_GROUP_MESSAGE = 445
    GIFT_WRAP = 1059
    HTTP_AUTH = 27235
    APPLICATION = 30078


class NetworkType(StrEnum):
    """Network a relay URL belongs to, detected by [Relay][vectorbot.models.relay.Relay]."""

    CLEARNET = "clearnet"
    TOR = "tor"
    I2P = "i2p"
    LOKI = "loki"
    LOCAL = "local"


class GroupMode(StrEnum):
    """How group wrapper events are interpreted.

    Attributes:
        RESTRICTED: Encrypted MLS wrappers (kind 445). Only tracked groups
            are processed; plaintext comes from the group-crypto adapter.
        OPEN: Plaintext chat messages (kind 9) grouped by their ``h`` tag.
    """

    RESTRICTED = "restricted"
    OPEN = "open"


class MessageOrigin(StrEnum):
    """Where a normalized message came from; replies go back the same way."""

    DM = "dm"
    GROUP = "group"


class DiscoverySource(StrEnum):
    """Path through which a group id first became known."""

    LIVE = "live"
    WELCOME = "welcome"
    HISTORY = "history"
    ADAPTER = "adapter"
    SEND = "send"


class InboundSource(StrEnum):
    """Subscription an inbound event was delivered on."""

    DM = "dm"
    GIFT_WRAP = "gift-wrap"
    GROUP = "group"
    HISTORY = "history"
