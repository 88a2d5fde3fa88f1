"""Normalized inbound messages delivered to ``message`` subscribers.

The dispatcher collapses NIP-04 direct messages, gift-wrapped NIP-17 rumors,
open group chat messages, and decrypted MLS group messages into one shape:
[BotMessage][vectorbot.models.message.BotMessage] carrying a
[MessageTags][vectorbot.models.message.MessageTags] dispatch context.
"""

from __future__ import annotations

from dataclasses import dataclass

from .constants import MessageOrigin
from .event import Event


@dataclass(frozen=True, slots=True)
class MessageTags:
    """Dispatch context of a normalized message.

    Attributes:
        pubkey: Sender public key (hex).
        conversation_id: Group id for group messages, sender pubkey otherwise.
        group_id: Group id, ``None`` for direct messages.
        is_group: Whether the message came from a group.
        bot_in_group: Whether the bot is a tracked member of that group.
        directed_to_bot: Whether the message addresses the bot (always
            ``True`` for direct messages).
        origin: Where a reply should go.
        kind: Kind of the plaintext message (rumor or decrypted kind).
        raw_event: The event as received (envelope for gift-wraps, wrapper
            for MLS group messages).
        wrapped: Whether the message arrived inside a gift-wrap.
        display_name: Sender display name (or name) from the profile cache.
    """

    pubkey: str
    conversation_id: str
    origin: MessageOrigin
    kind: int
    raw_event: Event
    group_id: str | None = None
    is_group: bool = False
    bot_in_group: bool = False
    directed_to_bot: bool = True
    wrapped: bool = False
    display_name: str | None = None


@dataclass(frozen=True, slots=True)
class BotMessage:
    """Payload of the ``message`` notification.

    Attributes:
        sender: Sender public key (hex).
        tags: Dispatch context.
        content: Plaintext content.
        self_authored: True iff the sender is the bot itself. Handlers should
            ignore these to avoid echo loops; the emitter does not filter them.
    """

    sender: str
    tags: MessageTags
    content: str
    self_authored: bool = False

    @property
    def reply_target(self) -> str:
        """Group id for group messages, sender pubkey for direct messages."""
        return self.tags.conversation_id
