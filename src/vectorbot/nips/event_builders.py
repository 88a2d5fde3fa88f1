"""Event builders for every kind the bot publishes.

Standalone functions returning unsigned
[EventTemplate][vectorbot.models.event.EventTemplate] objects; signing and
encryption happen in [vectorbot.utils.crypto][]. Every message-like event
carries an ``ms`` tag with the millisecond part of its send time so that
clients can order messages created within the same second.

See Also:
    [VectorBotClient][vectorbot.services.client.VectorBotClient]: Signs and
        publishes the templates built here.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

from vectorbot.models.constants import EventKind
from vectorbot.models.event import EventTemplate


if TYPE_CHECKING:
    from vectorbot.models.attachment import ImageMetadata
    from vectorbot.models.profile import BotProfile


TYPING_INDICATOR_TTL = 3600


def _now() -> tuple[int, str]:
    """Current time as (unix seconds, millisecond part as string)."""
    now_ms = time.time_ns() // 1_000_000
    return now_ms // 1000, str(now_ms % 1000)


# =============================================================================
# Kind 0 (NIP-01)
# =============================================================================


def build_profile_event(profile: BotProfile) -> EventTemplate:
    """Kind 0 metadata flagged with ``"bot": true``."""
    created_at, _ = _now()
    return EventTemplate(
        kind=EventKind.METADATA,
        content=json.dumps(profile.to_metadata(), ensure_ascii=False),
        created_at=created_at,
    )


# =============================================================================
# Direct messages (NIP-04, NIP-17)
# =============================================================================


def build_direct_message(recipient: str, ciphertext: str) -> EventTemplate:
    """Kind 4 event around an already NIP-04 encrypted payload."""
    created_at, ms = _now()
    return EventTemplate(
        kind=EventKind.ENCRYPTED_DIRECT_MESSAGE,
        content=ciphertext,
        tags=(("p", recipient), ("ms", ms)),
        created_at=created_at,
    )


def build_private_message_rumor(recipient: str, text: str) -> EventTemplate:
    """Kind 14 rumor, to be sealed and gift-wrapped for ``recipient``."""
    created_at, ms = _now()
    return EventTemplate(
        kind=EventKind.PRIVATE_DIRECT_MESSAGE,
        content=text,
        tags=(("p", recipient), ("ms", ms)),
        created_at=created_at,
    )


def build_reaction(recipient: str, event_id: str, emoji: str) -> EventTemplate:
    """Kind 7 reaction (NIP-25) to ``event_id``."""
    created_at, ms = _now()
    return EventTemplate(
        kind=EventKind.REACTION,
        content=emoji,
        tags=(("e", event_id), ("p", recipient), ("ms", ms)),
        created_at=created_at,
    )


def build_typing_indicator(recipient: str) -> EventTemplate:
    """Kind 30078 ``typing`` event that relays may drop after one hour (NIP-40)."""
    created_at, ms = _now()
    return EventTemplate(
        kind=EventKind.APPLICATION,
        content="typing",
        tags=(
            ("p", recipient),
            ("ms", ms),
            ("expiration", str(created_at + TYPING_INDICATOR_TTL)),
        ),
        created_at=created_at,
    )


def build_file_message(  # noqa: PLR0913
    recipient: str,
    url: str,
    *,
    mime_type: str,
    size: int,
    decryption_key: str,
    decryption_nonce: str,
    file_hash: str,
    image: ImageMetadata | None = None,
) -> EventTemplate:
    """Kind 15 file message pointing at an AES-GCM encrypted upload."""
    created_at, ms = _now()
    tags: list[tuple[str, ...]] = [
        ("p", recipient),
        ("file-type", mime_type),
        ("size", str(size)),
        ("encryption-algorithm", "aes-gcm"),
        ("decryption-key", decryption_key),
        ("decryption-nonce", decryption_nonce),
        ("ox", file_hash),
        ("ms", ms),
    ]
    if image is not None:
        tags.append(("blurhash", image.blurhash))
        tags.append(("dim", f"{image.width}x{image.height}"))
    return EventTemplate(
        kind=EventKind.FILE_MESSAGE,
        content=url,
        tags=tuple(tags),
        created_at=created_at,
    )


# =============================================================================
# Groups
# =============================================================================


def build_group_chat_message(group_id: str, text: str) -> EventTemplate:
    """Kind 9 plaintext chat message bound to ``group_id`` by its ``h`` tag."""
    created_at, ms = _now()
    return EventTemplate(
        kind=EventKind.CHAT_MESSAGE,
        content=text,
        tags=(("h", group_id), ("ms", ms)),
        created_at=created_at,
    )


# =============================================================================
# Kind 27235 (NIP-98)
# =============================================================================


def build_http_auth(url: str, method: str, payload_hash: str | None = None) -> EventTemplate:
    """NIP-98 HTTP authorization event for one request."""
    created_at, _ = _now()
    tags: list[tuple[str, ...]] = [("u", url), ("method", method.upper())]
    if payload_hash:
        tags.append(("payload", payload_hash))
    return EventTemplate(kind=EventKind.HTTP_AUTH, tags=tuple(tags), created_at=created_at)
