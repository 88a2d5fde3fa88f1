"""Cryptographic primitives consumed by the bot runtime.

[CryptoPrimitives][vectorbot.utils.crypto.CryptoPrimitives] is the narrow
interface the dispatcher and client depend on: NIP-04 encrypt/decrypt,
NIP-59 gift-wrap/unwrap, and event signing.
[NostrSdkCrypto][vectorbot.utils.crypto.NostrSdkCrypto] implements it on
top of ``nostr_sdk``. Tests substitute a fake.

The module also holds the attachment helpers: AES-256-GCM file encryption
(``cryptography``) and SHA-256 content hashing.

Note:
    Rumors returned by ``unwrap_envelope`` are unsigned. Their authenticity
    is inherited from the seal signature checked while unwrapping; no
    further verification is performed on them.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from nostr_sdk import Event as NostrEvent
from nostr_sdk import (
    EventBuilder,
    Kind,
    NostrSigner,
    PublicKey,
    Tag,
    Timestamp,
    UnwrappedGift,
    gift_wrap,
    nip04_decrypt,
    nip04_encrypt,
)

from vectorbot.models.event import Event, EventTemplate


if TYPE_CHECKING:
    from nostr_sdk import Keys


class CryptoPrimitives(Protocol):
    """Signing and encryption operations bound to the bot identity."""

    @property
    def public_key(self) -> str:
        """Bot public key (hex)."""
        ...

    def decrypt_direct(self, sender_pubkey: str, ciphertext: str) -> str:
        """NIP-04 decrypt a payload sent by ``sender_pubkey``."""
        ...

    def encrypt_direct(self, recipient_pubkey: str, plaintext: str) -> str:
        """NIP-04 encrypt a payload for ``recipient_pubkey``."""
        ...

    async def unwrap_envelope(self, envelope: Event) -> Event:
        """Open a NIP-59 gift-wrap addressed to the bot and return its rumor."""
        ...

    async def wrap_envelope(self, rumor: EventTemplate, recipient_pubkey: str) -> Event:
        """Seal and gift-wrap ``rumor`` for ``recipient_pubkey``."""
        ...

    def sign_event(self, template: EventTemplate) -> Event:
        """Sign ``template`` with the bot key."""
        ...


def _to_builder(template: EventTemplate) -> EventBuilder:
    return (
        EventBuilder(Kind(int(template.kind)), template.content)
        .tags([Tag.parse(list(tag)) for tag in template.tags])
        .custom_created_at(Timestamp.from_secs(template.created_at))
    )


class NostrSdkCrypto:
    """[CryptoPrimitives][vectorbot.utils.crypto.CryptoPrimitives] over ``nostr_sdk``."""

    def __init__(self, keys: Keys) -> None:
        self._keys = keys
        self._signer = NostrSigner.keys(keys)

    @property
    def public_key(self) -> str:
        return self._keys.public_key().to_hex()

    def decrypt_direct(self, sender_pubkey: str, ciphertext: str) -> str:
        return nip04_decrypt(self._keys.secret_key(), PublicKey.parse(sender_pubkey), ciphertext)

    def encrypt_direct(self, recipient_pubkey: str, plaintext: str) -> str:
        return nip04_encrypt(self._keys.secret_key(), PublicKey.parse(recipient_pubkey), plaintext)

    async def unwrap_envelope(self, envelope: Event) -> Event:
        unwrapped = await UnwrappedGift.from_gift_wrap(
            self._signer, NostrEvent.from_json(envelope.to_json())
        )
        return Event.from_json(unwrapped.rumor().as_json())

    async def wrap_envelope(self, rumor: EventTemplate, recipient_pubkey: str) -> Event:
        unsigned = _to_builder(rumor).build(self._keys.public_key())
        wrapped = await gift_wrap(
            self._signer, PublicKey.parse(recipient_pubkey), unsigned, []
        )
        return Event.from_json(wrapped.as_json())

    def sign_event(self, template: EventTemplate) -> Event:
        signed = _to_builder(template).sign_with_keys(self._keys)
        return Event.from_json(signed.as_json())


# =============================================================================
# Attachment encryption
# =============================================================================


@dataclass(frozen=True, slots=True)
class EncryptionParams:
    """Hex-encoded AES-256 key and 16-byte GCM nonce."""

    key: str
    nonce: str


def generate_encryption_params() -> EncryptionParams:
    """Fresh random key and nonce for one attachment."""
    return EncryptionParams(key=secrets.token_hex(32), nonce=secrets.token_hex(16))


def encrypt_data(data: bytes, params: EncryptionParams) -> bytes:
    """AES-256-GCM encrypt ``data``; returns ciphertext followed by the 16-byte tag."""
    return AESGCM(bytes.fromhex(params.key)).encrypt(bytes.fromhex(params.nonce), data, None)


def decrypt_data(data: bytes, params: EncryptionParams) -> bytes:
    """Inverse of [encrypt_data][vectorbot.utils.crypto.encrypt_data].

    Raises:
        cryptography.exceptions.InvalidTag: If the data or parameters do not match.
    """
    return AESGCM(bytes.fromhex(params.key)).decrypt(bytes.fromhex(params.nonce), data, None)


def calculate_file_hash(data: bytes) -> str:
    """Hex SHA-256 of ``data``."""
    return hashlib.sha256(data).hexdigest()
