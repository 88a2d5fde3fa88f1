"""
Unit tests for utils.crypto module.

Tests:
- AES-256-GCM attachment encryption and tamper detection
- SHA-256 file hashing
- NostrSdkCrypto signing, NIP-04, and NIP-59 gift-wrap between two identities
"""

import hashlib

import pytest
from cryptography.exceptions import InvalidTag
from nostr_sdk import Keys

from vectorbot.models.event import EventTemplate
from vectorbot.nips.event_builders import build_private_message_rumor
from vectorbot.utils.crypto import (
    EncryptionParams,
    NostrSdkCrypto,
    calculate_file_hash,
    decrypt_data,
    encrypt_data,
    generate_encryption_params,
)


class TestAttachmentEncryption:
    def test_params_sizes(self) -> None:
        params = generate_encryption_params()
        assert len(bytes.fromhex(params.key)) == 32
        assert len(bytes.fromhex(params.nonce)) == 16

    def test_params_are_fresh(self) -> None:
        assert generate_encryption_params() != generate_encryption_params()

    def test_decrypt_inverts_encrypt(self) -> None:
        params = generate_encryption_params()
        ciphertext = encrypt_data(b"attachment bytes", params)
        assert ciphertext != b"attachment bytes"
        assert len(ciphertext) == len(b"attachment bytes") + 16
        assert decrypt_data(ciphertext, params) == b"attachment bytes"

    def test_wrong_key_rejected(self) -> None:
        params = generate_encryption_params()
        other = EncryptionParams(key=generate_encryption_params().key, nonce=params.nonce)
        with pytest.raises(InvalidTag):
            decrypt_data(encrypt_data(b"data", params), other)

    def test_file_hash(self) -> None:
        assert calculate_file_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()


class TestNostrSdkCrypto:
    def test_public_key(self, test_keys: Keys) -> None:
        assert NostrSdkCrypto(test_keys).public_key == test_keys.public_key().to_hex()

    def test_sign_event(self, test_keys: Keys) -> None:
        template = EventTemplate(kind=9, content="hi", tags=(("h", "g1"),), created_at=1_700_000_000)
        event = NostrSdkCrypto(test_keys).sign_event(template)

        assert event.pubkey == test_keys.public_key().to_hex()
        assert event.kind == 9
        assert event.content == "hi"
        assert event.created_at == 1_700_000_000
        assert ("h", "g1") in event.tags
        assert len(event.id) == 64
        assert len(event.sig) == 128

    def test_nip04_between_identities(self, test_keys: Keys) -> None:
        bot = NostrSdkCrypto(test_keys)
        alice = NostrSdkCrypto(Keys.generate())

        ciphertext = bot.encrypt_direct(alice.public_key, "hello alice")
        assert ciphertext != "hello alice"
        assert alice.decrypt_direct(bot.public_key, ciphertext) == "hello alice"

    async def test_gift_wrap_between_identities(self, test_keys: Keys) -> None:
        bot = NostrSdkCrypto(test_keys)
        alice = NostrSdkCrypto(Keys.generate())

        envelope = await bot.wrap_envelope(
            build_private_message_rumor(alice.public_key, "sealed hello"), alice.public_key
        )
        assert envelope.kind == 1059
        assert envelope.pubkey != bot.public_key

        rumor = await alice.unwrap_envelope(envelope)
        assert rumor.kind == 14
        assert rumor.content == "sealed hello"
        assert rumor.pubkey == bot.public_key

    async def test_unwrap_for_other_identity_fails(self, test_keys: Keys) -> None:
        bot = NostrSdkCrypto(test_keys)
        alice = NostrSdkCrypto(Keys.generate())
        carol = NostrSdkCrypto(Keys.generate())

        envelope = await bot.wrap_envelope(
            build_private_message_rumor(alice.public_key, "private"), alice.public_key
        )
        with pytest.raises(Exception):  # noqa: B017, PT011 -- nostr-sdk FFI error type
            await carol.unwrap_envelope(envelope)
