"""Utility layer: keys, crypto primitives, relay pool, and uploads.

Depends on [vectorbot.models][vectorbot.models] and third-party libraries
(``nostr_sdk``, ``aiohttp``, ``cryptography``). Everything that touches the
network or a private key lives here, behind the narrow
[RelayPool][vectorbot.utils.pool.RelayPool] and
[CryptoPrimitives][vectorbot.utils.crypto.CryptoPrimitives] protocols.

Attributes:
    keys: Key normalization and [KeysConfig][vectorbot.utils.keys.KeysConfig].
    crypto: NIP-04/NIP-59/signing over ``nostr_sdk`` plus AES-GCM file
        encryption.
    pool: [NostrSdkRelayPool][vectorbot.utils.pool.NostrSdkRelayPool].
    upload: [Nip96Uploader][vectorbot.utils.upload.Nip96Uploader].

Examples:
    ```python
    from vectorbot.utils.keys import KeysConfig
    from vectorbot.utils.pool import NostrSdkRelayPool
    ```
"""
