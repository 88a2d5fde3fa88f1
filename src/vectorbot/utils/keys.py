"""Nostr key management utilities for vectorbot.

Provides key-string normalization (hex or bech32 ``nsec``/``npub``) and a
Pydantic model loading the bot's signing key from an environment variable.

Warning:
    Private keys must **never** be stored in configuration files, source code,
    or logged to any output. Always use environment variables or a secure
    secret management system.

Note:
    Key loading happens eagerly at config validation time via
    [KeysConfig][vectorbot.utils.keys.KeysConfig]'s Pydantic model validator,
    so a missing or malformed key is reported before any relay is contacted.

Examples:
    ```python
    import os

    os.environ["PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("PRIVATE_KEY")
    print(keys.public_key().to_hex())
    ```
"""

from __future__ import annotations

import os
import re
from typing import Any

from nostr_sdk import Keys, PublicKey, SecretKey
from pydantic import BaseModel, Field, model_validator

from vectorbot.core.exceptions import ConfigurationError, KeyFormatError


ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret  # Default env var name

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def normalize_private_key(private_key: str) -> str:
    """Return the lower-case hex form of an ``nsec`` or 64-char hex private key.

    Raises:
        KeyFormatError: If the key is neither valid bech32 ``nsec`` nor hex.
    """
    trimmed = private_key.strip()
    if trimmed.startswith("nsec1"):
        try:
            return SecretKey.parse(trimmed).to_hex()
        except Exception as e:  # nostr-sdk FFI raises its own error type
            raise KeyFormatError("Invalid nsec private key") from e
    if not _HEX_KEY.match(trimmed):
        raise KeyFormatError("Private key must be a 32-byte hex string or nsec")
    return trimmed.lower()


def normalize_public_key(public_key: str) -> str:
    """Return the lower-case hex form of an ``npub`` or 64-char hex public key.

    Raises:
        KeyFormatError: If the key is neither valid bech32 ``npub`` nor hex.
    """
    trimmed = public_key.strip()
    if trimmed.startswith("npub1"):
        try:
            return PublicKey.parse(trimmed).to_hex()
        except Exception as e:  # nostr-sdk FFI raises its own error type
            raise KeyFormatError("Invalid npub public key") from e
    if not _HEX_KEY.match(trimmed):
        raise KeyFormatError("Public key must be a 32-byte hex string or npub")
    return trimmed.lower()


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable containing the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance ready for signing operations.

    Raises:
        ConfigurationError: If the environment variable is not set or is empty.
        KeyFormatError: If the key value is malformed.
    """
    value = os.getenv(env_var)

    if not value:
        raise ConfigurationError(
            f"{env_var} environment variable is required. Generate one with: openssl rand -hex 32"
        )

    return Keys.parse(normalize_private_key(value))


class KeysConfig(BaseModel):
    """Pydantic model that auto-loads Nostr keys from an environment variable.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys`` instance (private + derived public key).

    Warning:
        The ``keys`` field contains a live private key. Do not serialize
        this model to logs, JSON, or any persistent storage.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env (required)")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        """Auto-populate the ``keys`` field from the environment variable."""
        if isinstance(data, dict) and "keys" not in data:
            env_var = data.get("keys_env", ENV_PRIVATE_KEY)
            data["keys"] = load_keys_from_env(env_var)
        return data

    @property
    def public_key_hex(self) -> str:
        return self.keys.public_key().to_hex()

    @property
    def secret_key_hex(self) -> str:
        return self.keys.secret_key().to_hex()
