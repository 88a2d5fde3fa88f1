"""vectorbot exception hierarchy.

Typed exceptions let callers tell configuration mistakes (fail fast, before
any network activity) apart from transient transport, decrypt, and adapter
failures (reported, never fatal to the client).

Exception hierarchy:

```text
VectorBotError (base -- never raised directly)
├── ConfigurationError      -- missing key, empty relay list, blank group id
│   └── KeyFormatError      -- malformed nsec/npub/hex key
├── ConnectivityError       -- reconnect failure, history query failure
├── PublishingError         -- no relay acknowledged an event
├── ProtocolError           -- malformed events or filters
│   └── DecryptionError     -- NIP-04 payload could not be decrypted
├── AdapterError            -- group-cryptography sidecar failure
└── UploadError             -- NIP-96 attachment upload failure
```

See Also:
    [QuorumPublisher][vectorbot.services.publisher.QuorumPublisher]: Raises
        [PublishingError][vectorbot.core.exceptions.PublishingError] once
        retries are exhausted.
    [VectorBotClient][vectorbot.services.client.VectorBotClient]: Reports
        every non-configuration error through the ``error`` notification.
"""

from __future__ import annotations


class VectorBotError(Exception):
    """Base exception for all vectorbot errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(VectorBotError):
    """Invalid or missing configuration.

    Raised synchronously before any network activity: missing signing key,
    empty relay list, blank group id on send, invalid subscription limits.
    """


class KeyFormatError(ConfigurationError):
    """A private or public key is neither 64-char hex nor valid bech32."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class ConnectivityError(VectorBotError):
    """Relay connection, reconnection, or query failure.

    Always non-fatal: the health monitor and subscriptions keep running.
    """


class PublishingError(VectorBotError):
    """No relay acknowledged an event after all retries.

    Attributes:
        reason: Rejection reason reported by the first relay, if any.
    """

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(VectorBotError):
    """Malformed event, tag layout, or filter."""


class DecryptionError(ProtocolError):
    """An encrypted payload addressed to the bot could not be decrypted."""


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class AdapterError(VectorBotError):
    """The external group-cryptography process failed or answered badly.

    See Also:
        [SidecarAdapter][vectorbot.services.adapter.SidecarAdapter]: The
            process-backed adapter that raises this error.
    """


class UploadError(VectorBotError):
    """Attachment upload to the NIP-96 media server failed."""
