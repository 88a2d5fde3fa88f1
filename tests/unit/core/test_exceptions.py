"""
Unit tests for core.exceptions module.

Tests:
- Hierarchy: every error derives from VectorBotError
- Configuration errors are distinguishable from transient failures
- PublishingError carries the first relay's rejection reason
"""

import pytest

from vectorbot.core.exceptions import (
    AdapterError,
    ConfigurationError,
    ConnectivityError,
    DecryptionError,
    KeyFormatError,
    ProtocolError,
    PublishingError,
    UploadError,
    VectorBotError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc_type",
        [
            ConfigurationError,
            KeyFormatError,
            ConnectivityError,
            PublishingError,
            ProtocolError,
            DecryptionError,
            AdapterError,
            UploadError,
        ],
    )
    def test_derives_from_base(self, exc_type: type[Exception]) -> None:
        assert issubclass(exc_type, VectorBotError)

    def test_key_format_is_configuration_error(self) -> None:
        assert issubclass(KeyFormatError, ConfigurationError)

    def test_decryption_is_protocol_error(self) -> None:
        assert issubclass(DecryptionError, ProtocolError)

    def test_transient_errors_are_not_configuration_errors(self) -> None:
        for exc_type in (ConnectivityError, PublishingError, AdapterError, UploadError):
            assert not issubclass(exc_type, ConfigurationError)


class TestPublishingError:
    def test_reason_attribute(self) -> None:
        error = PublishingError("rate-limited: slow down", reason="rate-limited: slow down")
        assert error.reason == "rate-limited: slow down"
        assert str(error) == "rate-limited: slow down"

    def test_reason_defaults_to_none(self) -> None:
        assert PublishingError("failed").reason is None
