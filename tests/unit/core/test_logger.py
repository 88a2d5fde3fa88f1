"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs quoting, escaping, and truncation
- Logger key=value and JSON output
- Logger.bind() context propagation
- StructuredFormatter rendering
"""

import json
import logging

import pytest

from vectorbot.core.logger import Logger, StructuredFormatter, format_kv_pairs


class TestFormatKvPairs:
    def test_empty(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple_values(self) -> None:
        assert format_kv_pairs({"relay": "wss://r", "count": 3}) == " relay=wss://r count=3"

    def test_values_with_spaces_are_quoted(self) -> None:
        assert format_kv_pairs({"error": "no route"}) == ' error="no route"'

    def test_quotes_are_escaped(self) -> None:
        assert format_kv_pairs({"msg": 'say "hi"'}) == ' msg="say \\"hi\\""'

    def test_empty_string_is_quoted(self) -> None:
        assert format_kv_pairs({"name": ""}) == ' name=""'

    def test_truncation(self) -> None:
        out = format_kv_pairs({"content": "x" * 20}, max_value_length=5)
        assert "xxxxx...<truncated 15 chars>" in out


class TestLogger:
    def test_key_value_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.kv")
        with caplog.at_level(logging.INFO, logger="test.kv"):
            logger.info("group_discovered", group_id="g1")

        record = caplog.records[-1]
        assert record.getMessage() == "group_discovered"
        assert record.structured_kv == {"group_id": "g1"}

    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test.json"):
            logger.info("ready", pubkey="ab")

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["message"] == "ready"
        assert payload["component"] == "test.json"
        assert payload["pubkey"] == "ab"

    def test_bind_adds_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.bind").bind(relay="wss://r")
        with caplog.at_level(logging.WARNING, logger="test.bind"):
            logger.warning("relay_down", streak=2)

        assert caplog.records[-1].structured_kv == {"relay": "wss://r", "streak": "2"}

    def test_disabled_level_is_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.level")
        with caplog.at_level(logging.ERROR, logger="test.level"):
            logger.debug("noise")
        assert not [r for r in caplog.records if r.name == "test.level"]

    def test_name(self) -> None:
        assert Logger("dispatcher").name == "dispatcher"


class TestStructuredFormatter:
    def test_format_with_fields(self) -> None:
        record = logging.LogRecord("client", logging.INFO, __file__, 1, "connected", None, None)
        record.structured_kv = {"relays": "2"}
        assert StructuredFormatter().format(record) == "info client connected relays=2"

    def test_format_plain_record(self) -> None:
        record = logging.LogRecord("models", logging.WARNING, __file__, 1, "plain", None, None)
        assert StructuredFormatter().format(record) == "warning models plain"
