"""
Unit tests for services.configs module.

Tests:
- VectorBotConfig defaults, relay normalization, and key loading
- HealthConfig warm-up and backoff windows
- GroupsConfig mode validation and id stripping
- Validation bounds
"""

import pytest
from pydantic import ValidationError

from vectorbot.core.exceptions import ConfigurationError
from vectorbot.models.constants import GroupMode
from vectorbot.services.configs import (
    DEFAULT_RELAYS,
    GroupHistoryConfig,
    GroupsConfig,
    HealthConfig,
    PublishingConfig,
    VectorBotConfig,
)


class TestVectorBotConfig:
    def test_defaults(self) -> None:
        config = VectorBotConfig()
        assert config.relays == DEFAULT_RELAYS
        assert config.profile.name == "vector-bot"
        assert config.groups.mode == GroupMode.RESTRICTED
        assert config.dedup.capacity == 10_000
        assert config.sidecar.enabled is False

    def test_relays_normalized_and_deduplicated(self) -> None:
        config = VectorBotConfig(relays=["wss://Relay.Example/", "wss://relay.example", ""])
        assert config.relays == ["wss://relay.example"]

    def test_empty_relays_allowed_until_connect(self) -> None:
        assert VectorBotConfig(relays=[]).relays == []

    def test_invalid_relay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            VectorBotConfig(relays=["https://not-a-relay.example"])

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PRIVATE_KEY")
        with pytest.raises(ConfigurationError):
            VectorBotConfig()

    def test_nested_dicts(self) -> None:
        config = VectorBotConfig(
            groups={"mode": "open", "group_ids": [" g1 ", ""], "history": {"since_hours": 1}},
            publishing={"retries": 3},
        )
        assert config.groups.mode == GroupMode.OPEN
        assert config.groups.group_ids == ["g1"]
        assert config.groups.history.since_hours == 1
        assert config.publishing.retries == 3


class TestHealthConfig:
    def test_defaults(self) -> None:
        config = HealthConfig()
        assert config.interval == 15.0
        assert config.warmup == 30.0
        assert config.backoff == 30.0

    def test_floors_apply_for_short_intervals(self) -> None:
        config = HealthConfig(interval=1.0)
        assert config.warmup == 20.0
        assert config.backoff == 15.0

    def test_thresholds_positive(self) -> None:
        with pytest.raises(ValidationError):
            HealthConfig(down_threshold=0)


class TestGroupsConfig:
    def test_group_ids_stripped(self) -> None:
        assert GroupsConfig(group_ids=[" g1 ", "", "  ", "g2"]).group_ids == ["g1", "g2"]

    def test_invalid_mode(self) -> None:
        with pytest.raises(ValidationError):
            GroupsConfig(mode="public")

    def test_history_bounds(self) -> None:
        with pytest.raises(ValidationError):
            GroupHistoryConfig(since_hours=0)
        with pytest.raises(ValidationError):
            GroupHistoryConfig(max_events=5)


class TestPublishingConfig:
    def test_retries_bounds(self) -> None:
        assert PublishingConfig().retries == 1
        with pytest.raises(ValidationError):
            PublishingConfig(retries=-1)
