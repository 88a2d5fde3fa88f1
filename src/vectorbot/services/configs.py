"""Bot client configuration models.

See Also:
    [VectorBotClient][vectorbot.services.client.VectorBotClient]: The client
        that consumes these configurations.
    [BaseServiceConfig][vectorbot.core.base_service.BaseServiceConfig]:
        Base class of [HealthConfig][vectorbot.services.configs.HealthConfig]
        providing ``interval`` and ``max_consecutive_failures``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from vectorbot.core.base_service import BaseServiceConfig
from vectorbot.core.metrics import MetricsConfig
from vectorbot.models.constants import GroupMode
from vectorbot.models.profile import BotProfile
from vectorbot.models.relay import normalize_relay_urls
from vectorbot.utils.keys import KeysConfig


DEFAULT_RELAYS = [
    "wss://jskitty.cat/nostr",
    "wss://relay.damus.io",
    "wss://auth.nostr1.com",
    "wss://nostr.computingcache.com",
]


class PublishingConfig(BaseModel):
    """Quorum publish settings.

    Attributes:
        retries: Extra attempts after a publish no relay acknowledged.
    """

    retries: int = Field(default=1, ge=0, le=10)


class HealthConfig(BaseServiceConfig):
    """Relay health monitor settings.

    ``interval`` (inherited) is the poll period in seconds.

    Attributes:
        enabled: Whether the monitor runs at all.
        reconnect: Whether disconnected relays are reconnected automatically.
        warmup_floor: Minimum warm-up window in seconds before any
            ``disconnect`` is reported (the window is at least twice the
            interval).
        backoff_floor: Minimum seconds between reconnect attempts to one
            relay (the window is at least twice the interval).
        down_threshold: Consecutive down polls before ``disconnect``.
        up_threshold: Consecutive up polls before ``reconnect``.
    """

    enabled: bool = Field(default=True)
    reconnect: bool = Field(default=True)
    warmup_floor: float = Field(default=20.0, ge=0.0)
    backoff_floor: float = Field(default=15.0, ge=0.0)
    down_threshold: int = Field(default=2, ge=1)
    up_threshold: int = Field(default=2, ge=1)

    @property
    def warmup(self) -> float:
        return max(2 * self.interval, self.warmup_floor)

    @property
    def backoff(self) -> float:
        return max(2 * self.interval, self.backoff_floor)


class GroupHistoryConfig(BaseModel):
    """Historical group bootstrap settings.

    Attributes:
        enabled: Whether to run the bootstrap on connect.
        since_hours: Lookback window in hours.
        max_events: Result cap per historical query.
        max_wait: Seconds each query may take before falling back.
    """

    enabled: bool = Field(default=True)
    since_hours: int = Field(default=24 * 14, ge=1)
    max_events: int = Field(default=1000, ge=10)
    max_wait: float = Field(default=4.0, gt=0.0)


class GroupsConfig(BaseModel):
    """Group participation settings.

    Attributes:
        mode: ``restricted`` (encrypted MLS wrappers via the adapter) or
            ``open`` (plaintext kind-9 chat grouped by ``h`` tag).
        group_ids: Groups the bot is configured into.
        auto_discover: Subscribe to every group wrapper instead of only
            the configured groups.
        history: Historical bootstrap settings.
    """

    mode: GroupMode = Field(default=GroupMode.RESTRICTED)
    group_ids: list[str] = Field(default_factory=list)
    auto_discover: bool = Field(default=True)
    history: GroupHistoryConfig = Field(default_factory=GroupHistoryConfig)

    @field_validator("group_ids")
    @classmethod
    def _strip_group_ids(cls, value: list[str]) -> list[str]:
        return [group_id.strip() for group_id in value if group_id and group_id.strip()]


class DedupConfig(BaseModel):
    """Message dedup settings.

    Attributes:
        capacity: Event ids retained before the oldest is evicted.
    """

    capacity: int = Field(default=10_000, ge=1)


class SidecarConfig(BaseModel):
    """External group-cryptography process settings.

    Attributes:
        enabled: Whether to create a
            [SidecarAdapter][vectorbot.services.adapter.SidecarAdapter].
        bin_path: Executable invoked once per command.
        state_dir: Directory where the process keeps its MLS state.
        share_private_key: Pass the bot private key to the process.
        timeout: Seconds a single command may run.
    """

    enabled: bool = Field(default=False)
    bin_path: Path = Field(default=Path("vector-mls-sidecar"))
    state_dir: Path = Field(default=Path(".vectorbot/mls"))
    share_private_key: bool = Field(default=True)
    timeout: float = Field(default=60.0, gt=0.0)


class UploadConfig(BaseModel):
    """NIP-96 attachment upload settings."""

    server_url: str = Field(default="https://medea-1-swiss.vectorapp.io")
    retry_count: int = Field(default=3, ge=0)
    retry_spacing: float = Field(default=2.0, ge=0.0)
    timeout: float = Field(default=60.0, gt=0.0)


class VectorBotConfig(KeysConfig):
    """Bot client configuration.

    Inherits key management from
    [KeysConfig][vectorbot.utils.keys.KeysConfig]: the private key is read
    from the environment variable named by ``keys_env``.

    Attributes:
        relays: Relay URLs used for every subscription and publish.
            Normalized and de-duplicated; may be empty here, ``connect()``
            rejects an empty list.
    """

    relays: list[str] = Field(default_factory=lambda: list(DEFAULT_RELAYS))
    profile: BotProfile = Field(default_factory=BotProfile)
    publishing: PublishingConfig = Field(default_factory=PublishingConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    groups: GroupsConfig = Field(default_factory=GroupsConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    sidecar: SidecarConfig = Field(default_factory=SidecarConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @field_validator("relays")
    @classmethod
    def _normalize_relays(cls, value: list[str]) -> list[str]:
        return normalize_relay_urls(value)
