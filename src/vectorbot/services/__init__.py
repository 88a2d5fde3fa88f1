"""Services layer: the bot client and the components it orchestrates.

Sits at the top of the diamond DAG and may import from core, nips, utils,
and models.

Attributes:
    VectorBotClient: Connection lifecycle, inbound dispatch, outbound API.
        See [VectorBotClient][vectorbot.services.client.VectorBotClient].
    EnvelopeDispatcher: Classification and routing of inbound events.
    GroupRegistry: Known, joined, configured, and observed group sets.
    MessageEmitter: Deduplicated ``message`` notifications.
    QuorumPublisher: Publish to a relay set, succeed on one acceptance.
    RelayHealthMonitor: Hysteresis-based connectivity notifications.
    HistoryBootstrap: One-shot historical group discovery.
    SidecarAdapter: External MLS engine over a subprocess.
"""

from .adapter import (
    AdapterContext,
    DecryptedGroupMessage,
    GroupCryptoAdapter,
    KeyPackageResult,
    SidecarAdapter,
    WelcomeInput,
    WelcomeResult,
    WelcomeSyncResult,
    adapter_method,
)
from .bootstrap import HistoryBootstrap
from .client import VectorBotClient
from .configs import (
    DEFAULT_RELAYS,
    DedupConfig,
    GroupHistoryConfig,
    GroupsConfig,
    HealthConfig,
    PublishingConfig,
    SidecarConfig,
    UploadConfig,
    VectorBotConfig,
)
from .directed import extract_group_id, is_directed_to_bot
from .dispatcher import EnvelopeDispatcher, rebuild_wrapper
from .emitter import DedupCache, MessageEmitter, ProfileCache
from .health import RelayHealthMonitor
from .publisher import QuorumPublisher
from .registry import GroupRegistry


__all__ = [
    "DEFAULT_RELAYS",
    "AdapterContext",
    "DecryptedGroupMessage",
    "DedupCache",
    "DedupConfig",
    "EnvelopeDispatcher",
    "GroupCryptoAdapter",
    "GroupHistoryConfig",
    "GroupRegistry",
    "GroupsConfig",
    "HealthConfig",
    "HistoryBootstrap",
    "KeyPackageResult",
    "MessageEmitter",
    "ProfileCache",
    "PublishingConfig",
    "QuorumPublisher",
    "RelayHealthMonitor",
    "SidecarAdapter",
    "SidecarConfig",
    "UploadConfig",
    "VectorBotClient",
    "VectorBotConfig",
    "WelcomeInput",
    "WelcomeResult",
    "WelcomeSyncResult",
    "adapter_method",
    "extract_group_id",
    "is_directed_to_bot",
    "rebuild_wrapper",
]
