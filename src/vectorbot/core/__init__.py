"""Core layer providing the foundation for all vectorbot components.

Sits in the middle of the diamond DAG -- depends only on
``vectorbot.models`` and is depended upon by ``vectorbot.services``.

Attributes:
    BaseService: Abstract periodic component with interruptible cycling,
        failure limits, and metrics.
        See [BaseService][vectorbot.core.base_service.BaseService].
    NotificationBus: Observer list for upward notifications.
        See [NotificationBus][vectorbot.core.bus.NotificationBus].
    Logger: Structured logger supporting key=value and JSON output modes.
        See [Logger][vectorbot.core.logger.Logger].
    MetricsServer: Prometheus endpoint for metrics exposition.
        See [MetricsServer][vectorbot.core.metrics.MetricsServer].
    load_yaml: Safe YAML loading with ``yaml.safe_load()``.
"""

from .base_service import BaseService, BaseServiceConfig, ConfigT
from .bus import NotificationBus
from .exceptions import (
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
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    BOT_COUNTER,
    BOT_GAUGE,
    BOT_INFO,
    PUBLISH_DURATION_SECONDS,
    MetricsConfig,
    MetricsRecorder,
    MetricsServer,
    start_metrics_server,
)
from .yaml import load_yaml


__all__ = [
    "BOT_COUNTER",
    "BOT_GAUGE",
    "BOT_INFO",
    "PUBLISH_DURATION_SECONDS",
    "AdapterError",
    "BaseService",
    "BaseServiceConfig",
    "ConfigT",
    "ConfigurationError",
    "ConnectivityError",
    "DecryptionError",
    "KeyFormatError",
    "Logger",
    "MetricsConfig",
    "MetricsRecorder",
    "MetricsServer",
    "NotificationBus",
    "ProtocolError",
    "PublishingError",
    "StructuredFormatter",
    "UploadError",
    "VectorBotError",
    "format_kv_pairs",
    "load_yaml",
    "start_metrics_server",
]
