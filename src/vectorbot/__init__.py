r"""vectorbot -- Nostr bot runtime for private messages and group chat.

A bot identity connects to a relay set, receives NIP-04 and NIP-17 direct
messages and group messages (MLS wrappers through an external adapter, or
plaintext chat), and answers through a quorum publisher.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
              services         Client, dispatcher, registry, health
             /   |   \
          core  nips  utils    Infrastructure, event builders, SDK bridges
             \   |   /
              models           Pure frozen dataclasses (zero I/O)
```

Note:
    Top-level imports (``from vectorbot import VectorBotClient``) use lazy
    loading and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("vectorbot")

__all__ = [
    "BaseService",
    "BotMessage",
    "BotProfile",
    "Event",
    "GroupMode",
    "Logger",
    "NotificationBus",
    "Relay",
    "VectorBotClient",
    "VectorBotConfig",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseService": ("vectorbot.core", "BaseService"),
    "Logger": ("vectorbot.core", "Logger"),
    "NotificationBus": ("vectorbot.core", "NotificationBus"),
    "BotMessage": ("vectorbot.models", "BotMessage"),
    "BotProfile": ("vectorbot.models", "BotProfile"),
    "Event": ("vectorbot.models", "Event"),
    "GroupMode": ("vectorbot.models", "GroupMode"),
    "Relay": ("vectorbot.models", "Relay"),
    "VectorBotClient": ("vectorbot.services", "VectorBotClient"),
    "VectorBotConfig": ("vectorbot.services", "VectorBotConfig"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'vectorbot' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
