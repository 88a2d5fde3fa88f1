"""
Relay URLs and per-relay health state.

[Relay][vectorbot.models.relay.Relay] parses, normalizes, and validates a
WebSocket relay URL (``ws://`` or ``wss://``) and detects its network type.
Unlike a crawler, a bot is often pointed at a relay on localhost or a LAN,
so local addresses are accepted and classified as
``NetworkType.LOCAL``.

[RelayEndpoint][vectorbot.models.relay.RelayEndpoint] is the mutable
hysteresis state the health monitor keeps for each relay.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network
from typing import ClassVar

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator

from .constants import NetworkType


@dataclass(frozen=True, slots=True)
class Relay:
    """Immutable, normalized relay URL.

    Attributes:
        url: Normalized URL (lower-case scheme and host, default port and
            trailing slash removed).
        network: Detected [NetworkType][vectorbot.models.constants.NetworkType].
        scheme: ``ws`` or ``wss``.
        host: Hostname or IP address (brackets stripped for IPv6).
        port: Explicit non-default port, or ``None``.
        path: Path component, or ``None``.

    Raises:
        ValueError: If the URL is malformed, not ``ws``/``wss``, or carries a
            query string or fragment.

    Examples:
        ```python
        Relay("wss://Relay.Damus.io/").url     # 'wss://relay.damus.io'
        Relay("ws://localhost:7777").network   # NetworkType.LOCAL
        Relay("wss://jskitty.cat/nostr").path  # '/nostr'
        ```
    """

    raw_url: str = field(repr=False)

    url: str = field(init=False)
    network: NetworkType = field(init=False)
    scheme: str = field(init=False)
    host: str = field(init=False)
    port: int | None = field(init=False)
    path: str | None = field(init=False)

    _DEFAULT_PORTS: ClassVar[dict[str, int]] = {"ws": 80, "wss": 443}

    _NETWORK_TLDS: ClassVar[dict[str, NetworkType]] = {
        ".onion": NetworkType.TOR,
        ".i2p": NetworkType.I2P,
        ".loki": NetworkType.LOKI,
    }

    _LOCAL_NETWORKS: ClassVar[list[IPv4Network | IPv6Network]] = [
        ip_network("10.0.0.0/8"),
        ip_network("127.0.0.0/8"),
        ip_network("169.254.0.0/16"),
        ip_network("172.16.0.0/12"),
        ip_network("192.168.0.0/16"),
        ip_network("::1/128"),
        ip_network("fc00::/7"),
        ip_network("fe80::/10"),
    ]

    def __post_init__(self) -> None:
        if "\x00" in self.raw_url:
            raise ValueError("Relay URL contains null bytes")

        uri = uri_reference(self.raw_url.strip()).normalize()
        validator = (
            Validator()
            .require_presence_of("scheme", "host")
            .allow_schemes("ws", "wss")
            .check_validity_of("scheme", "host", "port", "path")
        )
        try:
            validator.validate(uri)
        except UnpermittedComponentError:
            raise ValueError(f"Invalid scheme in {self.raw_url!r}: must be ws or wss") from None
        except ValidationError as e:
            raise ValueError(f"Invalid relay URL {self.raw_url!r}: {e}") from None

        if uri.query:
            raise ValueError(f"Relay URL must not contain a query string: ?{uri.query}")
        if uri.fragment:
            raise ValueError(f"Relay URL must not contain a fragment: #{uri.fragment}")

        scheme = uri.scheme
        host = uri.host.strip("[]")
        port = int(uri.port) if uri.port else None
        if port == self._DEFAULT_PORTS[scheme]:
            port = None

        path = uri.path or ""
        while "//" in path:
            path = path.replace("//", "/")
        path = path.rstrip("/") or None

        formatted_host = f"[{host}]" if ":" in host else host
        authority = f"{formatted_host}:{port}" if port else formatted_host

        object.__setattr__(self, "url", f"{scheme}://{authority}{path or ''}")
        object.__setattr__(self, "network", self._detect_network(host))
        object.__setattr__(self, "scheme", scheme)
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "path", path)

    @classmethod
    def _detect_network(cls, host: str) -> NetworkType:
        host_bare = host.lower()
        for tld, network in cls._NETWORK_TLDS.items():
            if host_bare.endswith(tld):
                return network
        if host_bare in ("localhost", "localhost.localdomain"):
            return NetworkType.LOCAL
        try:
            ip = ip_address(host_bare)
        except ValueError:
            return NetworkType.CLEARNET
        if any(ip in net for net in cls._LOCAL_NETWORKS):
            return NetworkType.LOCAL
        return NetworkType.CLEARNET

    def __str__(self) -> str:
        return self.url


def normalize_relay_urls(urls: list[str]) -> list[str]:
    """Normalize and de-duplicate relay URLs, preserving first-seen order.

    Blank entries are dropped.

    Raises:
        ValueError: If a non-blank entry is not a valid relay URL.
    """
    seen: dict[str, None] = {}
    for raw in urls:
        if not raw or not raw.strip():
            continue
        seen.setdefault(Relay(raw).url, None)
    return list(seen)


@dataclass(slots=True)
class RelayEndpoint:
    """Hysteresis state for one relay, owned by the health monitor.

    Attributes:
        url: Normalized relay URL.
        stable: Last externally reported state; ``None`` until first observed.
        down_streak: Consecutive polls reporting the relay down.
        up_streak: Consecutive polls reporting the relay up.
        last_reconnect_attempt: Monotonic time of the last reconnect attempt
            (``None`` if never attempted).
    """

    url: str
    stable: bool | None = None
    down_streak: int = 0
    up_streak: int = 0
    last_reconnect_attempt: float | None = None

    def observe(self, connected: bool) -> None:
        """Update the streak counters with one poll result."""
        if connected:
            self.up_streak += 1
            self.down_streak = 0
        else:
            self.down_streak += 1
            self.up_streak = 0
