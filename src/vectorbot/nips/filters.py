"""NIP-01 subscription and query filters used by the bot client.

Filters are plain ``dict`` objects in NIP-01 JSON shape so they can be
logged, compared in tests, and handed to any
[RelayPool][vectorbot.utils.pool.RelayPool] implementation. The
``nostr_sdk`` pool converts them with ``Filter.from_json``.

Examples:
    ```python
    create_gift_wrap_filter(bot_pubkey)
    # {'kinds': [1059], '#p': ['ab12...'], 'limit': 0}

    group_subscription_filter(EventKind.MLS_GROUP_MESSAGE, ["g1"])
    # {'kinds': [445], '#h': ['g1']}
    ```
"""

from __future__ import annotations

from typing import Any

from vectorbot.models.constants import EventKind


MAX_SUBSCRIPTION_LIMIT = 1000


def create_gift_wrap_filter(
    pubkey: str,
    kind: int = EventKind.GIFT_WRAP,
    limit: int = 0,
) -> dict[str, Any]:
    """Live gift-wrap subscription addressed to ``pubkey`` via its ``p`` tag.

    ``limit`` 0 asks relays for new events only.

    Raises:
        ValueError: If ``limit`` is negative or exceeds 1000.
    """
    if limit < 0:
        raise ValueError("limit must be non-negative")
    if limit > MAX_SUBSCRIPTION_LIMIT:
        raise ValueError(f"limit exceeds maximum allowed value ({MAX_SUBSCRIPTION_LIMIT})")
    return {"kinds": [int(kind)], "#p": [pubkey], "limit": limit}


def direct_message_filter(pubkey: str) -> dict[str, Any]:
    """NIP-04 and NIP-17 direct messages tagged to ``pubkey``."""
    return {
        "kinds": [int(EventKind.ENCRYPTED_DIRECT_MESSAGE), int(EventKind.PRIVATE_DIRECT_MESSAGE)],
        "#p": [pubkey],
    }


def group_subscription_filter(
    kind: int, group_ids: list[str] | None = None, since: int | None = None
) -> dict[str, Any]:
    """Group wrapper subscription, restricted to ``group_ids`` via ``#h`` when given.

    ``since`` keeps relays from replaying stored wrappers older than the
    subscription.
    """
    filter_: dict[str, Any] = {"kinds": [int(kind)]}
    if group_ids:
        filter_["#h"] = sorted(group_ids)
    if since is not None:
        filter_["since"] = since
    return filter_


def profile_filter(pubkey: str) -> dict[str, Any]:
    """Latest kind-0 metadata of ``pubkey``."""
    return {"kinds": [int(EventKind.METADATA)], "authors": [pubkey], "limit": 1}


def history_gift_wrap_filter(pubkey: str, since: int, limit: int) -> dict[str, Any]:
    """Historical gift-wraps addressed to ``pubkey``."""
    return {"kinds": [int(EventKind.GIFT_WRAP)], "#p": [pubkey], "since": since, "limit": limit}


def history_group_filter(kind: int, since: int, limit: int) -> dict[str, Any]:
    """Historical group wrapper events of ``kind``."""
    return {"kinds": [int(kind)], "since": since, "limit": limit}


def without_tag_constraints(filter_: dict[str, Any]) -> dict[str, Any]:
    """Copy of ``filter_`` with every ``#<tag>`` constraint removed.

    Used as the fallback when a tagged historical query times out on relays
    that do not index the tag.
    """
    return {key: value for key, value in filter_.items() if not key.startswith("#")}
