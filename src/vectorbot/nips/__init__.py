"""Nostr Implementation Possibilities -- event and filter construction.

The NIPs layer sits in the middle of the diamond DAG and depends only on
[vectorbot.models][vectorbot.models]. It performs no I/O: builders return
unsigned [EventTemplate][vectorbot.models.event.EventTemplate] objects and
filter helpers return NIP-01 filter dictionaries.

Attributes:
    event_builders: Profile (kind 0), direct message (kind 4), private
        message rumor (kind 14), reaction (kind 7), typing indicator
        (kind 30078), file message (kind 15), group chat (kind 9), and
        NIP-98 HTTP auth (kind 27235) templates.
    filters: Gift-wrap, direct message, group, profile, and history filters.
"""

from .event_builders import (
    build_direct_message,
    build_file_message,
    build_group_chat_message,
    build_http_auth,
    build_private_message_rumor,
    build_profile_event,
    build_reaction,
    build_typing_indicator,
)
from .filters import (
    MAX_SUBSCRIPTION_LIMIT,
    create_gift_wrap_filter,
    direct_message_filter,
    group_subscription_filter,
    history_gift_wrap_filter,
    history_group_filter,
    profile_filter,
    without_tag_constraints,
)


__all__ = [
    "MAX_SUBSCRIPTION_LIMIT",
    "build_direct_message",
    "build_file_message",
    "build_group_chat_message",
    "build_http_auth",
    "build_private_message_rumor",
    "build_profile_event",
    "build_reaction",
    "build_typing_indicator",
    "create_gift_wrap_filter",
    "direct_message_filter",
    "group_subscription_filter",
    "history_gift_wrap_filter",
    "history_group_filter",
    "profile_filter",
    "without_tag_constraints",
]
