"""Group-id extraction and the directed-to-bot heuristic.

Both functions are pure and work on raw tag tuples so the dispatcher, the
historical bootstrap, and the tests share one implementation.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence


GROUP_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{32,64}$")
COMMAND_PATTERN = re.compile(r"^!\S+")

# Reference tags point at users and events, never at groups.
_REFERENCE_TAGS = frozenset({"p", "e"})


def extract_group_id(tags: Iterable[Sequence[str]]) -> str | None:
    """Resolve the group id of a wrapper event from its tags.

    Order, first match wins:

    1. the value of a tag whose key is ``h`` (case-insensitive);
    2. the value of a two-element tag matching 32-64 hex characters;
    3. any tag value (position >= 1) matching that pattern.

    ``p`` and ``e`` tags never take part in steps 2 and 3.

    Returns:
        The group id, or ``None`` when unresolved.
    """
    tag_list = [tuple(tag) for tag in tags if tag]

    for tag in tag_list:
        if tag[0].lower() == "h" and len(tag) > 1 and tag[1].strip():
            return tag[1].strip()

    candidates = [tag for tag in tag_list if tag[0].lower() not in _REFERENCE_TAGS]

    for tag in candidates:
        if len(tag) == 2 and GROUP_ID_PATTERN.match(tag[1]):  # noqa: PLR2004
            return tag[1]

    for tag in candidates:
        for value in tag[1:]:
            if GROUP_ID_PATTERN.match(value):
                return value

    return None


def is_directed_to_bot(
    tags: Iterable[Sequence[str]],
    content: str,
    bot_pubkey: str,
    names: Iterable[str | None],
    *,
    bot_in_group: bool,
) -> bool:
    """Whether a group message addresses the bot.

    True iff a ``p`` tag mentions ``bot_pubkey``, or the trimmed lower-cased
    content starts with ``@<name>`` or ``<name>:`` for one of ``names``, or
    the bot is a tracked member and the content is a ``!command``.
    """
    bot_key = bot_pubkey.lower()
    for tag in tags:
        if len(tag) > 1 and tag[0] == "p" and tag[1].lower() == bot_key:
            return True

    text = content.strip().lower()
    for name in names:
        if not name or not name.strip():
            continue
        lowered = name.strip().lower()
        if text.startswith(f"@{lowered}") or text.startswith(f"{lowered}:"):
            return True

    return bot_in_group and COMMAND_PATTERN.match(content.strip()) is not None
