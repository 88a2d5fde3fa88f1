"""Encrypted-group membership as seen by the bot.

Four sets of group ids, each only ever growing:

- ``configured``: supplied at startup, fixed afterwards.
- ``joined``: groups the bot posted into, was welcomed into, or was
  configured into.
- ``known``: every group seen through a tracked channel.
- ``observed``: every group id seen in any wrapper, tracked or not
  (diagnostics only).

``configured ⊆ joined ⊆ known`` always holds: registering into ``joined``
also registers into ``known``.
"""

from __future__ import annotations

from collections.abc import Iterable


class GroupRegistry:
    """Monotonic group-id sets owned by one bot client.

    Mutated only from the client's dispatch task.

    Examples:
        ```python
        registry = GroupRegistry(["g1"])
        registry.register_known("g2")   # True
        registry.register_known("g2")   # False
        registry.is_tracked("g3")       # False
        ```
    """

    def __init__(self, configured: Iterable[str] = ()) -> None:
        self._configured: frozenset[str] = frozenset(
            group_id.strip() for group_id in configured if group_id and group_id.strip()
        )
        self._joined: set[str] = set(self._configured)
        self._known: set[str] = set(self._configured)
        self._observed: set[str] = set()

    @property
    def configured(self) -> frozenset[str]:
        return self._configured

    def register_known(self, group_id: str) -> bool:
        """Add to ``known``; returns whether the id was new there."""
        if group_id in self._known:
            return False
        self._known.add(group_id)
        return True

    def register_joined(self, group_id: str) -> bool:
        """Add to ``joined`` (and ``known``); returns whether the id was new to ``joined``."""
        self._known.add(group_id)
        if group_id in self._joined:
            return False
        self._joined.add(group_id)
        return True

    def observe(self, group_id: str) -> bool:
        """Add to ``observed``; returns whether the id was new there."""
        if group_id in self._observed:
            return False
        self._observed.add(group_id)
        return True

    def is_known(self, group_id: str) -> bool:
        return group_id in self._known

    def is_joined(self, group_id: str) -> bool:
        return group_id in self._joined

    def is_configured(self, group_id: str) -> bool:
        return group_id in self._configured

    def is_tracked(self, group_id: str) -> bool:
        """Whether restricted-mode processing should look at this group at all."""
        return group_id in self._known or group_id in self._joined or group_id in self._configured

    def known_group_ids(self) -> list[str]:
        return sorted(self._known)

    def joined_group_ids(self) -> list[str]:
        return sorted(self._joined)

    def observed_group_ids(self) -> list[str]:
        return sorted(self._observed)

    def configured_group_ids(self) -> list[str]:
        return sorted(self._configured)
