"""Group-cryptography adapter boundary.

The MLS engine lives outside this package. The client talks to it through
[GroupCryptoAdapter][vectorbot.services.adapter.GroupCryptoAdapter], an
interface whose every method is optional: callers look each one up with
[adapter_method()][vectorbot.services.adapter.adapter_method] at call time,
so a missing adapter (or a partial one) degrades functionality instead of
failing construction.

[SidecarAdapter][vectorbot.services.adapter.SidecarAdapter] implements the
full interface by running an external binary once per command, with a JSON
payload on stdin and a ``{"ok": bool, "result": ..., "error": ...}`` reply
on stdout.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from vectorbot.core.exceptions import AdapterError
from vectorbot.core.logger import Logger
from vectorbot.models.event import Event


DEFAULT_WELCOME_SYNC_HOURS = 24 * 30
DEFAULT_WELCOME_SYNC_LIMIT = 1000


@dataclass(frozen=True, slots=True)
class AdapterContext:
    """Identity and relays handed to every adapter operation."""

    bot_public_key: str
    relays: tuple[str, ...]
    bot_private_key: str | None = field(default=None, repr=False)
    since_hours: int | None = None
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class KeyPackageResult:
    published: bool
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class WelcomeSyncResult:
    processed: int = 0
    accepted: int = 0
    groups: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WelcomeInput:
    """A welcome rumor recovered from a gift-wrap, forwarded for processing."""

    wrapper_event: Event
    rumor: Event
    context: AdapterContext
    group_id_hint: str | None = None


@dataclass(frozen=True, slots=True)
class WelcomeResult:
    group_id: str | None = None


@dataclass(frozen=True, slots=True)
class DecryptedGroupMessage:
    """Plaintext recovered from a group wrapper."""

    group_id: str
    sender_pubkey: str
    content: str
    kind: int


class GroupCryptoAdapter(Protocol):
    """Operations of an external MLS engine. Every method is optional."""

    async def ensure_key_package(self, context: AdapterContext) -> KeyPackageResult: ...

    async def sync_welcomes(self, context: AdapterContext) -> WelcomeSyncResult: ...

    async def process_welcome(self, welcome: WelcomeInput) -> WelcomeResult: ...

    async def decrypt_group_wrapper(self, wrapper: Event) -> DecryptedGroupMessage | None: ...

    async def send_group_message(
        self, group_id: str, text: str, context: AdapterContext
    ) -> bool: ...

    async def bootstrap_groups(self, context: AdapterContext) -> list[str]: ...


def adapter_method(adapter: object | None, name: str) -> Callable[..., Any] | None:
    """Bound method ``name`` of ``adapter`` if present and callable, else ``None``."""
    if adapter is None:
        return None
    method = getattr(adapter, name, None)
    return method if callable(method) else None


class SidecarAdapter:
    """[GroupCryptoAdapter][vectorbot.services.adapter.GroupCryptoAdapter] over a subprocess.

    Examples:
        ```python
        adapter = SidecarAdapter(Path("/usr/local/bin/vector-mls"), Path("/var/lib/bot/mls"))
        result = await adapter.ensure_key_package(context)
        ```
    """

    def __init__(
        self,
        bin_path: Path | str,
        state_dir: Path | str,
        *,
        timeout: float = 60.0,  # noqa: ASYNC109
    ) -> None:
        self._bin_path = str(bin_path)
        self._state_dir = str(state_dir)
        self._timeout = timeout
        self._logger = Logger("sidecar")

    def _base(self, context: AdapterContext, *, with_private_key: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {"relays": list(context.relays), "state_dir": self._state_dir}
        if with_private_key and context.bot_private_key:
            payload["private_key"] = context.bot_private_key
        return payload

    async def run(self, command: str, payload: dict[str, Any]) -> Any:
        """Run one sidecar command and return its ``result``.

        Raises:
            AdapterError: On spawn failure, timeout, non-zero exit, an
                unparseable reply, or ``ok: false``.
        """
        self._logger.debug("sidecar_command", command=command)
        try:
            process = await asyncio.create_subprocess_exec(
                self._bin_path,
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AdapterError(f"Failed to start sidecar {self._bin_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(json.dumps(payload).encode()), timeout=self._timeout
            )
        except TimeoutError as e:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise AdapterError(f"Sidecar command {command} timed out") from e

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace").strip()
        if process.returncode != 0:
            raise AdapterError(err or f"Sidecar exited with code {process.returncode}")

        try:
            reply = json.loads(out)
        except ValueError as e:
            raise AdapterError(f"Invalid sidecar response: {out or err or e}") from e
        if not isinstance(reply, dict):
            raise AdapterError(f"Invalid sidecar response: {out}")
        if not reply.get("ok"):
            raise AdapterError(reply.get("error") or "Sidecar error")
        return reply.get("result")

    async def ensure_key_package(self, context: AdapterContext) -> KeyPackageResult:
        result = await self.run("ensure-keypackage", self._base(context)) or {}
        return KeyPackageResult(
            published=bool(result.get("published")), event_id=result.get("event_id")
        )

    async def sync_welcomes(self, context: AdapterContext) -> WelcomeSyncResult:
        payload = {
            **self._base(context),
            "since_hours": context.since_hours or DEFAULT_WELCOME_SYNC_HOURS,
            "limit": context.limit or DEFAULT_WELCOME_SYNC_LIMIT,
        }
        result = await self.run("sync-welcomes", payload) or {}
        return WelcomeSyncResult(
            processed=int(result.get("processed") or 0),
            accepted=int(result.get("accepted") or 0),
            groups=tuple(result.get("groups") or ()),
        )

    async def process_welcome(self, welcome: WelcomeInput) -> WelcomeResult:
        payload = {
            **self._base(welcome.context),
            "wrapper_event": welcome.wrapper_event.to_dict(),
            "rumor_json": welcome.rumor.to_json(),
            "group_id_hint": welcome.group_id_hint,
        }
        result = await self.run("process-welcome", payload) or {}
        return WelcomeResult(group_id=result.get("group_id"))

    async def decrypt_group_wrapper(self, wrapper: Event) -> DecryptedGroupMessage | None:
        payload = {"state_dir": self._state_dir, "wrapper_event": wrapper.to_dict()}
        result = await self.run("decrypt-wrapper", payload)
        if not result:
            return None
        try:
            return DecryptedGroupMessage(
                group_id=result["group_id"],
                sender_pubkey=result["sender_pubkey"],
                content=result["content"],
                kind=int(result["kind"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError(f"Invalid decrypt-wrapper result: {result!r}") from e

    async def send_group_message(self, group_id: str, text: str, context: AdapterContext) -> bool:
        payload = {**self._base(context), "group_id": group_id, "content": text}
        result = await self.run("send-group", payload) or {}
        return bool(result.get("sent"))

    async def bootstrap_groups(self, context: AdapterContext) -> list[str]:
        result = await self.run("list-groups", self._base(context, with_private_key=False)) or {}
        return list(result.get("groups") or [])
