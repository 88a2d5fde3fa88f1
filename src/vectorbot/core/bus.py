"""Upward notification channel for bot clients.

[NotificationBus][vectorbot.core.bus.NotificationBus] is a plain observer
list keyed by notification name (``ready``, ``message``,
``group_discovered``, ...). Handlers may be plain callables or coroutine
functions; coroutine results are scheduled on the running loop and tracked
so shutdown can wait for them.

A failing handler never propagates into the publisher of the notification:
the dispatch loop, the health monitor, and the bootstrap keep running.

Examples:
    ```python
    bus = NotificationBus()
    bus.on("message", lambda message: print(message.content))
    bus.emit("message", message)
    ```
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from .logger import Logger


if TYPE_CHECKING:
    from collections.abc import Callable


class NotificationBus:
    """Named observer lists with sync and async handler support."""

    def __init__(self, logger: Logger | None = None) -> None:
        self._handlers: defaultdict[str, list[Callable[[Any], Any]]] = defaultdict(list)
        self._pending: set[asyncio.Task[Any]] = set()
        self._logger = logger or Logger("bus")

    def on(self, name: str, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        """Register ``handler`` for ``name``; returns it so it can be used as a decorator."""
        self._handlers[name].append(handler)
        return handler

    def off(self, name: str, handler: Callable[[Any], Any]) -> None:
        """Remove a previously registered handler; unknown handlers are ignored."""
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def listener_count(self, name: str) -> int:
        return len(self._handlers.get(name, ()))

    def emit(self, name: str, payload: Any = None) -> int:
        """Deliver ``payload`` to every handler registered for ``name``.

        Returns:
            Number of handlers invoked.
        """
        handlers = list(self._handlers.get(name, ()))
        if not handlers and name == "error":
            self._logger.warning("unhandled_error_notification", error=payload)
            return 0

        for handler in handlers:
            try:
                result = handler(payload)
            except Exception as e:  # Intentionally broad: subscriber code is untrusted
                self._logger.error("handler_failed", notification=name, error=str(e))
                continue
            if inspect.isawaitable(result):
                self._track(name, result)
        return len(handlers)

    def _track(self, name: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                self._logger.error("handler_failed", notification=name, error=str(exc))

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait until every scheduled async handler has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
