"""Lifecycle tracking for fire-and-forget asyncio work (read receipts, uploads)."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Own background tasks so they are neither garbage collected nor silently lost."""

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._background: set[asyncio.Task[Any]] = set()

    def spawn(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and track the resulting task."""
        task = asyncio.get_running_loop().create_task(coro)
        self.add(task, name=name)
        return task

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Track a task, optionally under a unique name.

        A named task replaces any earlier task registered under the same name
        without cancelling it. Unnamed tasks drop out of tracking when done.
        """
        if name is not None:
            self._named[name] = task
            task.add_done_callback(lambda done: self._release(name, done))
        else:
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        task.add_done_callback(self._log_exception)

    def _release(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.background.exception",
                extra={
                    "event": "task.background.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the named task or ``None`` if not registered."""
        return self._named.get(name)

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._all() if not t.done())

    def _all(self) -> list[asyncio.Task[Any]]:
        return list(self._named.values()) + list(self._background)

    async def cancel(self, name: str) -> None:
        """Cancel a named task and await its completion."""
        task = self._named.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        tasks = [t for t in self._all() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._named.clear()
        self._background.clear()

    async def await_all(self) -> None:
        """Wait for all tracked tasks without cancelling them."""
        tasks = [t for t in self._all() if not t.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
