"""Tracked fire-and-forget background tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from stitch.lib.logging_config import get_logger

logger = get_logger(__name__)


class BackgroundTaskGroup:
    """Keep references to spawned tasks and log their failures.

    Failures never propagate to whoever spawned the task.
    """

    def __init__(self) -> None:
        """Initialize an empty task group."""
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending_count(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule a coroutine on the running loop."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task '{task.get_name()}' failed: {exc}",
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait for every spawned task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every spawned task and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
