"""
Detached background work started after the webhook response.

Tasks are never awaited by the request path. The dispatcher keeps strong
references so the event loop cannot garbage collect them mid-flight, and
its done-callback is the only place their failures surface (as logs).
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class BackgroundDispatcher:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, operation: str, **context) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return immediately."""
        task = asyncio.create_task(coro, name=operation)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_done(done, operation, context))
        return task

    def _on_done(self, task: asyncio.Task, operation: str, context: dict[str, Any]) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning("Background operation cancelled", operation=operation, **context)
            return

        error = task.exception()
        if error is None:
            return

        self.failures += 1
        logger.error(
            "Background operation failed",
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info("Draining background operations", pending=len(tasks))
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("Background operations cancelled on drain", count=len(still_running))
