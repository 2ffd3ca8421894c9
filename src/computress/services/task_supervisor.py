from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from computress.services.logger_service import LoggerService


class TaskSupervisor:
    """
    Runs one task per inbound event and records how each one ended.

    A failing task is logged and forgotten; nothing it raises reaches the loop that spawned it.
    """

    def __init__(self, logger: LoggerService) -> None:
        self.logger = logger
        self._tasks: set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self.logger.log("task.cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self.logger.log("task.failed", task=task.get_name(), error=f"{type(exc).__name__}: {exc}"[:300])

    async def drain(self, timeout: float | None = 10.0) -> None:
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        if still_pending:
            self.logger.log("task.drain_incomplete", pending=len(still_pending))
