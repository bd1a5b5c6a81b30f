"""Tracking for fire-and-forget work.

Stale-while-revalidate refreshes and control messages run after the
caller already has its answer. :class:`BackgroundTasks` keeps a strong
reference to each such task (the event loop only keeps weak ones), reports
failures instead of letting them vanish, and lets the owner wait for
everything outstanding with :meth:`BackgroundTasks.drain`.

There is no cancellation: once spawned, a task runs to completion or
failure. :meth:`BackgroundTasks.run` awaits a task through
:func:`asyncio.shield`, so a cancelled caller leaves the fetch and its
store write running.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Coroutine, TypeVar

from offlinecache.output import debug, warning

T = TypeVar("T")


class BackgroundTasks:
    """A set of running :class:`asyncio.Task` objects."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Coroutine[Any, Any, T],
        name: str | None = None,
        report: bool = True,
    ) -> asyncio.Task[T]:
        """Schedule *coro* on the running loop and track it until it settles.

        Args:
            coro: The work to run.
            name: Task name used in failure messages.
            report: Warn when the task fails. Disable for tasks whose
                result is awaited, where the caller already sees the error.
        """
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._settled, report=report))
        return task

    async def run(self, coro: Coroutine[Any, Any, T], name: str | None = None) -> T:
        """Await *coro* as a tracked task that outlives a cancelled caller."""
        return await asyncio.shield(self.spawn(coro, name=name, report=False))

    async def drain(self) -> None:
        """Wait until every tracked task, including ones spawned meanwhile, settles."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _settled(self, task: asyncio.Task[Any], report: bool = True) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if report:
            warning(f"Background task {task.get_name()} failed: {exc}")
        else:
            debug(f"Task {task.get_name()} failed: {exc}")
