"""Fixed-size asyncio worker pool over a bounded queue.

A producer feeds items into an ``asyncio.Queue`` bounded to the worker
count, pausing ``start_delay`` seconds between items; ``workers`` consumers
run the handler. Every item settles exactly once, as a result or as an
error, and one item's failure never cancels the others.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

_STOP: Any = object()


@dataclass
class TaskOutcome(Generic[T, R]):
    item: T
    result: R | None = None
    error: BaseException | None = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkerPool:
    """Run a handler over items with a fixed number of concurrent workers.

    Args:
        workers: Number of concurrent consumers (>= 1).
        start_delay: Pause between consecutive item starts, in seconds.
        task_timeout: Per-item timeout in seconds; ``None`` disables it.
    """

    def __init__(
        self,
        workers: int,
        start_delay: float = 0.0,
        task_timeout: float | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers
        self.start_delay = start_delay
        self.task_timeout = task_timeout

    async def _call(self, handler: Callable[[T], Awaitable[R]], item: T) -> R:
        if self.task_timeout is None:
            return await handler(item)
        return await asyncio.wait_for(handler(item), timeout=self.task_timeout)

    async def run(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[R]],
        on_settled: Callable[[TaskOutcome[T, R]], None] | None = None,
    ) -> list[TaskOutcome[T, R]]:
        """Process *items*; returns outcomes in input order once all have settled."""
        if not items:
            return []

        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.workers)
        outcomes: list[TaskOutcome[T, R] | None] = [None] * len(items)

        async def produce() -> None:
            for index, item in enumerate(items):
                if index and self.start_delay > 0:
                    await asyncio.sleep(self.start_delay)
                await queue.put((index, item))
            for _ in range(self.workers):
                await queue.put(_STOP)

        async def work() -> None:
            while True:
                entry = await queue.get()
                if entry is _STOP:
                    return
                index, item = entry
                started = time.monotonic()
                try:
                    result = await self._call(handler, item)
                except asyncio.TimeoutError as exc:
                    logger.warning("Task timed out after %ss: %s", self.task_timeout, item)
                    outcome = TaskOutcome(item, error=exc, elapsed=time.monotonic() - started)
                except Exception as exc:
                    outcome = TaskOutcome(item, error=exc, elapsed=time.monotonic() - started)
                else:
                    outcome = TaskOutcome(item, result=result, elapsed=time.monotonic() - started)
                outcomes[index] = outcome
                if on_settled is not None:
                    on_settled(outcome)

        await asyncio.gather(produce(), *(work() for _ in range(self.workers)))
        return [o for o in outcomes if o is not None]
