"""Bounded fan-out for validation sub-tasks.

Tasks beyond the limiter's width wait on an asyncio semaphore and are
admitted in arrival order as running tasks finish. Nothing here is
cancellable once dispatched and no task carries its own timeout.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

Task = Callable[[], Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class TaskOutcome:
    """Settled result of one task: either a value or the exception it raised."""

    ok: bool
    value: Any = None
    error: BaseException | None = None


class ConcurrencyLimiter:
    """Run callables with at most ``max_concurrency`` in flight."""

    def __init__(self, max_concurrency: int = 8) -> None:
        if max_concurrency < 1:
            msg = "max_concurrency must be at least 1"
            raise ValueError(msg)
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._running = 0
        self._queued = 0

    async def run(self, task: Task) -> Any:  # noqa: ANN401
        """Run one task under the limit and return its result (exceptions propagate)."""
        self._queued += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._queued -= 1

        self._running += 1
        try:
            result = task()
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            self._running -= 1
            self._semaphore.release()

    async def _settle(self, task: Task) -> TaskOutcome:
        try:
            return TaskOutcome(ok=True, value=await self.run(task))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Limited task failed: %s", exc)
            return TaskOutcome(ok=False, error=exc)

    async def gather(self, tasks: Sequence[Task]) -> list[TaskOutcome]:
        """Run all tasks concurrently; outcomes are returned in input order."""
        return list(await asyncio.gather(*(self._settle(t) for t in tasks)))

    async def batch_execute(self, tasks: Sequence[Task], batch_size: int | None = None) -> list[TaskOutcome]:
        """Like gather(), but waits for each batch of ``batch_size`` before starting the next."""
        size = batch_size or self.max_concurrency
        outcomes: list[TaskOutcome] = []
        for start in range(0, len(tasks), size):
            outcomes.extend(await self.gather(tasks[start:start + size]))
        return outcomes

    def status(self) -> dict[str, int]:
        return {
            "running": self._running,
            "queued": self._queued,
            "max_concurrency": self.max_concurrency,
        }
