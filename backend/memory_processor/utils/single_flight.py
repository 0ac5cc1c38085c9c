from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Run at most one coroutine per key; concurrent callers share its result.

    The shared task is shielded, so a waiter being cancelled never aborts the
    in-flight call for everyone else.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}
        self._lock = asyncio.Lock()

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> tuple[T, bool]:
        """Return ``(result, joined)`` where ``joined`` means another caller started it."""

        async with self._lock:
            task = self._tasks.get(key)
            joined = task is not None and not task.done()
            if not joined:
                task = asyncio.ensure_future(factory())
                self._tasks[key] = task
                task.add_done_callback(lambda done, key=key: self._discard(key, done))
        return await asyncio.shield(task), joined

    def in_flight(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def _discard(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            self._tasks.pop(key, None)
