"""Cooperative cancellation token threaded through every blocking call."""

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised by CancellationToken.run when the token fires before the call finishes."""


class CancellationToken:
    """One token per run of the discussion loop. Pausing fires it; resuming issues a new one."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the underlying task is cancelled and awaited, then
        OperationCancelled is raised.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        raise OperationCancelled()

    async def sleep(self, delay_sec: float) -> None:
        """Sleep for delay_sec, waking early if the token fires."""
        if delay_sec <= 0 or self.cancelled:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=delay_sec)
