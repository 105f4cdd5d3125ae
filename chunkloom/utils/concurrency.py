"""Bounded concurrency for independent async units of work."""

import asyncio
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Runs at most ``limit`` coroutines at once; the rest wait in FIFO order.

    The queue is local to one event loop. It is not a distributed semaphore.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self._limit = limit
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._waiters)

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` under the limit and return its result."""
        if self._active >= self._limit:
            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                # A slot handed to a cancelled waiter goes to the next in line
                if waiter.done() and not waiter.cancelled():
                    self._release()
                elif waiter in self._waiters:
                    self._waiters.remove(waiter)
                raise
        else:
            self._active += 1

        try:
            return await fn(*args, **kwargs)
        finally:
            self._release()

    def _release(self) -> None:
        self._active -= 1
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                self._active += 1
                waiter.set_result(None)
                return


def p_limit(limit: int) -> Callable[..., Awaitable[Any]]:
    """Return a function that runs coroutine functions under a shared limit."""
    return ConcurrencyLimiter(limit).run
