# FIFO slot limiter for filesystem operations.
#
# A freed slot is handed directly to the oldest waiter rather than returned to
# the pool, so new arrivals never overtake queued callers.  The limiter is
# shared by every scan a coordinator runs and is never reset; ``slot()``
# releases on every exit path, including task cancellation.

from __future__ import annotations

import asyncio
import collections
import contextlib
from collections.abc import AsyncIterator

DEFAULT_CONCURRENCY = 64


class ConcurrencyLimiter:
    __slots__ = ("_capacity", "_active", "_waiters")

    def __init__(self, capacity: int = DEFAULT_CONCURRENCY) -> None:
        self._capacity = max(1, capacity)
        self._active = 0
        self._waiters: collections.deque[asyncio.Future[None]] = collections.deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    async def acquire(self) -> None:
        if self._active < self._capacity:
            self._active += 1
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.cancelled():
                with contextlib.suppress(ValueError):
                    self._waiters.remove(fut)
            else:
                # The slot was granted just before we were cancelled; pass it on.
                self.release()
            raise

    def release(self) -> None:
        # A granted slot stays counted in _active; only the owner changes.
        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(None)
                return
        self._active -= 1

    @contextlib.asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()
