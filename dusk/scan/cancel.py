from __future__ import annotations

import asyncio


class CancelToken:
    """Cooperative cancellation signal shared by one scan's walker and estimator calls.

    Setting the token never interrupts running code by itself; work checks
    ``cancelled`` at each suspension point, and long-running subprocesses
    race against ``wait()`` so they can be terminated.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
