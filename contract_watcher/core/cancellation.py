"""
Process-wide cancellation token.

Created once at process start and threaded through every suspension point
(permit wait, poll sleep, in-flight RPC). Firing it wakes all of them.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from contract_watcher.core.errors import ShutdownRequested

T = TypeVar("T")


class CancellationToken:
    """One-shot shutdown signal shared by every watcher"""

    def __init__(self):
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False

    @property
    def event(self) -> asyncio.Event:
        # Created lazily so the token can be built outside a running loop
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        return self._event

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        """Fire the token; idempotent"""
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self):
        if self._cancelled:
            raise ShutdownRequested()

    async def wait(self):
        await self.event.wait()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for `seconds` or until the token fires.

        Returns:
            True if the token fired during (or before) the sleep
        """
        if self._cancelled:
            return True
        if seconds <= 0:
            return False
        try:
            await asyncio.wait_for(self.event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def sleep_or_raise(self, seconds: float):
        """Sleep, raising ShutdownRequested if the token fires first"""
        if await self.sleep(seconds):
            raise ShutdownRequested()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable`, abandoning it if the token fires first.

        Raises:
            ShutdownRequested: If the token fired before the result arrived
        """
        self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.event.wait())
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
        try:
            await task
        except (asyncio.CancelledError, Exception):
            pass
        raise ShutdownRequested()
