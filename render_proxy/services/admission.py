"""FIFO-fair admission control for the shared browser session.

asyncio.Semaphore does not guarantee that a coroutine which started waiting
first is woken first (a fresh acquire() can slip in between a release and the
wakeup). This gate hands a freed slot directly to the longest waiter, so the
active count never drops while someone is queued and nobody barges in.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager

from render_proxy.core.exceptions import AdmissionTimeoutError, GateClosedError

logger = logging.getLogger(__name__)


class AdmissionGate:
    """Counting semaphore with strict arrival-order grants.

    All state changes happen between await points, so interleaved coroutines
    never observe a half-updated counter.
    """

    def __init__(self, max_concurrency: int):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._max = max_concurrency
        self._active = 0
        self._waiters: deque[asyncio.Future] = deque()
        self._drain_waiters: list[asyncio.Future] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def max_concurrency(self) -> int:
        return self._max

    @property
    def active(self) -> int:
        """Number of admitted, not yet released requests."""
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for f in self._waiters if not f.done())

    @property
    def available(self) -> int:
        return self._max - self._active

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict:
        return {
            "max_concurrency": self._max,
            "active": self._active,
            "waiting": self.waiting,
            "available": self.available,
            "closed": self._closed,
        }

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    async def acquire(self) -> None:
        """Wait for a slot. Granted strictly in call order."""
        if self._closed:
            raise GateClosedError("Admission gate is closed (shutting down)")

        if self._active < self._max and not self._waiters:
            self._active += 1
            return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # The slot was handed over before the cancellation landed
                self.release()
            else:
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        """Free a slot, handing it to the longest waiter if there is one."""
        if self._active <= 0:
            raise RuntimeError("release() called without a matching acquire()")

        while self._waiters:
            fut = self._waiters.popleft()
            if not fut.done():
                fut.set_result(True)
                return

        self._active -= 1
        if self._active == 0:
            self._notify_drained()

    @asynccontextmanager
    async def slot(self, timeout: float | None = None):
        """Scoped acquisition: the slot is released on every exit path.

        Args:
            timeout: Max seconds to wait for admission. None or 0 waits forever.
        """
        if timeout:
            try:
                await asyncio.wait_for(self.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                raise AdmissionTimeoutError(
                    f"No admission slot available after {timeout:g}s"
                )
        else:
            await self.acquire()
        try:
            yield
        finally:
            self.release()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Refuse new acquisitions. Already-queued waiters are still served."""
        if not self._closed:
            self._closed = True
            logger.info(
                "Admission gate closed (active=%d, waiting=%d)",
                self._active,
                self.waiting,
            )

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait until nothing is admitted or queued.

        Returns False if the timeout expired first.
        """
        if self._active == 0 and not self._waiters:
            return True
        fut = asyncio.get_running_loop().create_future()
        self._drain_waiters.append(fut)
        try:
            await asyncio.wait_for(asyncio.shield(fut), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False
        finally:
            if fut in self._drain_waiters:
                self._drain_waiters.remove(fut)

    def _notify_drained(self) -> None:
        if self._waiters:
            return
        for fut in self._drain_waiters:
            if not fut.done():
                fut.set_result(None)
        self._drain_waiters.clear()
