"""Concurrency Limiter - admission gate for async operations.

Caps how many operations of one class run at once. Excess submissions
wait in a FIFO queue; a finishing operation hands its slot directly to
the oldest waiter, so late arrivals cannot overtake queued ones.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Slot:
    """One reservation: admitted when ``ticket`` resolves."""

    __slots__ = ("ticket", "settled")

    def __init__(self, ticket: asyncio.Future):
        self.ticket = ticket
        self.settled = False


class ConcurrencyLimiter:
    """Runs at most ``max_concurrent`` operations at a time.

    All state is touched only from the event loop thread, so any number
    of coroutines may call ``submit`` concurrently without a lock.

    Example:
        >>> limiter = ConcurrencyLimiter(3, name="chapters")
        >>> future = limiter.submit(lambda: process_chapter(chapter))
        >>> analysis = await future
    """

    def __init__(self, max_concurrent: int, name: str = "limiter"):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be positive, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.name = name
        self.active = 0
        self.peak_active = 0
        self.admitted_total = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def pending(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def _admit(self) -> None:
        self.active += 1
        self.admitted_total += 1
        self.peak_active = max(self.peak_active, self.active)

    def _reserve(self) -> _Slot:
        """Resolved now if a slot is free, else queued behind earlier waiters."""
        ticket = asyncio.get_running_loop().create_future()
        if self.active < self.max_concurrent and not self._waiters:
            self._admit()
            ticket.set_result(None)
        else:
            self._waiters.append(ticket)
            logger.debug(f"{self.name}: queued ({len(self._waiters)} waiting)")
        return _Slot(ticket)

    def _hand_off(self) -> None:
        self.active -= 1
        while self._waiters and self.active < self.max_concurrent:
            ticket = self._waiters.popleft()
            if ticket.done():
                continue  # cancelled while waiting
            self._admit()
            ticket.set_result(None)

    def _settle(self, slot: _Slot) -> None:
        """Give back whatever the slot holds. Idempotent."""
        if slot.settled:
            return
        slot.settled = True
        ticket = slot.ticket
        if ticket.done() and not ticket.cancelled():
            self._hand_off()
            return
        ticket.cancel()
        try:
            self._waiters.remove(ticket)
        except ValueError:
            pass

    async def _run(self, slot: _Slot, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            await slot.ticket
            return await operation()
        finally:
            self._settle(slot)

    def submit(self, operation: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """Schedule an operation under the limit.

        Admission order is the order of ``submit`` calls.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            Future resolving to the operation's result (or its exception)
        """
        slot = self._reserve()
        future = asyncio.ensure_future(self._run(slot, operation))
        # Covers a cancel that lands before _run gets to execute at all
        future.add_done_callback(lambda _: self._settle(slot))
        return future

    @asynccontextmanager
    async def slot(self):
        """Hold one slot for the duration of the block."""
        slot = self._reserve()
        try:
            await slot.ticket
            yield
        finally:
            self._settle(slot)


__all__ = ["ConcurrencyLimiter"]
