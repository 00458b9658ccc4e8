"""Bounded process pool with a cancellation-aware FIFO wait queue.

cli-agent-provider runtime module v0.1.0

The pool does not own processes. It hands out Slots: one Slot is one unit of
subprocess concurrency, acquired before spawn and released exactly once when
the request completes, fails or is cancelled.

Key design points:
- An already-cancelled signal is rejected even when a slot is free
- Excess requests wait in FIFO order
- A waiter whose signal fires is removed from the queue and never granted
- release() hands capacity straight to the next live waiter

All state lives on one asyncio event loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field

from ..errors import AbortedWaitingError
from .cancel import CancelSignal

__all__ = [
    "MAX_POOL_SIZE",
    "ProcessPool",
    "Slot",
]

logger = logging.getLogger(__name__)

# Upper bound accepted for max_concurrency
MAX_POOL_SIZE = 100


class Slot:
    """One unit of process concurrency.

    Release with release() or by using the slot as a context manager.
    Releasing more than once is a no-op.
    """

    def __init__(self, pool: ProcessPool, slot_id: int) -> None:
        self._pool = pool
        self.slot_id = slot_id
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Return the slot to its pool."""
        if self._released:
            return
        self._released = True
        self._pool._on_release(self)

    def __enter__(self) -> Slot:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"Slot(id={self.slot_id}, released={self._released})"


@dataclass
class _Waiter:
    """A queued acquire() call."""

    future: asyncio.Future[Slot]
    cancel: CancelSignal | None = None
    detach: list = field(default_factory=list)


class ProcessPool:
    """Concurrency limiter for external program processes.

    Example:
        pool = ProcessPool(max_concurrency=4)
        slot = await pool.acquire(cancel)
        with slot:
            await run_process()

    Attributes:
        max_concurrency: Maximum number of slots granted at once
    """

    def __init__(self, max_concurrency: int = 4) -> None:
        """Create a pool.

        Args:
            max_concurrency: Positive integer, at most MAX_POOL_SIZE

        Raises:
            ValueError: If max_concurrency is not an int in 1..MAX_POOL_SIZE
        """
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int):
            raise ValueError(
                f"max_concurrency must be an integer, got {type(max_concurrency).__name__}"
            )
        if not 1 <= max_concurrency <= MAX_POOL_SIZE:
            raise ValueError(
                f"max_concurrency must be between 1 and {MAX_POOL_SIZE}, got {max_concurrency}"
            )

        self.max_concurrency = max_concurrency
        self._active = 0
        self._next_id = 0
        self._waiters: deque[_Waiter] = deque()

    @property
    def active(self) -> int:
        """Number of slots currently granted."""
        return self._active

    @property
    def waiting(self) -> int:
        """Number of live waiters in the queue."""
        return sum(1 for w in self._waiters if not w.future.done())

    async def acquire(self, cancel: CancelSignal | None = None) -> Slot:
        """Acquire a slot, waiting in FIFO order if the pool is full.

        Args:
            cancel: Optional cancel signal

        Returns:
            A granted Slot

        Raises:
            AbortedWaitingError: If the signal is already cancelled, or fires
                while the request is queued
        """
        # Cancellation wins over availability
        if cancel is not None and cancel.cancelled:
            raise AbortedWaitingError(cancel.reason)

        if self._active < self.max_concurrency and not self._has_live_waiters():
            return self._grant()

        loop = asyncio.get_running_loop()
        waiter = _Waiter(future=loop.create_future(), cancel=cancel)

        if cancel is not None:
            def on_cancel(reason: BaseException) -> None:
                self._drop_waiter(waiter)
                if not waiter.future.done():
                    waiter.future.set_exception(AbortedWaitingError(reason))

            waiter.detach.append(cancel.add_listener(on_cancel))

        self._waiters.append(waiter)
        logger.debug(
            f"Pool full ({self._active}/{self.max_concurrency}), "
            f"queued request (waiting={self.waiting})"
        )

        try:
            return await waiter.future
        except asyncio.CancelledError:
            # Task cancellation: give back a slot granted in the same tick
            self._drop_waiter(waiter)
            if waiter.future.done() and not waiter.future.cancelled():
                if waiter.future.exception() is None:
                    waiter.future.result().release()
            raise
        finally:
            for remove in waiter.detach:
                remove()

    def release(self, slot: Slot) -> None:
        """Release a slot. Equivalent to slot.release()."""
        slot.release()

    def _grant(self) -> Slot:
        self._active += 1
        self._next_id += 1
        slot = Slot(self, self._next_id)
        logger.debug(f"Granted {slot} ({self._active}/{self.max_concurrency})")
        return slot

    def _on_release(self, slot: Slot) -> None:
        if slot._pool is not self:
            raise ValueError(f"{slot} does not belong to this pool")
        self._active -= 1
        logger.debug(f"Released {slot} ({self._active}/{self.max_concurrency})")
        self._grant_next()

    def _grant_next(self) -> None:
        """Hand free capacity to queued waiters, skipping cancelled ones."""
        while self._waiters and self._active < self.max_concurrency:
            waiter = self._waiters.popleft()
            if waiter.future.done():
                continue
            if waiter.cancel is not None and waiter.cancel.cancelled:
                waiter.future.set_exception(AbortedWaitingError(waiter.cancel.reason))
                continue
            waiter.future.set_result(self._grant())

    def _has_live_waiters(self) -> bool:
        return any(not w.future.done() for w in self._waiters)

    def _drop_waiter(self, waiter: _Waiter) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def __repr__(self) -> str:
        return (
            f"ProcessPool(active={self._active}, "
            f"max_concurrency={self.max_concurrency}, waiting={self.waiting})"
        )
