"""ProcessPool unit tests.

Test coverage:
- Constructor validation
- Immediate grants up to capacity
- FIFO queueing and hand-off on release
- Cancellation before and while queued
- Idempotent release
- Capacity 1 never runs two requests at once
"""

from __future__ import annotations

import asyncio

import pytest

from cli_agent_provider.errors import AbortedWaitingError, AbortError
from cli_agent_provider.runtime.cancel import CancelSignal
from cli_agent_provider.runtime.pool import MAX_POOL_SIZE, ProcessPool


# =============================================================================
# Construction
# =============================================================================


class TestConstruction:
    """Test pool construction."""

    def test_default_size(self):
        """Default capacity is 4."""
        assert ProcessPool().max_concurrency == 4

    @pytest.mark.parametrize("value", [0, -1, MAX_POOL_SIZE + 1])
    def test_out_of_range_rejected(self, value):
        """Capacity outside 1..MAX_POOL_SIZE is rejected."""
        with pytest.raises(ValueError, match="between 1 and"):
            ProcessPool(value)

    @pytest.mark.parametrize("value", [2.5, "4", True])
    def test_non_integer_rejected(self, value):
        """Capacity must be an int (bool is not accepted)."""
        with pytest.raises(ValueError, match="integer"):
            ProcessPool(value)

    def test_bounds_accepted(self):
        """1 and MAX_POOL_SIZE are valid."""
        assert ProcessPool(1).max_concurrency == 1
        assert ProcessPool(MAX_POOL_SIZE).max_concurrency == MAX_POOL_SIZE


# =============================================================================
# Acquire / Release
# =============================================================================


class TestAcquireRelease:
    """Test granting and releasing slots."""

    @pytest.mark.asyncio
    async def test_grants_up_to_capacity(self):
        """Slots are granted immediately while capacity remains."""
        pool = ProcessPool(2)
        a = await pool.acquire()
        b = await pool.acquire()
        assert pool.active == 2
        assert pool.waiting == 0
        a.release()
        b.release()
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_third_request_waits(self):
        """A request beyond capacity waits until a slot is released."""
        pool = ProcessPool(2)
        a = await pool.acquire()
        await pool.acquire()

        task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        assert not task.done()
        assert pool.waiting == 1

        a.release()
        slot = await asyncio.wait_for(task, timeout=1)
        assert pool.active == 2
        assert not slot.released

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        """Waiters are granted in arrival order."""
        pool = ProcessPool(1)
        first = await pool.acquire()
        order: list[int] = []

        async def waiter(n: int) -> None:
            slot = await pool.acquire()
            order.append(n)
            slot.release()

        tasks = [asyncio.create_task(waiter(n)) for n in range(5)]
        await asyncio.sleep(0)
        first.release()
        await asyncio.gather(*tasks)
        assert order == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_double_release_is_noop(self):
        """Releasing a slot twice does not free extra capacity."""
        pool = ProcessPool(1)
        slot = await pool.acquire()
        slot.release()
        slot.release()
        pool.release(slot)
        assert pool.active == 0

        again = await pool.acquire()
        task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        assert not task.done()
        again.release()
        (await task).release()

    @pytest.mark.asyncio
    async def test_slot_context_manager(self):
        """A slot used as a context manager is released on exit."""
        pool = ProcessPool(1)
        with await pool.acquire() as slot:
            assert pool.active == 1
        assert slot.released
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        """The context manager releases even when the body raises."""
        pool = ProcessPool(1)
        with pytest.raises(RuntimeError):
            with await pool.acquire():
                raise RuntimeError("boom")
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_capacity_one_serialises(self):
        """With capacity 1 the in-flight count never exceeds 1."""
        pool = ProcessPool(1)
        in_flight = 0
        peak = 0

        async def work() -> None:
            nonlocal in_flight, peak
            with await pool.acquire():
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1

        await asyncio.gather(*(work() for _ in range(10)))
        assert peak == 1
        assert pool.active == 0


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    """Test cancellation of queued and new requests."""

    @pytest.mark.asyncio
    async def test_already_cancelled_rejected_even_when_free(self):
        """A cancelled signal wins over available capacity."""
        pool = ProcessPool(2)
        cancel = CancelSignal()
        cancel.cancel()

        with pytest.raises(AbortedWaitingError) as exc_info:
            await pool.acquire(cancel)
        assert isinstance(exc_info.value.reason, AbortError)
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_cancel_while_queued(self):
        """Cancelling a queued request rejects it and removes it from the queue."""
        pool = ProcessPool(1)
        held = await pool.acquire()
        cancel = CancelSignal()
        reason = RuntimeError("user abort")

        task = asyncio.create_task(pool.acquire(cancel))
        await asyncio.sleep(0)
        assert pool.waiting == 1

        cancel.cancel(reason)
        with pytest.raises(AbortedWaitingError) as exc_info:
            await task
        assert exc_info.value.reason is reason
        assert pool.waiting == 0
        assert cancel.listener_count == 0

        held.release()
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_never_granted(self):
        """Release skips a cancelled waiter and grants the next one."""
        pool = ProcessPool(1)
        held = await pool.acquire()
        cancel = CancelSignal()

        cancelled_task = asyncio.create_task(pool.acquire(cancel))
        live_task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)

        cancel.cancel()
        held.release()

        with pytest.raises(AbortedWaitingError):
            await cancelled_task
        slot = await asyncio.wait_for(live_task, timeout=1)
        assert pool.active == 1
        slot.release()

    @pytest.mark.asyncio
    async def test_task_cancel_while_queued(self):
        """Cancelling the awaiting task removes the waiter."""
        pool = ProcessPool(1)
        held = await pool.acquire()

        task = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pool.waiting == 0
        held.release()
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_listener_removed_after_grant(self):
        """A granted waiter detaches from its cancel signal."""
        pool = ProcessPool(1)
        held = await pool.acquire()
        cancel = CancelSignal()

        task = asyncio.create_task(pool.acquire(cancel))
        await asyncio.sleep(0)
        assert cancel.listener_count == 1

        held.release()
        slot = await task
        assert cancel.listener_count == 0

        # Cancelling afterwards does not affect the granted slot
        cancel.cancel()
        assert pool.active == 1
        slot.release()
