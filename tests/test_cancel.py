"""CancelSignal unit tests.

Test coverage:
- cancel() reason handling and idempotency
- Listener registration, removal and late registration
- Timer based cancellation
- derive(): parent linkage and timeout reason
"""

from __future__ import annotations

import asyncio

import pytest

from cli_agent_provider.errors import AbortError, CLITimeoutError
from cli_agent_provider.runtime.cancel import CancelSignal


class TestCancel:
    """Test cancel() and reason."""

    def test_initial_state(self):
        signal = CancelSignal()
        assert not signal.cancelled
        assert signal.reason is None

    def test_default_reason(self):
        """Cancelling without a reason uses AbortError."""
        signal = CancelSignal()
        assert signal.cancel() is True
        assert signal.cancelled
        assert isinstance(signal.reason, AbortError)

    def test_custom_reason_kept(self):
        """The caller's reason object is kept as-is."""
        reason = ValueError("stop")
        signal = CancelSignal()
        signal.cancel(reason)
        assert signal.reason is reason

    def test_second_cancel_ignored(self):
        """Only the first cancel counts."""
        first = ValueError("first")
        signal = CancelSignal()
        signal.cancel(first)
        assert signal.cancel(ValueError("second")) is False
        assert signal.reason is first

    def test_raise_if_cancelled(self):
        signal = CancelSignal()
        signal.raise_if_cancelled()
        reason = ValueError("x")
        signal.cancel(reason)
        with pytest.raises(ValueError) as exc_info:
            signal.raise_if_cancelled()
        assert exc_info.value is reason


class TestListeners:
    """Test listener handling."""

    def test_listeners_run_once_with_reason(self):
        signal = CancelSignal()
        seen: list[BaseException] = []
        signal.add_listener(seen.append)
        reason = ValueError("x")
        signal.cancel(reason)
        signal.cancel()
        assert seen == [reason]
        assert signal.listener_count == 0

    def test_remove_listener(self):
        signal = CancelSignal()
        seen: list[BaseException] = []
        remove = signal.add_listener(seen.append)
        remove()
        remove()
        signal.cancel()
        assert seen == []

    def test_late_listener_runs_immediately(self):
        signal = CancelSignal()
        signal.cancel()
        seen: list[BaseException] = []
        signal.add_listener(seen.append)
        assert len(seen) == 1

    def test_failing_listener_does_not_stop_others(self):
        signal = CancelSignal()
        seen: list[BaseException] = []

        def broken(_reason: BaseException) -> None:
            raise RuntimeError("listener bug")

        signal.add_listener(broken)
        signal.add_listener(seen.append)
        signal.cancel()
        assert len(seen) == 1


class TestTimers:
    """Test timer based cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_after(self):
        signal = CancelSignal()
        reason = ValueError("late")
        signal.cancel_after(0.01, reason)
        assert await asyncio.wait_for(signal.wait(), timeout=1) is reason

    @pytest.mark.asyncio
    async def test_close_disarms_timer(self):
        signal = CancelSignal()
        signal.cancel_after(0.01)
        signal.close()
        await asyncio.sleep(0.05)
        assert not signal.cancelled

    @pytest.mark.asyncio
    async def test_wait_returns_existing_reason(self):
        signal = CancelSignal()
        signal.cancel()
        assert isinstance(await signal.wait(), AbortError)


class TestDerive:
    """Test derived signals."""

    @pytest.mark.asyncio
    async def test_parent_reason_propagates(self):
        """The child is cancelled with the parent's original reason."""
        parent = CancelSignal()
        child = CancelSignal.derive(parent, timeout_ms=10_000)
        reason = ValueError("user")
        parent.cancel(reason)
        assert child.reason is reason
        child.close()

    @pytest.mark.asyncio
    async def test_timeout_reason(self):
        """The timer cancels the child with CLITimeoutError."""
        child = CancelSignal.derive(None, timeout_ms=20, prompt_excerpt="hello")
        reason = await asyncio.wait_for(child.wait(), timeout=1)
        assert isinstance(reason, CLITimeoutError)
        assert reason.timeout_ms == 20
        assert reason.prompt_excerpt == "hello"

    @pytest.mark.asyncio
    async def test_already_cancelled_parent(self):
        parent = CancelSignal()
        parent.cancel()
        child = CancelSignal.derive(parent, timeout_ms=1000)
        assert child.cancelled
        assert child.reason is parent.reason

    @pytest.mark.asyncio
    async def test_close_detaches_from_parent(self):
        parent = CancelSignal()
        child = CancelSignal.derive(parent, timeout_ms=1000)
        assert parent.listener_count == 1
        child.close()
        assert parent.listener_count == 0
        parent.cancel()
        assert not child.cancelled

    def test_no_timeout_no_parent(self):
        child = CancelSignal.derive()
        assert not child.cancelled

    def test_timeout_message(self):
        error = CLITimeoutError(120_000)
        assert str(error) == "CLI timed out after 120 seconds"
        assert isinstance(error, AbortError)
