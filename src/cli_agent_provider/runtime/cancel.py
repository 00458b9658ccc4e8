"""Cooperative cancellation signal.

cli-agent-provider runtime module v0.1.0

A CancelSignal is threaded through every suspension point of a request
(pool acquire, process spawn, stdout read loop). Cancelling it runs the
registered listeners exactly once, synchronously, with the cancel reason.

Timeouts are not a separate mechanism: a derived signal is linked to its
parent and armed with a timer that cancels it with CLITimeoutError.

Example:
    cancel = CancelSignal()
    signal = CancelSignal.derive(cancel, timeout_ms=120_000)
    try:
        result = await model.generate("hi", cancel=signal)
    finally:
        signal.close()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..errors import AbortError, CLITimeoutError

__all__ = [
    "CancelListener",
    "CancelSignal",
]

logger = logging.getLogger(__name__)

# Listener receives the cancel reason
CancelListener = Callable[[BaseException], None]


class CancelSignal:
    """Cancellation token carrying a reason.

    Thread safety: not thread safe. All calls must happen on the event loop
    that owns the request.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: BaseException | None = None
        self._listeners: list[CancelListener] = []
        self._timer: asyncio.TimerHandle | None = None
        self._detach: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    @property
    def reason(self) -> BaseException | None:
        """The cancel reason, None while not cancelled."""
        return self._reason

    def cancel(self, reason: BaseException | None = None) -> bool:
        """Cancel the signal.

        Args:
            reason: Exception describing why; defaults to AbortError()

        Returns:
            True on the first call, False if already cancelled
        """
        if self._cancelled:
            return False

        self._cancelled = True
        self._reason = reason if reason is not None else AbortError()
        self._clear_timer()

        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(self._reason)
            except Exception as e:
                logger.warning(f"Cancel listener raised: {type(e).__name__}: {e}")
        return True

    def add_listener(self, listener: CancelListener) -> Callable[[], None]:
        """Register a listener and return a function that removes it.

        A listener added after cancellation runs immediately.
        """
        if self._cancelled:
            assert self._reason is not None
            listener(self._reason)
            return lambda: None

        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return remove

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def cancel_after(self, delay: float, reason: BaseException | None = None) -> None:
        """Arm a timer that cancels the signal after delay seconds.

        Must be called with a running event loop.
        """
        if self._cancelled:
            return
        self._clear_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self.cancel, reason)

    def raise_if_cancelled(self) -> None:
        """Raise the cancel reason if the signal has been cancelled."""
        if self._cancelled and self._reason is not None:
            raise self._reason

    async def wait(self) -> BaseException:
        """Suspend until the signal is cancelled and return the reason."""
        if self._cancelled:
            assert self._reason is not None
            return self._reason

        future: asyncio.Future[BaseException] = asyncio.get_running_loop().create_future()

        def on_cancel(reason: BaseException) -> None:
            if not future.done():
                future.set_result(reason)

        remove = self.add_listener(on_cancel)
        try:
            return await future
        finally:
            remove()

    def close(self) -> None:
        """Disarm the timer and detach from the parent signal.

        Does not cancel the signal.
        """
        self._clear_timer()
        detach, self._detach = self._detach, []
        for remove in detach:
            remove()

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @classmethod
    def derive(
        cls,
        parent: CancelSignal | None = None,
        *,
        timeout_ms: int | None = None,
        prompt_excerpt: str = "",
    ) -> CancelSignal:
        """Create a child signal linked to parent and an optional timeout.

        The child is cancelled with the parent's original reason when the
        parent fires, or with CLITimeoutError when the timer fires first.
        Call close() on the child when the request finishes.

        Args:
            parent: Caller supplied signal (optional)
            timeout_ms: Time budget in milliseconds (None or 0 disables)
            prompt_excerpt: Carried by the timeout error for diagnostics

        Returns:
            The derived signal
        """
        child = cls()
        if parent is not None:
            child._detach.append(parent.add_listener(child.cancel))
        if timeout_ms and not child.cancelled:
            child.cancel_after(
                timeout_ms / 1000,
                CLITimeoutError(timeout_ms, prompt_excerpt=prompt_excerpt),
            )
        return child

    def __repr__(self) -> str:
        state = f"cancelled reason={self._reason!r}" if self._cancelled else "active"
        return f"CancelSignal({state}, listeners={len(self._listeners)})"
