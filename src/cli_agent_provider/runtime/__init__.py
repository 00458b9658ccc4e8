"""Runtime module for subprocess management and concurrency control.

This module provides isolated process execution with reliable termination,
a bounded process pool and the cancellation signal threaded through both.
"""

from __future__ import annotations

from .cancel import CancelSignal
from .pool import MAX_POOL_SIZE, ProcessPool, Slot
from .transport import ProcessSpec, StderrBuffer, Transport, make_excerpt

__all__ = [
    "CancelSignal",
    "MAX_POOL_SIZE",
    "ProcessPool",
    "ProcessSpec",
    "Slot",
    "StderrBuffer",
    "Transport",
    "make_excerpt",
]
