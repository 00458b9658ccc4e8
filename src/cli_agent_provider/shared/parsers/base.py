"""Base enums for wire events and output parts.

cli-agent-provider shared/parsers v0.1.0
"""

from __future__ import annotations

from enum import Enum
from typing import Final

__all__ = [
    "EventType",
    "ContentPartType",
    "FinishReason",
    "ToolState",
    "VERSION",
]

VERSION: Final[str] = "0.1.0"


class EventType(str, Enum):
    """Top-level `type` discriminator of one stream-json line."""

    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    RESULT = "result"
    ERROR = "error"


class ContentPartType(str, Enum):
    """`type` of one entry in message.content."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"


class FinishReason(str, Enum):
    """Why generation stopped."""

    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"


class ToolState(str, Enum):
    """Lifecycle of one tool invocation.

    PENDING -> INPUT_STREAMING -> INPUT_CLOSED -> CALLED
    Results and errors are only forwarded once CALLED.
    """

    PENDING = "pending"
    INPUT_STREAMING = "input_streaming"
    INPUT_CLOSED = "input_closed"
    CALLED = "called"
