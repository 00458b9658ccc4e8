"""Caller-facing output parts.

cli-agent-provider shared/parsers v0.1.0

The translator turns wire events into an ordered stream of these parts. A
stream always ends with exactly one Finish or ErrorPart.

Ordering per tool id:
    ToolInputStart -> ToolInputDelta* -> ToolInputEnd -> ToolCall
    -> (ToolResult | ToolError)*
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .base import FinishReason

__all__ = [
    "Usage",
    "TextStart",
    "TextDelta",
    "TextEnd",
    "ToolInputStart",
    "ToolInputDelta",
    "ToolInputEnd",
    "ToolCall",
    "ToolResult",
    "ToolError",
    "ResponseMetadata",
    "Finish",
    "ErrorPart",
    "OutputPart",
]


class Usage(BaseModel):
    """Normalised token usage."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class _Part(BaseModel):
    model_config = ConfigDict(extra="forbid")


class TextStart(_Part):
    type: Literal["text-start"] = "text-start"
    id: str


class TextDelta(_Part):
    type: Literal["text-delta"] = "text-delta"
    id: str
    delta: str


class TextEnd(_Part):
    type: Literal["text-end"] = "text-end"
    id: str


class ToolInputStart(_Part):
    type: Literal["tool-input-start"] = "tool-input-start"
    id: str
    tool_name: str


class ToolInputDelta(_Part):
    type: Literal["tool-input-delta"] = "tool-input-delta"
    id: str
    delta: str


class ToolInputEnd(_Part):
    type: Literal["tool-input-end"] = "tool-input-end"
    id: str


class ToolCall(_Part):
    """The complete input of a tool invocation.

    Attributes:
        tool_call_id: Tool invocation id
        tool_name: Tool name ("unknown-tool" when the program omitted it)
        input: JSON serialization of the full input
    """

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    input: str


class ToolResult(_Part):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any = None
    is_error: bool = False


class ToolError(_Part):
    type: Literal["tool-error"] = "tool-error"
    tool_call_id: str
    tool_name: str
    error: Any = None


class ResponseMetadata(_Part):
    """Emitted once, when the program first reports its session."""

    type: Literal["response-metadata"] = "response-metadata"
    id: str
    model_id: str | None = None


class Finish(_Part):
    """End of a successful stream.

    Attributes:
        finish_reason: stop / length / error
        usage: Normalised token usage
        metadata: session_id, cost_usd, duration_ms, raw_usage, warnings
            (keys are omitted when unknown)
    """

    type: Literal["finish"] = "finish"
    finish_reason: FinishReason = FinishReason.STOP
    usage: Usage = Field(default_factory=Usage)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorPart(_Part):
    """End of a failed stream, carrying the exception that ended it."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    type: Literal["error"] = "error"
    error: BaseException


OutputPart = Union[
    TextStart,
    TextDelta,
    TextEnd,
    ToolInputStart,
    ToolInputDelta,
    ToolInputEnd,
    ToolCall,
    ToolResult,
    ToolError,
    ResponseMetadata,
    Finish,
    ErrorPart,
]
