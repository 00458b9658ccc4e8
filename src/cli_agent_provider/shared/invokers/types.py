"""Invoker type definitions.

cli-agent-provider shared/invokers v0.1.0

Call options, warnings and the aggregated result returned by generate().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ..parsers.base import FinishReason
from ..parsers.parts import ToolCall, ToolError, ToolResult, Usage

__all__ = [
    "CallWarning",
    "CallOptions",
    "GenerateResult",
    "SAMPLING_SETTINGS",
]

# CallOptions fields the external program has no way to honour
SAMPLING_SETTINGS: tuple[str, ...] = (
    "temperature",
    "max_tokens",
    "top_p",
    "top_k",
    "presence_penalty",
    "frequency_penalty",
    "stop_sequences",
    "seed",
)


@dataclass(frozen=True)
class CallWarning:
    """A non-fatal problem attached to a result.

    Attributes:
        type: "unsupported-setting" for ignored options, "other" otherwise
        message: Human readable description
        setting: Name of the ignored option (unsupported-setting only)
    """

    type: Literal["unsupported-setting", "other"]
    message: str
    setting: str | None = None

    @classmethod
    def other(cls, message: str) -> CallWarning:
        return cls(type="other", message=message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type, "message": self.message}
        if self.setting is not None:
            result["setting"] = self.setting
        return result


@dataclass
class CallOptions:
    """Per-call options.

    Attributes:
        structured: Buffer the text and return extracted JSON
        session_id: Resume this session (overrides the stored one)
        timeout_ms: Time budget for this call (None = provider default)
        temperature .. seed: Accepted for interface compatibility only;
            each one that is set produces an unsupported-setting warning
    """

    structured: bool = False
    session_id: str | None = None
    timeout_ms: int | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    stop_sequences: list[str] | None = None
    seed: int | None = None


@dataclass
class GenerateResult:
    """Aggregated result of one non-streaming call.

    Attributes:
        text: Concatenated text (extracted JSON in structured mode)
        usage: Normalised token usage
        finish_reason: stop / length / error
        metadata: Same dict as Finish.metadata
        warnings: Non-fatal problems seen during the call
        tool_calls: Completed tool invocations, in order
        tool_results: Tool results and errors, in order
        session_id: Session id for continuation (None if never reported)
    """

    text: str = ""
    usage: Usage = field(default_factory=Usage)
    finish_reason: FinishReason = FinishReason.STOP
    metadata: dict[str, Any] = field(default_factory=dict)
    warnings: list[CallWarning] = field(default_factory=list)
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult | ToolError] = field(default_factory=list)
    session_id: str | None = None
