"""Wire event models for the stream-json protocol.

cli-agent-provider shared/parsers v0.1.0

One stdout line of the external program is one JSON object with a `type`
discriminator:
- system: session initialisation (session_id, model, tools, ...)
- assistant: message.content[] may hold text / tool_use
- user: message.content[] may hold tool_result / tool_error
- result: end of the run, usage and cost statistics
- error: explicit failure reported by the program

Design principles:
1. Tolerant - unknown fields are ignored (extra="ignore")
2. Closed union - parse_event() always returns one of the Event models
3. Never throws - shape problems become a MalformedEvent
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)

from .base import ContentPartType, EventType

__all__ = [
    # Content parts
    "TextContent",
    "ToolUseContent",
    "ToolResultContent",
    "ToolErrorContent",
    "ContentPart",
    # Events
    "RawUsage",
    "SystemEvent",
    "AssistantEvent",
    "UserEvent",
    "ResultEvent",
    "ErrorEvent",
    "MalformedEvent",
    "Event",
    # Parsing
    "parse_event",
    "parse_content",
]

logger = logging.getLogger(__name__)


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _null_as(default: Any) -> BeforeValidator:
    """Read an explicit null as the field default."""
    return BeforeValidator(lambda value: default if value is None else value)


NullableInt = Annotated[int, _null_as(0)]
NullableBool = Annotated[bool, _null_as(False)]
NullableStr = Annotated[str, _null_as("")]


# =============================================================================
# Content parts
# =============================================================================


class TextContent(_WireModel):
    type: Literal["text"] = "text"
    text: str = ""


class ToolUseContent(_WireModel):
    """A tool invocation requested by the model.

    The same id may be seen several times while its input is still growing.
    """

    type: Literal["tool_use"] = "tool_use"
    id: str = ""
    name: str | None = None
    input: Any = Field(default_factory=dict)


class ToolResultContent(_WireModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = Field(default="", validation_alias=AliasChoices("tool_use_id", "id"))
    name: str | None = None
    content: Any = None
    is_error: NullableBool = False


class ToolErrorContent(_WireModel):
    type: Literal["tool_error"] = "tool_error"
    tool_use_id: str = Field(default="", validation_alias=AliasChoices("tool_use_id", "id"))
    name: str | None = None
    error: Any = None


ContentPart = Annotated[
    Union[TextContent, ToolUseContent, ToolResultContent, ToolErrorContent],
    Field(discriminator="type"),
]

_content_adapter: TypeAdapter[Any] = TypeAdapter(ContentPart)
_KNOWN_CONTENT_TYPES = frozenset(t.value for t in ContentPartType)


# =============================================================================
# Events
# =============================================================================


class RawUsage(_WireModel):
    """Token usage exactly as reported by the program."""

    input_tokens: NullableInt = 0
    output_tokens: NullableInt = 0
    cache_creation_input_tokens: NullableInt = 0
    cache_read_input_tokens: NullableInt = 0


class SystemEvent(_WireModel):
    type: Literal["system"] = "system"
    subtype: str = ""
    session_id: str | None = None
    model: str | None = None


class AssistantEvent(_WireModel):
    type: Literal["assistant"] = "assistant"
    content: list[ContentPart] = Field(default_factory=list)
    session_id: str | None = None


class UserEvent(_WireModel):
    type: Literal["user"] = "user"
    content: list[ContentPart] = Field(default_factory=list)
    session_id: str | None = None


class ResultEvent(_WireModel):
    """End of run.

    Attributes:
        subtype: success / error_max_turns / error_during_execution / ...
        usage: Raw token usage (None when the program omitted it)
        total_cost_usd: Cost of the run
        duration_ms: Wall time reported by the program
        session_id: Session id for continuation
        result: Final text as reported by the program
    """

    type: Literal["result"] = "result"
    subtype: NullableStr = ""
    usage: RawUsage | None = None
    total_cost_usd: float | None = Field(
        default=None, validation_alias=AliasChoices("total_cost_usd", "cost_usd")
    )
    duration_ms: int | None = None
    session_id: str | None = None
    is_error: NullableBool = False
    result: str | None = None


class ErrorEvent(_WireModel):
    type: Literal["error"] = "error"
    message: str = "Unknown error"
    code: str | None = None


class MalformedEvent(_WireModel):
    """A line with a known type whose shape could not be understood.

    Never produced by the program; parse_event() wraps bad input in it so
    consumers can skip it and record a warning.
    """

    type: Literal["malformed"] = "malformed"
    reason: str = ""
    raw: Any = None


Event = Union[SystemEvent, AssistantEvent, UserEvent, ResultEvent, ErrorEvent, MalformedEvent]


# =============================================================================
# Parsing
# =============================================================================


def parse_content(items: list[Any]) -> list[Any]:
    """Parse message.content entries, dropping unknown or invalid parts."""
    parts: list[Any] = []
    for item in items:
        if not isinstance(item, dict):
            logger.debug(f"Dropping non-object content part: {item!r:.100}")
            continue
        part_type = item.get("type")
        if part_type not in _KNOWN_CONTENT_TYPES:
            # thinking, image, ... are not translated
            logger.debug(f"Ignoring content part type: {part_type}")
            continue
        try:
            parts.append(_content_adapter.validate_python(item))
        except ValidationError as e:
            logger.warning(f"Dropping invalid {part_type} content part: {e.error_count()} error(s)")
    return parts


def _parse_message_event(data: dict[str, Any], model: type[BaseModel]) -> Event:
    message = data.get("message")
    if not isinstance(message, dict):
        return MalformedEvent(reason=f"{data.get('type')} event without message object", raw=data)
    content = message.get("content")
    if isinstance(content, str):
        # Plain string content is shorthand for one text part
        content = [{"type": "text", "text": content}]
    if not isinstance(content, list):
        return MalformedEvent(reason=f"{data.get('type')} message without content list", raw=data)
    return model(content=parse_content(content), session_id=data.get("session_id"))  # type: ignore[call-arg]


def _parse_error_event(data: dict[str, Any]) -> ErrorEvent:
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message") or data.get("message") or "Unknown error"
        code = error.get("code")
    elif isinstance(error, str):
        message, code = error, data.get("code")
    else:
        message, code = data.get("message") or "Unknown error", data.get("code")
    return ErrorEvent(
        message=str(message),
        code=str(code) if code is not None else None,
    )


def parse_event(data: Any) -> Event | None:
    """Parse one decoded JSON line into an Event.

    Args:
        data: Result of json.loads() on one output line

    Returns:
        The typed event, a MalformedEvent for bad shapes, or None for
        event types that are not part of the protocol (ignored)
    """
    if not isinstance(data, dict):
        return MalformedEvent(reason=f"expected JSON object, got {type(data).__name__}", raw=data)

    event_type = data.get("type", "")
    try:
        if event_type == EventType.ASSISTANT.value:
            return _parse_message_event(data, AssistantEvent)
        elif event_type == EventType.USER.value:
            return _parse_message_event(data, UserEvent)
        elif event_type == EventType.SYSTEM.value:
            return SystemEvent.model_validate(data)
        elif event_type == EventType.RESULT.value:
            return ResultEvent.model_validate(data)
        elif event_type == EventType.ERROR.value:
            return _parse_error_event(data)
    except ValidationError as e:
        return MalformedEvent(reason=f"invalid {event_type} event: {e.error_count()} error(s)", raw=data)

    logger.debug(f"Ignoring unknown event type: {event_type!r}")
    return None
