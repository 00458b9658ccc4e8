"""Wire event models and caller-facing output parts.

cli-agent-provider shared/parsers v0.1.0
"""

from .base import (
    VERSION,
    ContentPartType,
    EventType,
    FinishReason,
    ToolState,
)
from .events import (
    AssistantEvent,
    ContentPart,
    ErrorEvent,
    Event,
    MalformedEvent,
    RawUsage,
    ResultEvent,
    SystemEvent,
    TextContent,
    ToolErrorContent,
    ToolResultContent,
    ToolUseContent,
    UserEvent,
    parse_content,
    parse_event,
)
from .parts import (
    ErrorPart,
    Finish,
    OutputPart,
    ResponseMetadata,
    TextDelta,
    TextEnd,
    TextStart,
    ToolCall,
    ToolError,
    ToolInputDelta,
    ToolInputEnd,
    ToolInputStart,
    ToolResult,
    Usage,
)

__all__ = [
    # Enums
    "VERSION",
    "ContentPartType",
    "EventType",
    "FinishReason",
    "ToolState",
    # Wire events
    "AssistantEvent",
    "ContentPart",
    "ErrorEvent",
    "Event",
    "MalformedEvent",
    "RawUsage",
    "ResultEvent",
    "SystemEvent",
    "TextContent",
    "ToolErrorContent",
    "ToolResultContent",
    "ToolUseContent",
    "UserEvent",
    "parse_content",
    "parse_event",
    # Output parts
    "ErrorPart",
    "Finish",
    "OutputPart",
    "ResponseMetadata",
    "TextDelta",
    "TextEnd",
    "TextStart",
    "ToolCall",
    "ToolError",
    "ToolInputDelta",
    "ToolInputEnd",
    "ToolInputStart",
    "ToolResult",
    "Usage",
]
