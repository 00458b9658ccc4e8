"""Event translator: wire events -> ordered output parts.

cli-agent-provider shared/invokers v0.1.0

One EventTranslator serves one request. It owns the per-tool state for that
request and keeps the caller-facing ordering guarantees:

- Text: TextStart is opened lazily on the first non-empty text; every chunk
  is forwarded as a TextDelta. In structured mode all text is buffered and
  emitted once, after JSON extraction, as a single TextDelta.
- Tools: ToolInputStart -> ToolInputDelta* -> ToolInputEnd -> ToolCall
  -> (ToolResult | ToolError)*, with exactly one ToolCall per id.
- Result: closes the text span, finalises pending tools and emits Finish.

Usage:
    translator = EventTranslator(structured=False)
    async for event in transport.stream(spec, cancel=signal):
        for part in translator.process(event):
            yield part
    for part in translator.finish():
        yield part
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from ...errors import (
    AuthenticationError,
    ProtocolError,
    StreamSyntaxError,
    ToolInputTooLargeError,
    looks_like_auth_failure,
)
from ..parsers.base import FinishReason, ToolState
from ..parsers.events import (
    AssistantEvent,
    ErrorEvent,
    Event,
    MalformedEvent,
    ResultEvent,
    SystemEvent,
    TextContent,
    ToolErrorContent,
    ToolResultContent,
    ToolUseContent,
    UserEvent,
    parse_event,
)
from ..parsers.parts import (
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
from .extract_json import extract_json
from .types import CallWarning
from .usage import calc_usage, map_finish_reason

__all__ = [
    "EventTranslator",
    "ToolInvocation",
    "UNKNOWN_TOOL_NAME",
    "MAX_DELTA_CALC_SIZE",
    "MAX_TOOL_INPUT_WARN",
    "MAX_TOOL_INPUT_SIZE",
    "MIN_TRUNCATION_LENGTH",
    "TRUNCATION_WARNING",
    "is_truncation_error",
]

logger = logging.getLogger(__name__)

UNKNOWN_TOOL_NAME = "unknown-tool"

# Size ceilings for serialized tool input, in characters
MAX_DELTA_CALC_SIZE = 10 * 1024
MAX_TOOL_INPUT_WARN = 100 * 1024
MAX_TOOL_INPUT_SIZE = 1024 * 1024

# Buffered text needed before a parse error counts as truncation
MIN_TRUNCATION_LENGTH = 512

_TRUNCATION_PHRASES = (
    "unexpected end of json input",
    "unexpected end of input",
    "unexpected eof",
    "unterminated string",
    "end of data",
)

TRUNCATION_WARNING = (
    "CLI output ended unexpectedly; returning truncated response "
    "from {length} buffered characters."
)
JSON_EXTRACTION_UNCHANGED_WARNING = (
    "JSON extraction from model response may be incomplete or modified. "
    "The model may not have returned valid JSON."
)
JSON_EXTRACTION_INVALID_WARNING = (
    "JSON extraction resulted in invalid JSON. The response may be malformed."
)
NO_RESULT_WARNING = "CLI output ended without a result event."


def is_truncation_error(error: BaseException, buffered_text: str) -> bool:
    """Check whether a stream syntax error looks like cut-off output.

    Best effort: a late genuine syntax error with enough buffered text is
    indistinguishable from truncation.
    """
    if not isinstance(error, (StreamSyntaxError, json.JSONDecodeError)):
        return False
    message = str(error).lower()
    if not any(phrase in message for phrase in _TRUNCATION_PHRASES):
        return False
    return len(buffered_text) >= MIN_TRUNCATION_LENGTH


@dataclass
class ToolInvocation:
    """Per-request state of one tool call.

    Attributes:
        id: Tool invocation id
        name: Tool name (UNKNOWN_TOOL_NAME until a real one is seen)
        state: Lifecycle state
        last_serialized_input: Most recent serialized input (None if never seen)
        warned_large: Whether the soft size warning was already logged
    """

    id: str
    name: str
    state: ToolState = ToolState.PENDING
    last_serialized_input: str | None = None
    warned_large: bool = False


def _serialize_input(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


def _normalize_result(value: Any) -> Any:
    """Tool results arriving as JSON text are decoded."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _stringify_error(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


class EventTranslator:
    """Stateful translator for one request.

    Attributes:
        structured: Buffer text and emit extracted JSON at the end
        session_id: Latest session id (the resumed one until the program
            reports its own)
        reported_session_id: Latest session id the program itself reported
        warnings: Non-fatal problems, reported in Finish.metadata
        finish_reason: Set once the stream is finished
        usage: Set once the stream is finished
    """

    def __init__(
        self,
        *,
        structured: bool = False,
        session_id: str | None = None,
        model_id: str | None = None,
        warnings: list[CallWarning] | None = None,
    ) -> None:
        self.structured = structured
        self.session_id = session_id
        self.model_id = model_id
        self.reported_session_id: str | None = None
        self.warnings: list[CallWarning] = list(warnings or [])
        self.finish_reason: FinishReason | None = None
        self.usage = Usage()

        self._tools: dict[str, ToolInvocation] = {}
        self._chunks: list[str] = []
        self._text_id: str | None = None
        self._metadata_sent = False
        self._finished = False

    @property
    def text(self) -> str:
        """All assistant text seen so far."""
        return "".join(self._chunks)

    @property
    def finished(self) -> bool:
        return self._finished

    def process(self, event: Event | dict[str, Any] | None) -> list[OutputPart]:
        """Translate one event.

        Args:
            event: A parsed event, or the decoded JSON object of one line

        Returns:
            Output parts, in order

        Raises:
            ProtocolError: For an explicit error event
            AuthenticationError: For an error event reporting an auth failure
            ToolInputTooLargeError: When a tool input exceeds the hard ceiling
        """
        if isinstance(event, dict):
            event = parse_event(event)
        if event is None:
            return []

        if self._finished:
            logger.debug(f"Ignoring {event.type} event after result")
            return []

        if isinstance(event, MalformedEvent):
            logger.warning(f"Skipping malformed event: {event.reason}")
            self.warnings.append(CallWarning.other(f"Skipped malformed event: {event.reason}"))
            return []
        if isinstance(event, SystemEvent):
            return self._on_system(event)
        if isinstance(event, AssistantEvent):
            return self._on_content(event.content, assistant=True)
        if isinstance(event, UserEvent):
            return self._on_content(event.content, assistant=False)
        if isinstance(event, ResultEvent):
            return self._on_result(event)
        if isinstance(event, ErrorEvent):
            self._raise_error_event(event)
        return []

    def finish(self) -> list[OutputPart]:
        """Close the stream after the last event.

        A no-op when a result event already finished the stream. Otherwise
        the text span is closed, tools are finalised and Finish(stop) is
        emitted with a warning.
        """
        if self._finished:
            return []
        logger.warning(NO_RESULT_WARNING)
        self.warnings.append(CallWarning.other(NO_RESULT_WARNING))
        return self._complete(FinishReason.STOP, Usage(), {})

    def recover_truncation(self, error: BaseException) -> list[OutputPart] | None:
        """Finish the stream from buffered text after cut-off output.

        Args:
            error: The exception raised while reading the stream

        Returns:
            The closing parts (ending in Finish(length)), or None when the
            error is not a recoverable truncation and must propagate
        """
        if self._finished or not is_truncation_error(error, self.text):
            return None
        message = TRUNCATION_WARNING.format(length=len(self.text))
        logger.warning(f"{message} ({error})")
        self.warnings.append(CallWarning.other(message))
        return self._complete(FinishReason.LENGTH, self.usage, {"truncated": True})

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _on_system(self, event: SystemEvent) -> list[OutputPart]:
        if not event.session_id:
            return []
        self._update_session(event.session_id)
        if self._metadata_sent:
            return []
        self._metadata_sent = True
        return [ResponseMetadata(id=event.session_id, model_id=event.model or self.model_id)]

    def _on_content(self, content: list[Any], *, assistant: bool) -> list[OutputPart]:
        parts: list[OutputPart] = []
        for item in content:
            if isinstance(item, TextContent):
                if assistant:
                    parts.extend(self._on_text(item.text))
            elif isinstance(item, ToolUseContent):
                parts.extend(self._on_tool_use(item))
            elif isinstance(item, ToolResultContent):
                parts.extend(self._on_tool_result(item))
            elif isinstance(item, ToolErrorContent):
                parts.extend(self._on_tool_error(item))
        return parts

    def _on_text(self, text: str) -> list[OutputPart]:
        if not text:
            return []
        self._chunks.append(text)
        if self.structured:
            return []
        parts: list[OutputPart] = []
        if self._text_id is None:
            self._text_id = uuid.uuid4().hex
            parts.append(TextStart(id=self._text_id))
        parts.append(TextDelta(id=self._text_id, delta=text))
        return parts

    def _on_tool_use(self, item: ToolUseContent) -> list[OutputPart]:
        tool_id = item.id or uuid.uuid4().hex
        serialized = self._check_size(tool_id, _serialize_input(item.input))

        parts: list[OutputPart] = []
        tool = self._tools.get(tool_id)
        if tool is None:
            tool = ToolInvocation(id=tool_id, name=item.name or UNKNOWN_TOOL_NAME)
            self._tools[tool_id] = tool
        elif item.name:
            tool.name = item.name

        if tool.state is ToolState.PENDING:
            parts.append(ToolInputStart(id=tool_id, tool_name=tool.name))
            tool.state = ToolState.INPUT_STREAMING
        elif tool.state is not ToolState.INPUT_STREAMING:
            logger.debug(f"Ignoring input update for closed tool {tool_id}")
            return parts

        self._warn_if_large(tool, serialized)
        previous = tool.last_serialized_input
        if previous is None:
            if serialized and len(serialized) <= MAX_DELTA_CALC_SIZE:
                parts.append(ToolInputDelta(id=tool_id, delta=serialized))
        elif (
            len(previous) <= MAX_DELTA_CALC_SIZE
            and len(serialized) <= MAX_DELTA_CALC_SIZE
            and serialized.startswith(previous)
            and serialized != previous
        ):
            parts.append(ToolInputDelta(id=tool_id, delta=serialized[len(previous):]))
        # Otherwise the ToolCall carries the full input
        tool.last_serialized_input = serialized
        return parts

    def _on_tool_result(self, item: ToolResultContent) -> list[OutputPart]:
        tool, parts = self._called_tool(item.tool_use_id, item.name)
        parts.append(
            ToolResult(
                tool_call_id=tool.id,
                tool_name=tool.name,
                result=_normalize_result(item.content),
                is_error=item.is_error,
            )
        )
        return parts

    def _on_tool_error(self, item: ToolErrorContent) -> list[OutputPart]:
        tool, parts = self._called_tool(item.tool_use_id, item.name)
        parts.append(
            ToolError(
                tool_call_id=tool.id,
                tool_name=tool.name,
                error=_stringify_error(item.error),
            )
        )
        return parts

    def _on_result(self, event: ResultEvent) -> list[OutputPart]:
        if event.session_id:
            self._update_session(event.session_id)

        metadata: dict[str, Any] = {}
        if event.total_cost_usd is not None:
            metadata["cost_usd"] = event.total_cost_usd
        if event.duration_ms is not None:
            metadata["duration_ms"] = event.duration_ms
        if event.usage is not None:
            metadata["raw_usage"] = event.usage.model_dump()

        return self._complete(map_finish_reason(event.subtype), calc_usage(event.usage), metadata)

    def _raise_error_event(self, event: ErrorEvent) -> None:
        logger.debug(f"Error event: code={event.code} message={event.message}")
        if looks_like_auth_failure(event.message):
            raise AuthenticationError(event.message)
        raise ProtocolError(event.message, code=event.code)

    # =========================================================================
    # Tool lifecycle
    # =========================================================================

    def _called_tool(
        self, tool_id: str, name: str | None
    ) -> tuple[ToolInvocation, list[OutputPart]]:
        """Bring a tool to CALLED, synthesising missing lifecycle parts."""
        tool_id = tool_id or uuid.uuid4().hex
        parts: list[OutputPart] = []
        tool = self._tools.get(tool_id)
        if tool is None:
            logger.warning(f"Received tool result for unknown tool id: {tool_id}")
            tool = ToolInvocation(id=tool_id, name=name or UNKNOWN_TOOL_NAME)
            self._tools[tool_id] = tool
        elif name:
            tool.name = name

        if tool.state is ToolState.PENDING:
            parts.append(ToolInputStart(id=tool.id, tool_name=tool.name))
            tool.state = ToolState.INPUT_STREAMING
        parts.extend(self._emit_call(tool))
        return tool, parts

    def _close_input(self, tool: ToolInvocation) -> list[OutputPart]:
        if tool.state is not ToolState.INPUT_STREAMING:
            return []
        tool.state = ToolState.INPUT_CLOSED
        return [ToolInputEnd(id=tool.id)]

    def _emit_call(self, tool: ToolInvocation) -> list[OutputPart]:
        parts = self._close_input(tool)
        if tool.state is ToolState.INPUT_CLOSED:
            tool.state = ToolState.CALLED
            parts.append(
                ToolCall(
                    tool_call_id=tool.id,
                    tool_name=tool.name,
                    input=tool.last_serialized_input or "",
                )
            )
        return parts

    def _finalize_tools(self) -> list[OutputPart]:
        parts: list[OutputPart] = []
        for tool in self._tools.values():
            if tool.state is not ToolState.PENDING:
                parts.extend(self._emit_call(tool))
        self._tools.clear()
        return parts

    def _check_size(self, tool_id: str, serialized: str) -> str:
        if len(serialized) > MAX_TOOL_INPUT_SIZE:
            raise ToolInputTooLargeError(tool_id, len(serialized), MAX_TOOL_INPUT_SIZE)
        return serialized

    def _warn_if_large(self, tool: ToolInvocation, serialized: str) -> None:
        if len(serialized) > MAX_TOOL_INPUT_WARN and not tool.warned_large:
            tool.warned_large = True
            logger.warning(
                f"Large tool input detected for {tool.id}: {len(serialized)} characters. "
                "Performance may be impacted."
            )

    # =========================================================================
    # Completion
    # =========================================================================

    def _complete(
        self,
        finish_reason: FinishReason,
        usage: Usage,
        metadata: dict[str, Any],
    ) -> list[OutputPart]:
        parts: list[OutputPart] = []

        if self.structured:
            text = self.text
            if text:
                extracted = self._extract(text)
                text_id = uuid.uuid4().hex
                parts.append(TextStart(id=text_id))
                parts.append(TextDelta(id=text_id, delta=extracted))
                parts.append(TextEnd(id=text_id))
        elif self._text_id is not None:
            parts.append(TextEnd(id=self._text_id))

        parts.extend(self._finalize_tools())

        self._finished = True
        self.finish_reason = finish_reason
        self.usage = usage

        final_metadata: dict[str, Any] = {}
        if self.session_id:
            final_metadata["session_id"] = self.session_id
        final_metadata.update(metadata)
        if self.warnings:
            final_metadata["warnings"] = [w.to_dict() for w in self.warnings]

        parts.append(Finish(finish_reason=finish_reason, usage=usage, metadata=final_metadata))
        return parts

    def _extract(self, text: str) -> str:
        extracted = extract_json(text)
        if extracted == text:
            self.warnings.append(CallWarning.other(JSON_EXTRACTION_UNCHANGED_WARNING))
        else:
            try:
                json.loads(extracted)
            except json.JSONDecodeError:
                self.warnings.append(CallWarning.other(JSON_EXTRACTION_INVALID_WARNING))
        return extracted

    def _update_session(self, session_id: str) -> None:
        if not session_id:
            return
        self.reported_session_id = session_id
        if session_id != self.session_id:
            logger.debug(f"Session id updated: {session_id}")
            self.session_id = session_id
