"""Result aggregator for non-streaming callers.

cli-agent-provider shared/invokers v0.1.0

Runs an EventTranslator and folds its output parts into one GenerateResult,
so truncation and malformed-event handling are exactly those of the stream.

Usage:
    aggregator = ResultAggregator(structured=True)
    async for event in transport.stream(spec, cancel=signal):
        aggregator.process(event)
    result = aggregator.get_result()

Thread safety:
    ResultAggregator is per-request and shares no state.
"""

from __future__ import annotations

import logging
from typing import Any

from ..parsers.events import Event
from ..parsers.parts import Finish, OutputPart, TextDelta, ToolCall, ToolError, ToolResult
from .translator import EventTranslator
from .types import CallWarning, GenerateResult

__all__ = ["ResultAggregator"]

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Collects one request's output into a GenerateResult."""

    def __init__(
        self,
        *,
        structured: bool = False,
        session_id: str | None = None,
        model_id: str | None = None,
        warnings: list[CallWarning] | None = None,
    ) -> None:
        self.translator = EventTranslator(
            structured=structured,
            session_id=session_id,
            model_id=model_id,
            warnings=warnings,
        )
        self._result = GenerateResult(session_id=session_id)
        self._text: list[str] = []

    def process(self, event: Event | dict[str, Any] | None) -> None:
        """Process one event. Raises what EventTranslator.process raises."""
        self._fold(self.translator.process(event))

    def recover_truncation(self, error: BaseException) -> bool:
        """Finish from buffered text if error is a recoverable truncation."""
        parts = self.translator.recover_truncation(error)
        if parts is None:
            return False
        self._fold(parts)
        return True

    def get_result(self) -> GenerateResult:
        """Finish the stream if needed and return the aggregated result."""
        self._fold(self.translator.finish())
        result = self._result
        result.text = "".join(self._text)
        result.session_id = self.translator.session_id
        result.warnings = list(self.translator.warnings)
        logger.debug(
            f"Aggregated result: finish_reason={result.finish_reason.value} "
            f"text={len(result.text)} chars tool_calls={len(result.tool_calls)}"
        )
        return result

    def _fold(self, parts: list[OutputPart]) -> None:
        result = self._result
        for part in parts:
            if isinstance(part, TextDelta):
                self._text.append(part.delta)
            elif isinstance(part, ToolCall):
                result.tool_calls.append(part)
            elif isinstance(part, (ToolResult, ToolError)):
                result.tool_results.append(part)
            elif isinstance(part, Finish):
                result.finish_reason = part.finish_reason
                result.usage = part.usage
                result.metadata = part.metadata
