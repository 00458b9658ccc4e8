"""Invoker module: event translation and call preparation.

cli-agent-provider shared/invokers v0.1.0

Streaming usage:
    from cli_agent_provider.shared.invokers import EventTranslator

    translator = EventTranslator(structured=False)
    async for event in transport.stream(spec, cancel=signal):
        for part in translator.process(event):
            handle(part)
    for part in translator.finish():
        handle(part)

Aggregated usage:
    from cli_agent_provider.shared.invokers import ResultAggregator

    aggregator = ResultAggregator(structured=True)
    async for event in transport.stream(spec, cancel=signal):
        aggregator.process(event)
    result = aggregator.get_result()
"""

from __future__ import annotations

__version__ = "0.1.0"

from .aggregator import ResultAggregator
from .command import build_command, build_env
from .extract_json import extract_json
from .messages import convert_messages
from .translator import (
    MAX_DELTA_CALC_SIZE,
    MAX_TOOL_INPUT_SIZE,
    MAX_TOOL_INPUT_WARN,
    MIN_TRUNCATION_LENGTH,
    UNKNOWN_TOOL_NAME,
    EventTranslator,
    ToolInvocation,
    is_truncation_error,
)
from .types import SAMPLING_SETTINGS, CallOptions, CallWarning, GenerateResult
from .usage import calc_usage, map_finish_reason
from .validation import (
    KNOWN_MODELS,
    ProviderSettings,
    validate_model_id,
    validate_prompt,
    validate_session_id,
    validate_settings,
)

__all__ = [
    # Version
    "__version__",
    # Types
    "CallOptions",
    "CallWarning",
    "GenerateResult",
    "SAMPLING_SETTINGS",
    # Translation
    "EventTranslator",
    "ResultAggregator",
    "ToolInvocation",
    "UNKNOWN_TOOL_NAME",
    "MAX_DELTA_CALC_SIZE",
    "MAX_TOOL_INPUT_WARN",
    "MAX_TOOL_INPUT_SIZE",
    "MIN_TRUNCATION_LENGTH",
    "is_truncation_error",
    "calc_usage",
    "map_finish_reason",
    "extract_json",
    # Call preparation
    "KNOWN_MODELS",
    "ProviderSettings",
    "build_command",
    "build_env",
    "convert_messages",
    "validate_settings",
    "validate_model_id",
    "validate_prompt",
    "validate_session_id",
]
