"""Usage normalisation and finish-reason mapping."""

from __future__ import annotations

from ..parsers.base import FinishReason
from ..parsers.events import RawUsage
from ..parsers.parts import Usage

__all__ = [
    "calc_usage",
    "map_finish_reason",
]

_FINISH_REASONS: dict[str, FinishReason] = {
    "success": FinishReason.STOP,
    "error_max_turns": FinishReason.LENGTH,
    "error_during_execution": FinishReason.ERROR,
}


def calc_usage(raw: RawUsage | None) -> Usage:
    """Fold cache tokens into the input count."""
    if raw is None:
        return Usage()
    input_tokens = (
        raw.input_tokens
        + raw.cache_creation_input_tokens
        + raw.cache_read_input_tokens
    )
    return Usage(
        input_tokens=input_tokens,
        output_tokens=raw.output_tokens,
        total_tokens=input_tokens + raw.output_tokens,
    )


def map_finish_reason(subtype: str | None) -> FinishReason:
    """Map a result subtype to a finish reason (unknown -> stop)."""
    return _FINISH_REASONS.get(subtype or "", FinishReason.STOP)
