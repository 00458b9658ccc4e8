"""Provider settings and input validation.

cli-agent-provider shared/invokers v0.1.0

Hard problems (bad types, out-of-range values, a missing cwd) raise
pydantic.ValidationError. Soft problems are returned as warning strings and
end up in the result's warnings.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

__all__ = [
    "KNOWN_MODELS",
    "MAX_PROMPT_LENGTH",
    "ProviderSettings",
    "validate_settings",
    "validate_model_id",
    "validate_prompt",
    "validate_session_id",
]

KNOWN_MODELS: tuple[str, ...] = ("opus", "sonnet")

# ~25k tokens
MAX_PROMPT_LENGTH = 100_000

_TOOL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*(\([^)]*\))?$")
_SESSION_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

PermissionMode = Literal["default", "acceptEdits", "bypassPermissions", "plan"]


class ProviderSettings(BaseModel):
    """Settings of one CLILanguageModel.

    Attributes:
        cli_path: Executable of the external program
        model: Model id passed with --model
        cwd: Working directory of the subprocess (must exist)
        custom_system_prompt: Replaces the default system prompt
        append_system_prompt: Appended to the default system prompt
        max_turns: --max-turns (1..100)
        max_thinking_tokens: MAX_THINKING_TOKENS env for the subprocess
        permission_mode: --permission-mode
        skip_permissions: Pass --dangerously-skip-permissions
        allowed_tools: --allowedTools (wins over disallowed_tools)
        disallowed_tools: --disallowedTools
        max_concurrent_processes: Process pool size (1..100)
        timeout_ms: Default time budget per call
        env: Extra environment variables for the subprocess
    """

    model_config = ConfigDict(extra="forbid")

    cli_path: str = "claude"
    model: str = "opus"
    cwd: Path | None = None
    custom_system_prompt: str | None = None
    append_system_prompt: str | None = None
    max_turns: int | None = Field(default=None, ge=1, le=100)
    max_thinking_tokens: int | None = Field(default=None, ge=1, le=100_000)
    permission_mode: PermissionMode | None = None
    skip_permissions: bool = False
    allowed_tools: list[str] | None = None
    disallowed_tools: list[str] | None = None
    max_concurrent_processes: int = Field(default=4, ge=1, le=100)
    timeout_ms: int = Field(default=120_000, gt=0)
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("cli_path")
    @classmethod
    def _cli_path_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("cli_path cannot be empty")
        return value

    @field_validator("cwd")
    @classmethod
    def _cwd_exists(cls, value: Path | None) -> Path | None:
        if value is not None and not value.is_dir():
            raise ValueError(f"Working directory must exist: {value}")
        return value

    @model_validator(mode="after")
    def _one_system_prompt(self) -> ProviderSettings:
        if self.custom_system_prompt and self.append_system_prompt:
            raise ValueError(
                "Cannot specify both custom_system_prompt and append_system_prompt. "
                "Use custom_system_prompt to completely override, or "
                "append_system_prompt to add to the default."
            )
        return self


def validate_settings(
    settings: ProviderSettings | Mapping[str, Any] | None = None,
) -> tuple[ProviderSettings, list[str]]:
    """Validate settings and collect warnings.

    Args:
        settings: A ProviderSettings, a mapping of its fields, or None

    Returns:
        (settings, warnings)

    Raises:
        pydantic.ValidationError: If a setting is invalid
    """
    if settings is None:
        validated = ProviderSettings()
    elif isinstance(settings, ProviderSettings):
        validated = settings
    else:
        validated = ProviderSettings.model_validate(dict(settings))

    warnings: list[str] = []

    if validated.max_turns is not None and validated.max_turns > 20:
        warnings.append(
            f"High max_turns value ({validated.max_turns}) may lead to long-running conversations"
        )

    if validated.max_thinking_tokens is not None and validated.max_thinking_tokens > 50_000:
        warnings.append(
            f"Very high max_thinking_tokens ({validated.max_thinking_tokens}) "
            "may increase response time"
        )

    if validated.allowed_tools is not None and validated.disallowed_tools is not None:
        warnings.append(
            "Both allowed_tools and disallowed_tools are specified. "
            "Only allowed_tools will be used."
        )

    for kind, tools in (
        ("allowed", validated.allowed_tools),
        ("disallowed", validated.disallowed_tools),
    ):
        for tool in tools or []:
            if not _TOOL_NAME_RE.match(tool) and not tool.startswith("mcp__"):
                warnings.append(f"Unusual {kind} tool name format: '{tool}'")

    return validated, warnings


def validate_model_id(model_id: str) -> str | None:
    """Return a warning for unknown model ids.

    Raises:
        ValueError: If the model id is empty
    """
    if not model_id or not model_id.strip():
        raise ValueError("Model ID cannot be empty")
    if model_id not in KNOWN_MODELS:
        return (
            f"Unknown model ID: '{model_id}'. Proceeding with custom model. "
            f"Known models are: {', '.join(KNOWN_MODELS)}"
        )
    return None


def validate_prompt(prompt: str) -> str | None:
    """Return a warning for very long prompts."""
    if len(prompt) > MAX_PROMPT_LENGTH:
        return (
            f"Very long prompt ({len(prompt)} characters) "
            "may cause performance issues or timeouts"
        )
    return None


def validate_session_id(session_id: str | None) -> str | None:
    """Return a warning for session ids with unexpected characters."""
    if session_id and not _SESSION_ID_RE.match(session_id):
        return "Unusual session ID format. This may cause issues with session resumption."
    return None
