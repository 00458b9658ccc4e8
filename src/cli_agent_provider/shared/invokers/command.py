"""Command building for the external program.

cli-agent-provider shared/invokers v0.1.0

Command format:
    claude \
      -p \
      --output-format stream-json \
      --verbose \
      --model {model} \
      [--resume {session_id}] \
      [--system-prompt "{custom_system_prompt}"] \
      [--append-system-prompt "{append_system_prompt}"] \
      [--max-turns {max_turns}] \
      [--permission-mode {permission_mode}] \
      [--dangerously-skip-permissions] \
      [--allowedTools {a,b} | --disallowedTools {c,d}]

The prompt is written to stdin, never passed as an argument.
"""

from __future__ import annotations

import os
from collections.abc import Mapping

from .validation import ProviderSettings

__all__ = [
    "build_command",
    "build_env",
]


def build_command(settings: ProviderSettings, session_id: str | None = None) -> list[str]:
    """Build the argument list for one call.

    Args:
        settings: Validated provider settings
        session_id: Session to resume (optional)

    Returns:
        Command line arguments, executable first
    """
    cmd = [settings.cli_path]

    # Non-interactive mode, one JSON event per line (stream-json needs --verbose with -p)
    cmd.append("-p")
    cmd.extend(["--output-format", "stream-json"])
    cmd.append("--verbose")

    cmd.extend(["--model", settings.model])

    if session_id:
        cmd.extend(["--resume", session_id])

    if settings.custom_system_prompt:
        cmd.extend(["--system-prompt", settings.custom_system_prompt])
    elif settings.append_system_prompt:
        cmd.extend(["--append-system-prompt", settings.append_system_prompt])

    if settings.max_turns is not None:
        cmd.extend(["--max-turns", str(settings.max_turns)])

    if settings.permission_mode is not None:
        cmd.extend(["--permission-mode", settings.permission_mode])

    if settings.skip_permissions:
        cmd.append("--dangerously-skip-permissions")

    # allowed_tools wins when both are given
    if settings.allowed_tools:
        cmd.extend(["--allowedTools", ",".join(settings.allowed_tools)])
    elif settings.disallowed_tools:
        cmd.extend(["--disallowedTools", ",".join(settings.disallowed_tools)])

    return cmd


def build_env(
    settings: ProviderSettings,
    base: Mapping[str, str] | None = None,
) -> dict[str, str] | None:
    """Environment for the subprocess.

    Returns None (inherit) when the settings add nothing.
    """
    extra = dict(settings.env)
    if settings.max_thinking_tokens is not None:
        extra["MAX_THINKING_TOKENS"] = str(settings.max_thinking_tokens)
    if not extra:
        return None
    env = dict(os.environ if base is None else base)
    env.update(extra)
    return env
