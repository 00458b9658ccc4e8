"""CAP environment variable configuration.

Environment variables:
    CAP_CLI_PATH: Executable of the external program
        - default "claude"

    CAP_MODEL: Model id passed with --model
        - default "opus"

    CAP_MAX_CONCURRENCY: Maximum number of concurrent CLI processes
        - default 4, clamped to 1-100

    CAP_TIMEOUT_MS: Time budget per call in milliseconds
        - default 120000, invalid or non-positive values fall back to it

    CAP_CWD: Working directory of the CLI processes
        - empty/unset = the server's working directory

    CAP_SKIP_PERMISSIONS: Pass --dangerously-skip-permissions
        - true/1/yes = on
        - false/0/no = off (default)

    CAP_DEBUG: Debug mode
        - true/1/yes = on (MCP responses include usage and warnings)
        - false/0/no = off (default)

    CAP_LOG_DEBUG: Log debug mode
        - true/1/yes = on (logs go to a temp file at DEBUG level)
        - false/0/no = off (default, logs go to stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .runtime.pool import MAX_POOL_SIZE

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_MAX_CONCURRENCY = 4
DEFAULT_TIMEOUT_MS = 120_000


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_max_concurrency(value: str | None) -> int:
    """Parse CAP_MAX_CONCURRENCY, clamped to 1..MAX_POOL_SIZE."""
    if not value:
        return DEFAULT_MAX_CONCURRENCY
    try:
        parsed = int(value)
    except ValueError:
        return DEFAULT_MAX_CONCURRENCY
    return max(1, min(parsed, MAX_POOL_SIZE))


def _parse_timeout_ms(value: str | None) -> int:
    if not value:
        return DEFAULT_TIMEOUT_MS
    try:
        parsed = int(value)
    except ValueError:
        return DEFAULT_TIMEOUT_MS
    return parsed if parsed > 0 else DEFAULT_TIMEOUT_MS


@dataclass
class Config:
    """CAP configuration.

    Attributes:
        cli_path: Executable of the external program
        model: Model id
        max_concurrency: Process pool size
        timeout_ms: Time budget per call
        cwd: Working directory of the CLI processes (None = inherit)
        skip_permissions: Pass --dangerously-skip-permissions
        debug: Debug mode (responses include usage and warnings)
        log_debug: Log debug mode (logs go to a temp file)
        log_file: Log file path (set automatically when log_debug=True)
    """

    cli_path: str = "claude"
    model: str = "opus"
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    cwd: str | None = None
    skip_permissions: bool = False
    debug: bool = False
    log_debug: bool = False
    log_file: str | None = None

    def provider_settings(self) -> dict[str, Any]:
        """Settings for CLILanguageModel."""
        settings: dict[str, Any] = {
            "cli_path": self.cli_path,
            "model": self.model,
            "max_concurrent_processes": self.max_concurrency,
            "timeout_ms": self.timeout_ms,
            "skip_permissions": self.skip_permissions,
        }
        if self.cwd:
            settings["cwd"] = self.cwd
        return settings

    def __repr__(self) -> str:
        return (
            f"Config(cli_path={self.cli_path}, "
            f"model={self.model}, "
            f"max_concurrency={self.max_concurrency}, "
            f"timeout_ms={self.timeout_ms}, "
            f"cwd={self.cwd or '.'}, "
            f"skip_permissions={self.skip_permissions}, "
            f"debug={self.debug}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Log file path under the system temp dir."""
    log_dir = Path(tempfile.gettempdir()) / "cli-agent-provider"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"cap_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("CAP_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        cli_path=os.environ.get("CAP_CLI_PATH", "").strip() or "claude",
        model=os.environ.get("CAP_MODEL", "").strip() or "opus",
        max_concurrency=_parse_max_concurrency(os.environ.get("CAP_MAX_CONCURRENCY")),
        timeout_ms=_parse_timeout_ms(os.environ.get("CAP_TIMEOUT_MS")),
        cwd=os.environ.get("CAP_CWD", "").strip() or None,
        skip_permissions=_parse_bool(os.environ.get("CAP_SKIP_PERMISSIONS"), default=False),
        debug=_parse_bool(os.environ.get("CAP_DEBUG"), default=False),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global config instance (loaded lazily)
_config: Config | None = None


def get_config() -> Config:
    """Get the global config instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload the configuration (for tests)."""
    global _config
    _config = load_config()
    return _config
