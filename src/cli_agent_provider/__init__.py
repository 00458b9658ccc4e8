"""CLI Agent Provider - streaming generation through an agent CLI.

Environment variables:
    CAP_CLI_PATH: CLI executable (default "claude")
    CAP_MODEL: Model id (default "opus")
    CAP_MAX_CONCURRENCY: Concurrent CLI processes (default 4)

Usage:
    uvx cli-agent-provider
"""

__version__ = "0.1.0"

from .app import main
from .provider import CLILanguageModel

__all__ = ["__version__", "CLILanguageModel", "main"]
