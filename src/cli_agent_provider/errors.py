"""Exception types for cli-agent-provider.

cli-agent-provider v0.1.0

Every failure surfaced to callers derives from CLIProviderError. Cancellation
reasons derive from AbortError so callers can tell a user abort (or timeout)
apart from a genuine failure.
"""

from __future__ import annotations

__all__ = [
    "CLIProviderError",
    "AbortError",
    "AbortedWaitingError",
    "CLITimeoutError",
    "ProcessSpawnError",
    "CLIExitError",
    "AuthenticationError",
    "ProtocolError",
    "StreamSyntaxError",
    "ToolInputTooLargeError",
    "AUTH_ERROR_PATTERNS",
    "looks_like_auth_failure",
]

# Substrings (lower case) the external program prints when it is not logged in
AUTH_ERROR_PATTERNS: tuple[str, ...] = (
    "not logged in",
    "authentication",
    "unauthorized",
    "unauthenticated",
    "auth failed",
    "please login",
    "claude login",
    "invalid api key",
)


class CLIProviderError(Exception):
    """Base exception for the provider."""

    pass


class AbortError(CLIProviderError):
    """The operation was cancelled.

    Used as the default reason of a CancelSignal that was cancelled without
    an explicit reason.
    """

    def __init__(self, message: str = "The operation was aborted") -> None:
        super().__init__(message)


class AbortedWaitingError(AbortError):
    """Cancelled while waiting in the process pool queue.

    Attributes:
        reason: The reason carried by the cancel signal
    """

    def __init__(self, reason: BaseException | None = None) -> None:
        self.reason = reason
        detail = f": {reason}" if reason is not None else ""
        super().__init__(f"Cancelled while waiting for a process slot{detail}")


class CLITimeoutError(AbortError):
    """The request exceeded its time budget.

    Attributes:
        timeout_ms: The timeout that fired, in milliseconds
    """

    def __init__(self, timeout_ms: int, prompt_excerpt: str = "") -> None:
        self.timeout_ms = timeout_ms
        self.prompt_excerpt = prompt_excerpt
        seconds = round(timeout_ms / 1000)
        super().__init__(f"CLI timed out after {seconds} seconds")


class ProcessSpawnError(CLIProviderError):
    """The external program could not be started.

    Attributes:
        argv0: Executable that failed to start
        prompt_excerpt: First characters of the input, for diagnostics
    """

    def __init__(self, argv0: str, message: str, prompt_excerpt: str = "") -> None:
        self.argv0 = argv0
        self.prompt_excerpt = prompt_excerpt
        super().__init__(f"Failed to spawn {argv0}: {message}")


class CLIExitError(CLIProviderError):
    """The external program exited with a non-zero code.

    Attributes:
        exit_code: Process return code
        prompt_excerpt: First characters of the input, for diagnostics
        stderr: Tail of the captured stderr
    """

    def __init__(
        self,
        exit_code: int,
        prompt_excerpt: str = "",
        stderr: str = "",
    ) -> None:
        self.exit_code = exit_code
        self.prompt_excerpt = prompt_excerpt
        self.stderr = stderr
        message = f"CLI exited with code {exit_code}"
        if stderr:
            message += f":\n{stderr}"
        super().__init__(message)


class AuthenticationError(CLIProviderError):
    """The external program is not authenticated."""

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message
            or "Authentication failed. Please ensure the CLI is properly authenticated."
        )


class ProtocolError(CLIProviderError):
    """The external program reported an explicit error event.

    Attributes:
        code: Optional error code from the event
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}" if code else message)


class StreamSyntaxError(CLIProviderError):
    """Output that could not be parsed as JSON when the stream closed.

    Attributes:
        line: The offending (possibly partial) output line
    """

    def __init__(self, message: str, line: str = "") -> None:
        self.line = line
        super().__init__(message)


class ToolInputTooLargeError(CLIProviderError):
    """A tool input exceeded the hard size ceiling.

    Attributes:
        tool_call_id: Tool invocation id
        size: Serialized size in characters
        limit: Ceiling that was exceeded
    """

    def __init__(self, tool_call_id: str, size: int, limit: int) -> None:
        self.tool_call_id = tool_call_id
        self.size = size
        self.limit = limit
        super().__init__(
            f"Tool input for {tool_call_id} is {size} characters, "
            f"exceeding the {limit} character limit"
        )


def looks_like_auth_failure(message: str, exit_code: int | None = None) -> bool:
    """Check whether an error message or exit code signals an auth failure."""
    if exit_code == 401:
        return True
    lowered = message.lower()
    return any(pattern in lowered for pattern in AUTH_ERROR_PATTERNS)
