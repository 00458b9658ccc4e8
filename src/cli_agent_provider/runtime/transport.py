"""Subprocess transport for the stream-json protocol.

cli-agent-provider runtime module v0.1.0

This module provides:
- Cross-platform subprocess isolation (new session/process group)
- Reliable termination (SIGTERM -> term_timeout -> SIGKILL)
- Line reassembly of stdout across chunk boundaries, one Event per line
- Concurrent stderr draining into a bounded ring buffer
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True to create a new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- terminate() is synchronous and idempotent; the kill escalation is a timer
- Every buffered complete line is yielded before the exit code is checked
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import subprocess
import sys
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import CLIExitError, ProcessSpawnError, StreamSyntaxError
from ..shared.parsers.events import Event, parse_event
from .cancel import CancelSignal

__all__ = [
    "PROMPT_EXCERPT_LENGTH",
    "ProcessSpec",
    "StderrBuffer",
    "Transport",
    "make_excerpt",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

DEFAULT_TERM_TIMEOUT = 2.0  # seconds between SIGTERM and SIGKILL
DEFAULT_CHUNK_SIZE = 64 * 1024
STDERR_BUFFER_LIMIT = 4 * 1024 * 1024  # 4MB
STDERR_TAIL_LINES = 5
PROMPT_EXCERPT_LENGTH = 200


def make_excerpt(text: str, limit: int = PROMPT_EXCERPT_LENGTH) -> str:
    """First characters of a prompt, for error diagnostics."""
    return text[:limit]


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
        stdin_bytes: Optional bytes to write to stdin before closing it
        prompt_excerpt: Diagnostic excerpt attached to spawn and exit errors
    """

    argv: list[str]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    stdin_bytes: bytes | None = None
    prompt_excerpt: str = ""


class StderrBuffer:
    """Ring buffer keeping the last `limit` bytes of stderr."""

    def __init__(self, limit: int = STDERR_BUFFER_LIMIT) -> None:
        self.limit = limit
        self._data = bytearray()

    def append(self, chunk: bytes) -> None:
        self._data.extend(chunk)
        overflow = len(self._data) - self.limit
        if overflow > 0:
            del self._data[:overflow]

    def text(self) -> str:
        return self._data.decode("utf-8", errors="replace")

    def tail(self, lines: int = STDERR_TAIL_LINES) -> str:
        """Last non-blank lines, joined with newlines."""
        kept = [line for line in self.text().splitlines() if line.strip()]
        return "\n".join(kept[-lines:])

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class Transport:
    """Runs one external program and streams its stdout as Events.

    One Transport instance serves one request.

    Example:
        transport = Transport()
        spec = ProcessSpec(
            argv=["claude", "-p", "--output-format", "stream-json", "--verbose"],
            cwd=Path("/workspace"),
            stdin_bytes=b"prompt text",
        )

        async for event in transport.stream(spec, cancel=signal):
            handle(event)

    Attributes:
        term_timeout: Seconds to wait after SIGTERM before SIGKILL
        chunk_size: Read size for stdout
        stderr_limit: Size of the stderr ring buffer
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    stderr_limit: int = STDERR_BUFFER_LIMIT

    _process: asyncio.subprocess.Process | None = field(default=None, init=False, repr=False)
    _terminated: bool = field(default=False, init=False, repr=False)
    _kill_handle: asyncio.TimerHandle | None = field(default=None, init=False, repr=False)
    _stderr: StderrBuffer | None = field(default=None, init=False, repr=False)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    @property
    def stderr_text(self) -> str:
        return self._stderr.text() if self._stderr is not None else ""

    async def stream(
        self,
        spec: ProcessSpec,
        *,
        cancel: CancelSignal | None = None,
    ) -> AsyncIterator[Event]:
        """Run the subprocess and yield one Event per stdout line.

        This method:
        1. Starts the subprocess in an isolated process group/session
        2. Writes stdin_bytes if provided, then closes stdin
        3. Yields Events as complete lines arrive
        4. Drains stderr concurrently into a ring buffer
        5. Ensures cleanup even if cancelled

        Args:
            spec: Process specification
            cancel: Optional cancel signal; firing it terminates the process

        Yields:
            Parsed events (unparseable lines and unknown types are dropped)

        Raises:
            ProcessSpawnError: If the executable could not be started
            CLIExitError: If the process exited with a non-zero code
            StreamSyntaxError: If stdout ended in the middle of a JSON line
            BaseException: The cancel reason, if the signal fired
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        self._stderr = StderrBuffer(self.stderr_limit)
        stderr_task: asyncio.Task[None] | None = None
        remove_listener = None

        try:
            # DEVNULL instead of None when there is no input: inheriting stdin
            # would hand the subprocess the MCP server's JSON-RPC channel.
            self._process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.PIPE if spec.stdin_bytes is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=spec.cwd,
                **self._build_subprocess_kwargs(spec),
            )
        except OSError as e:
            raise ProcessSpawnError(spec.argv[0], str(e), spec.prompt_excerpt) from e

        process = self._process
        logger.debug(
            f"Started subprocess pid={process.pid} "
            f"argv={spec.argv[0]} cwd={spec.cwd}"
        )

        try:
            if cancel is not None:
                remove_listener = cancel.add_listener(lambda _reason: self.terminate())

            stderr_task = asyncio.create_task(self._drain_stderr(process))

            if spec.stdin_bytes is not None and process.stdin:
                await self._write_stdin(process, spec.stdin_bytes)

            pending = bytearray()
            assert process.stdout is not None
            while True:
                chunk = await process.stdout.read(self.chunk_size)
                if not chunk:
                    break
                pending.extend(chunk)

                *lines, rest = pending.split(b"\n")
                pending = bytearray(rest)
                for raw_line in lines:
                    event = self._parse_line(raw_line)
                    if event is not None:
                        yield event

                if cancel is not None and cancel.cancelled:
                    break

            trailing_error: StreamSyntaxError | None = None
            if pending.strip() and not (cancel is not None and cancel.cancelled):
                try:
                    event = self._parse_trailing(bytes(pending))
                except StreamSyntaxError as e:
                    trailing_error = e
                else:
                    if event is not None:
                        yield event

            await stderr_task
            await process.wait()
            logger.debug(
                f"Subprocess completed pid={process.pid} "
                f"returncode={process.returncode}"
            )

            if cancel is not None:
                cancel.raise_if_cancelled()
            if process.returncode:
                raise CLIExitError(
                    process.returncode,
                    prompt_excerpt=spec.prompt_excerpt,
                    stderr=self._stderr.tail(),
                )
            if trailing_error is not None:
                raise trailing_error

        finally:
            if remove_listener is not None:
                remove_listener()
            # Shield cleanup so a cancelled consumer still reaps the process
            try:
                await asyncio.shield(self._do_cleanup(stderr_task))
            except asyncio.CancelledError:
                await self._do_cleanup(stderr_task)

    def terminate(self) -> None:
        """Terminate the process group. Safe to call any number of times.

        Sends SIGTERM (CTRL_BREAK_EVENT on Windows) right away and schedules
        SIGKILL after term_timeout if the process is still alive.
        """
        process = self._process
        if self._terminated or process is None or process.returncode is not None:
            return
        self._terminated = True

        logger.debug(f"Terminating subprocess pid={process.pid}")
        try:
            if IS_WINDOWS:
                self._windows_terminate(process)
            else:
                self._posix_signal(process, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={process.pid}")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._kill_handle = loop.call_later(self.term_timeout, self._kill)

    def _kill(self) -> None:
        process = self._process
        self._kill_handle = None
        if process is None or process.returncode is not None:
            return
        logger.debug(f"Force killing subprocess pid={process.pid}")
        try:
            if IS_WINDOWS:
                process.kill()
            else:
                self._posix_signal(process, signal.SIGKILL)
        except ProcessLookupError:
            pass

    def _build_subprocess_kwargs(self, spec: ProcessSpec) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}

        if spec.env is not None:
            kwargs["env"] = dict(spec.env)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    def _parse_line(self, raw_line: bytes) -> Event | None:
        line = raw_line.decode("utf-8", errors="replace").strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping unparseable output line ({e.msg}): {line[:200]}")
            return None
        return self._to_event(data)

    def _parse_trailing(self, raw: bytes) -> Event | None:
        """Parse output left without a newline when stdout closed.

        Raises:
            StreamSyntaxError: If it is not valid JSON. The message starts
                with "Unexpected end of JSON input" when the decoder ran out
                of input, which marks the output as cut off.
        """
        line = raw.decode("utf-8", errors="replace").strip()
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            # An unterminated string reports where the string began, but the
            # decoder still hit the end of the input looking for its close
            if e.pos >= len(e.doc) or e.msg.startswith("Unterminated string"):
                message = f"Unexpected end of JSON input ({e.msg})"
            else:
                message = f"{e.msg} at position {e.pos}"
            raise StreamSyntaxError(message, line=line) from e
        return self._to_event(data)

    @staticmethod
    def _to_event(data: Any) -> Event | None:
        if not isinstance(data, dict):
            logger.debug(f"Dropping non-object output line: {type(data).__name__}")
            return None
        return parse_event(data)

    async def _write_stdin(self, process: asyncio.subprocess.Process, data: bytes) -> None:
        assert process.stdin is not None
        try:
            process.stdin.write(data)
            await process.stdin.drain()
            process.stdin.close()
            await process.stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The exit code will tell the real story
            logger.debug(f"stdin closed early pid={process.pid}: {e}")

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        """Drain stderr to prevent pipe deadlock."""
        if process.stderr is None or self._stderr is None:
            return
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                break
            self._stderr.append(chunk)

    async def _do_cleanup(self, stderr_task: asyncio.Task[None] | None) -> None:
        if stderr_task is not None and not stderr_task.done():
            stderr_task.cancel()
            try:
                await stderr_task
            except asyncio.CancelledError:
                pass

        process = self._process
        if process is not None and process.returncode is None:
            self.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout + 1.0)
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={process.pid}")

        if self._kill_handle is not None and (process is None or process.returncode is not None):
            self._kill_handle.cancel()
            self._kill_handle = None

    @staticmethod
    def _posix_signal(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        """Signal the whole process group, falling back to the process."""
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            raise
        except OSError as e:
            logger.debug(f"killpg failed, falling back to direct signal: {e}")
            process.send_signal(sig)

    @staticmethod
    def _windows_terminate(process: asyncio.subprocess.Process) -> None:
        try:
            # Works because the process was created with CREATE_NEW_PROCESS_GROUP
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)  # type: ignore[attr-defined]
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except OSError as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()
