"""Language model facade over the external program.

cli-agent-provider v0.1.0

CLILanguageModel wires the pieces together for each call:

    pool.acquire(signal) -> Transport.stream(spec) -> EventTranslator
                                                   -> ResultAggregator

Every call runs under a derived CancelSignal linking the caller's signal
and a timeout timer, so a timeout travels the same path as a user abort.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from .errors import (
    AbortedWaitingError,
    AuthenticationError,
    CLIExitError,
    ProtocolError,
    StreamSyntaxError,
    looks_like_auth_failure,
)
from .runtime.cancel import CancelSignal
from .runtime.pool import ProcessPool
from .runtime.transport import ProcessSpec, Transport, make_excerpt
from .shared.invokers.aggregator import ResultAggregator
from .shared.invokers.command import build_command, build_env
from .shared.invokers.messages import convert_messages
from .shared.invokers.translator import EventTranslator
from .shared.invokers.types import SAMPLING_SETTINGS, CallOptions, CallWarning, GenerateResult
from .shared.invokers.validation import (
    ProviderSettings,
    validate_model_id,
    validate_prompt,
    validate_session_id,
    validate_settings,
)
from .shared.parsers.parts import ErrorPart, OutputPart

__all__ = [
    "CLILanguageModel",
    "Prompt",
]

logger = logging.getLogger(__name__)

# A prompt string, or a message list for convert_messages()
Prompt = str | Sequence[Mapping[str, Any]]


@dataclass
class _Call:
    """Everything prepared for one call before a slot is acquired."""

    prompt: str
    spec: ProcessSpec
    signal: CancelSignal
    structured: bool
    session_id: str | None
    warnings: list[CallWarning]


class CLILanguageModel:
    """Streaming and non-streaming generation through the external program.

    Example:
        model = CLILanguageModel({"model": "sonnet", "max_concurrent_processes": 2})
        result = await model.generate("Summarise README.md")
        async for part in model.stream("Explain this repo"):
            ...

    Attributes:
        settings: Validated settings
        model_id: Model id passed with --model
        pool: Process pool shared by every call of this model
        session_id: Latest session id, resumed by the next call
    """

    provider = "cli-agent"

    def __init__(
        self,
        settings: ProviderSettings | Mapping[str, Any] | None = None,
        *,
        pool: ProcessPool | None = None,
        term_timeout: float | None = None,
    ) -> None:
        """Create a model.

        Args:
            settings: Provider settings (validated here)
            pool: Share a pool between models (default: a new one sized by
                settings.max_concurrent_processes)
            term_timeout: Seconds between SIGTERM and SIGKILL on cancel

        Raises:
            pydantic.ValidationError: If settings are invalid
            ValueError: If the model id is empty
        """
        self.settings, self._settings_warnings = validate_settings(settings)
        self.model_id = self.settings.model
        self._model_warning = validate_model_id(self.model_id)
        if self._model_warning:
            logger.warning(f"Model: {self._model_warning}")
        for warning in self._settings_warnings:
            logger.warning(f"Settings: {warning}")

        self.pool = pool or ProcessPool(self.settings.max_concurrent_processes)
        self.session_id: str | None = None
        self._term_timeout = term_timeout

    async def generate(
        self,
        prompt: Prompt,
        options: CallOptions | None = None,
        cancel: CancelSignal | None = None,
    ) -> GenerateResult:
        """Run one call and return the aggregated result.

        Args:
            prompt: Prompt text or a message list
            options: Per-call options
            cancel: Caller's cancel signal

        Returns:
            GenerateResult

        Raises:
            BaseException: The cancel reason (AbortError, CLITimeoutError or
                whatever the caller cancelled with) when cancelled
            AuthenticationError: When the program is not logged in
            CLIProviderError: Other typed failures
        """
        call = self._prepare(prompt, options or CallOptions(), cancel)
        aggregator = ResultAggregator(
            structured=call.structured,
            session_id=call.session_id,
            model_id=self.model_id,
            warnings=call.warnings,
        )
        try:
            with await self.pool.acquire(call.signal):
                transport = self._transport()
                async with aclosing(transport.stream(call.spec, cancel=call.signal)) as events:
                    try:
                        async for event in events:
                            aggregator.process(event)
                    except StreamSyntaxError as e:
                        if not aggregator.recover_truncation(e):
                            raise
            return aggregator.get_result()
        except Exception as e:
            mapped = self._map_error(e, call)
            if mapped is e:
                raise
            raise mapped from e
        finally:
            call.signal.close()
            self._store_session(aggregator.translator.reported_session_id)

    async def stream(
        self,
        prompt: Prompt,
        options: CallOptions | None = None,
        cancel: CancelSignal | None = None,
    ) -> AsyncIterator[OutputPart]:
        """Run one call and yield output parts as they arrive.

        The stream ends with exactly one Finish or ErrorPart. Failures are
        delivered as an ErrorPart, never raised.

        Args:
            prompt: Prompt text or a message list
            options: Per-call options
            cancel: Caller's cancel signal

        Yields:
            OutputPart
        """
        call = self._prepare(prompt, options or CallOptions(), cancel)
        translator = EventTranslator(
            structured=call.structured,
            session_id=call.session_id,
            model_id=self.model_id,
            warnings=call.warnings,
        )
        try:
            async with aclosing(self._stream_parts(call, translator)) as parts:
                async for part in parts:
                    yield part
        except Exception as e:
            error = self._map_error(e, call)
            logger.debug(f"Stream failed: {type(error).__name__}: {error}")
            yield ErrorPart(error=error)
        finally:
            call.signal.close()
            self._store_session(translator.reported_session_id)

    async def _stream_parts(
        self,
        call: _Call,
        translator: EventTranslator,
    ) -> AsyncIterator[OutputPart]:
        with await self.pool.acquire(call.signal):
            transport = self._transport()
            async with aclosing(transport.stream(call.spec, cancel=call.signal)) as events:
                try:
                    async for event in events:
                        for part in translator.process(event):
                            yield part
                except StreamSyntaxError as e:
                    recovered = translator.recover_truncation(e)
                    if recovered is None:
                        raise
                    for part in recovered:
                        yield part
                    return
            for part in translator.finish():
                yield part

    # =========================================================================
    # Helpers
    # =========================================================================

    def _transport(self) -> Transport:
        if self._term_timeout is None:
            return Transport()
        return Transport(term_timeout=self._term_timeout)

    def _prepare(
        self,
        prompt: Prompt,
        options: CallOptions,
        cancel: CancelSignal | None,
    ) -> _Call:
        if isinstance(prompt, str):
            text, system_prompt = prompt, None
        else:
            text, system_prompt = convert_messages(prompt)

        settings = self.settings
        if system_prompt:
            # A system message in the conversation overrides the configured one
            settings = settings.model_copy(
                update={"custom_system_prompt": system_prompt, "append_system_prompt": None}
            )

        session_id = options.session_id or self.session_id
        excerpt = make_excerpt(text)
        spec = ProcessSpec(
            argv=build_command(settings, session_id),
            cwd=settings.cwd,
            env=build_env(settings),
            stdin_bytes=text.encode("utf-8"),
            prompt_excerpt=excerpt,
        )
        signal = CancelSignal.derive(
            cancel,
            timeout_ms=options.timeout_ms or settings.timeout_ms,
            prompt_excerpt=excerpt,
        )
        return _Call(
            prompt=text,
            spec=spec,
            signal=signal,
            structured=options.structured,
            session_id=session_id,
            warnings=self._collect_warnings(options, text),
        )

    def _collect_warnings(self, options: CallOptions, prompt: str) -> list[CallWarning]:
        warnings: list[CallWarning] = []

        for setting in SAMPLING_SETTINGS:
            value = getattr(options, setting)
            if value is None or (setting == "stop_sequences" and not value):
                continue
            warnings.append(
                CallWarning(
                    type="unsupported-setting",
                    setting=setting,
                    message=f"The CLI does not support the {setting} parameter. It will be ignored.",
                )
            )

        if self._model_warning:
            warnings.append(CallWarning.other(self._model_warning))
        warnings.extend(CallWarning.other(w) for w in self._settings_warnings)

        prompt_warning = validate_prompt(prompt)
        if prompt_warning:
            warnings.append(CallWarning.other(prompt_warning))

        session_warning = validate_session_id(options.session_id)
        if session_warning:
            warnings.append(CallWarning.other(session_warning))

        return warnings

    def _map_error(self, error: Exception, call: _Call) -> BaseException:
        """Map a failure to what the caller should see."""
        signal = call.signal
        if signal.cancelled and signal.reason is not None:
            # Whatever broke after cancellation, the cause is the cancellation
            return signal.reason
        if isinstance(error, AbortedWaitingError) and error.reason is not None:
            return error.reason

        if isinstance(error, CLIExitError):
            if looks_like_auth_failure(str(error), error.exit_code):
                return AuthenticationError(error.stderr or str(error))
        elif isinstance(error, ProtocolError):
            if looks_like_auth_failure(str(error)):
                return AuthenticationError(str(error))

        logger.debug(f"Call failed for prompt {call.spec.prompt_excerpt[:50]!r}: {error}")
        return error

    def _store_session(self, session_id: str | None) -> None:
        if not session_id or session_id == self.session_id:
            return
        warning = validate_session_id(session_id)
        if warning:
            logger.warning(f"Session: {warning}")
        self.session_id = session_id

    def __repr__(self) -> str:
        return f"CLILanguageModel(model_id={self.model_id!r}, pool={self.pool!r})"
