#!/usr/bin/env python3
"""Fake agent CLI for integration testing.

Speaks the stream-json protocol: one JSON event per stdout line. The
scenario is selected with the FAKE_CLI_SCENARIO environment variable so the
command line built by the provider is accepted unchanged.

Scenarios:
    text        system init, "Hello" + ", world!", result (default)
    echo        echoes the stdin prompt and argv as text
    tools       tool_use -> tool_result -> text -> result
    structured  JSON split across two text chunks inside a fence
    error_event explicit error event
    auth        "not logged in" on stderr, exit code 1
    exit        stderr lines, exit code FAKE_CLI_EXIT_CODE (default 3)
    truncated   long text, then stdout ends in the middle of a JSON line
    garbage     an unparseable line between valid events
    no_result   text but no result event
    slow        one text chunk every FAKE_CLI_INTERVAL seconds for
                FAKE_CLI_DURATION seconds; exits on SIGTERM

Usage:
    FAKE_CLI_SCENARIO=tools python fake_cli.py -p --output-format stream-json
"""

from __future__ import annotations

import json
import os
import signal
import sys
import time
from typing import NoReturn

SESSION_ID = os.environ.get("FAKE_CLI_SESSION_ID", "fake-session-123")
MODEL = "fake-model-1.0"


def emit(data: dict) -> None:
    """Emit one JSONL event to stdout."""
    print(json.dumps(data, ensure_ascii=False), flush=True)


def system_init() -> None:
    emit({"type": "system", "subtype": "init", "session_id": SESSION_ID, "model": MODEL, "tools": []})


def assistant_text(text: str) -> None:
    emit({
        "type": "assistant",
        "message": {"role": "assistant", "content": [{"type": "text", "text": text}]},
        "session_id": SESSION_ID,
    })


def result(subtype: str = "success", input_tokens: int = 10, output_tokens: int = 5) -> None:
    emit({
        "type": "result",
        "subtype": subtype,
        "is_error": False,
        "duration_ms": 42,
        "total_cost_usd": 0.001,
        "session_id": SESSION_ID,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    })


def read_prompt() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read()


def on_term(signum: int, frame) -> NoReturn:
    sys.exit(128 + signum)


def main() -> NoReturn:
    signal.signal(signal.SIGTERM, on_term)
    scenario = os.environ.get("FAKE_CLI_SCENARIO", "text")
    prompt = read_prompt()

    if scenario == "text":
        system_init()
        assistant_text("Hello")
        assistant_text(", world!")
        result()

    elif scenario == "echo":
        system_init()
        assistant_text(json.dumps({"prompt": prompt, "argv": sys.argv[1:]}))
        result()

    elif scenario == "tools":
        system_init()
        emit({
            "type": "assistant",
            "message": {"content": [
                {"type": "tool_use", "id": "toolu_1", "name": "Read", "input": {"file_path": "README.md"}},
            ]},
        })
        emit({
            "type": "user",
            "message": {"content": [
                {"type": "tool_result", "tool_use_id": "toolu_1", "content": "# Title", "is_error": False},
            ]},
        })
        assistant_text("The README has a title.")
        result()

    elif scenario == "structured":
        system_init()
        assistant_text('```json\n{"a": 1')
        assistant_text(', "b": 2}\n```')
        result()

    elif scenario == "error_event":
        system_init()
        emit({"type": "error", "error": {"message": "Rate limit exceeded", "code": "rate_limit"}})

    elif scenario == "auth":
        print("Error: Not logged in. Please run `claude login`.", file=sys.stderr, flush=True)
        sys.exit(1)

    elif scenario == "exit":
        for i in range(8):
            print(f"stderr line {i}", file=sys.stderr, flush=True)
        sys.exit(int(os.environ.get("FAKE_CLI_EXIT_CODE", "3")))

    elif scenario == "truncated":
        system_init()
        assistant_text("x" * 600)
        sys.stdout.write('{"type": "assistant", "message": {"content": [{"type": "text", "text": "cut')
        sys.stdout.flush()

    elif scenario == "garbage":
        system_init()
        print("this is not json", flush=True)
        assistant_text("ok")
        result()

    elif scenario == "no_result":
        system_init()
        assistant_text("partial answer")

    elif scenario == "slow":
        duration = float(os.environ.get("FAKE_CLI_DURATION", "10"))
        interval = float(os.environ.get("FAKE_CLI_INTERVAL", "0.1"))
        system_init()
        start = time.time()
        step = 0
        while time.time() - start < duration:
            step += 1
            assistant_text(f"step {step} ")
            time.sleep(interval)
        result()

    else:
        print(f"unknown scenario: {scenario}", file=sys.stderr, flush=True)
        sys.exit(2)

    sys.exit(0)


if __name__ == "__main__":
    main()
