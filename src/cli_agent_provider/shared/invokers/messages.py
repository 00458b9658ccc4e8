"""Message list -> prompt text.

The external program takes one prompt on stdin, so a conversation is
flattened into text:

    Human: first question

    Assistant: first answer

    Tool Result (search): {"hits": 3}

    Human: follow-up

A single message is passed through without the "Human:" prefix. System
messages are lifted out and returned separately.

Message shape (plain dicts):
    {"role": "system" | "user" | "assistant" | "tool", "content": str | list[part]}
    part: {"type": "text", "text": ...} | {"type": "image", ...}
          | {"type": "tool-call", ...} | {"type": "tool-result", "tool_name": ..., "result": ...}
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

__all__ = ["convert_messages"]

logger = logging.getLogger(__name__)


def _parts_of_type(content: list[Any], part_type: str) -> list[Mapping[str, Any]]:
    return [p for p in content if isinstance(p, Mapping) and p.get("type") == part_type]


def _text_of(content: list[Any]) -> str:
    return "\n".join(str(p.get("text", "")) for p in _parts_of_type(content, "text"))


def convert_messages(messages: Iterable[Mapping[str, Any]]) -> tuple[str, str | None]:
    """Flatten a message list into (prompt, system_prompt).

    Args:
        messages: Messages in conversation order

    Returns:
        Prompt text and the last system message (None if there was none)
    """
    turns: list[str] = []
    system_prompt: str | None = None

    for message in messages:
        role = message.get("role")
        content = message.get("content", "")

        if role == "system":
            system_prompt = content if isinstance(content, str) else _text_of(content)

        elif role == "user":
            if isinstance(content, str):
                turns.append(content)
                continue
            text = _text_of(content)
            if text:
                turns.append(text)
            if _parts_of_type(content, "image"):
                logger.warning("The CLI does not support image inputs. Images will be ignored.")

        elif role == "assistant":
            if isinstance(content, str):
                turns.append(f"Assistant: {content}")
                continue
            text = _text_of(content)
            if text:
                turns.append(f"Assistant: {text}")
            if _parts_of_type(content, "tool-call"):
                turns.append("Assistant: [Tool calls made]")

        elif role == "tool":
            for result in _parts_of_type(content if isinstance(content, list) else [], "tool-result"):
                payload = json.dumps(result.get("result"), ensure_ascii=False, default=str)
                turns.append(f"Tool Result ({result.get('tool_name', 'unknown-tool')}): {payload}")

        else:
            logger.debug(f"Ignoring message with role {role!r}")

    if not turns:
        return "", system_prompt
    if len(turns) == 1:
        return turns[0], system_prompt

    formatted = [
        turn if turn.startswith(("Assistant:", "Tool Result")) else f"Human: {turn}"
        for turn in turns
    ]
    return "\n\n".join(formatted), system_prompt
