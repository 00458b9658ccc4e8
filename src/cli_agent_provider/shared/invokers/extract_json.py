"""Tolerant JSON extraction from model responses.

Models asked for JSON often wrap it in a markdown fence, a variable
declaration or surrounding prose. extract_json() peels those wrappers off
and hands the rest to json-repair, which accepts comments, trailing commas
and values cut off before their closing brackets.
"""

from __future__ import annotations

import json
import logging
import re

from json_repair import repair_json

__all__ = ["extract_json"]

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_DECLARATION_RE = re.compile(r"^\s*(?:const|let|var)\s+\w+\s*=\s*([\s\S]*)", re.IGNORECASE)


def extract_json(text: str) -> str:
    """Extract JSON from a model response.

    Args:
        text: Raw response text

    Returns:
        The JSON value re-serialised with indent=2, or the original text
        unchanged when no JSON object or array could be recovered
    """
    content = text.strip()

    fence = _FENCE_RE.search(content)
    if fence:
        content = fence.group(1)

    declaration = _DECLARATION_RE.match(content)
    if declaration:
        content = declaration.group(1).strip()
        if content.endswith(";"):
            content = content[:-1]

    starts = [i for i in (content.find("{"), content.find("[")) if i != -1]
    if not starts:
        return text
    content = content[min(starts):]

    value = repair_json(content, return_objects=True)
    # repair_json returns "" when nothing could be recovered
    if not isinstance(value, (dict, list)):
        logger.debug(f"JSON repair returned {type(value).__name__}, keeping original text")
        return text
    return json.dumps(value, indent=2, ensure_ascii=False)
