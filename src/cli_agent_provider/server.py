"""CLI Agent Provider MCP server.

Exposes one tool, `generate`, that runs a prompt through CLILanguageModel.

Environment variables: see config.py (CAP_*).

Usage:
    uvx cli-agent-provider
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import anyio
from mcp.server import Server
from mcp.types import TextContent, Tool

from .config import Config, get_config
from .provider import CLILanguageModel
from .shared.invokers.types import CallOptions, GenerateResult

__all__ = [
    "GENERATE_TOOL",
    "create_server",
    "format_error_response",
    "format_result",
]

logger = logging.getLogger(__name__)

GENERATE_TOOL = Tool(
    name="generate",
    description=(
        "Run a prompt through the CLI agent and return its answer. "
        "Pass the returned session_id to continue the same conversation. "
        "Set structured=true to get the answer as extracted JSON."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": "Task instruction for the agent.",
            },
            "structured": {
                "type": "boolean",
                "default": False,
                "description": "Extract and return JSON from the answer.",
            },
            "session_id": {
                "type": "string",
                "default": "",
                "description": "Resume this session instead of the latest one.",
            },
        },
        "required": ["prompt"],
    },
)


def format_result(result: GenerateResult, debug: bool = False) -> list[TextContent]:
    """Answer text followed by a JSON footer."""
    footer: dict[str, Any] = {
        "session_id": result.session_id or "",
        "finish_reason": result.finish_reason.value,
        "usage": result.usage.model_dump(),
    }
    if debug:
        footer["warnings"] = [w.to_dict() for w in result.warnings]
        footer["tool_calls"] = len(result.tool_calls)
        for key in ("cost_usd", "duration_ms"):
            if key in result.metadata:
                footer[key] = result.metadata[key]
    text = f"{result.text}\n\n---\n{json.dumps(footer, ensure_ascii=False)}"
    return [TextContent(type="text", text=text)]


def format_error_response(error: str) -> list[TextContent]:
    return [TextContent(type="text", text=f"Error: {error}")]


def create_server(
    model: CLILanguageModel | None = None,
    config: Config | None = None,
) -> Server:
    """Create the MCP server.

    Args:
        model: Model to serve (default: built from config)
        config: Configuration (default: get_config())
    """
    config = config or get_config()
    if model is None:
        model = CLILanguageModel(config.provider_settings())
    server = Server("cli-agent-provider")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        logger.debug("[MCP] list_tools called")
        return [GENERATE_TOOL]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        prompt = arguments.get("prompt", "")
        logger.debug(
            f"[MCP] call_tool request: tool={name} "
            f"prompt={prompt[:100] if isinstance(prompt, str) else prompt!r}"
        )

        if name != GENERATE_TOOL.name:
            return format_error_response(f"Unknown tool '{name}'")
        if not isinstance(prompt, str) or not prompt.strip():
            return format_error_response("'prompt' must be a non-empty string")

        options = CallOptions(
            structured=bool(arguments.get("structured", False)),
            session_id=arguments.get("session_id") or None,
        )

        try:
            result = await model.generate(prompt, options)
        except (anyio.get_cancelled_exc_class(), asyncio.CancelledError):
            # MCP request cancellation arrives through the anyio task group
            logger.info(f"Tool '{name}' cancelled")
            raise
        except Exception as e:
            logger.error(f"Tool '{name}' failed: type={type(e).__name__}, msg={e}")
            return format_error_response(f"{type(e).__name__}: {e}")

        return format_result(result, debug=config.debug)

    return server
