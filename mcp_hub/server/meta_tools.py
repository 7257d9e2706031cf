"""MCP tool definitions for the four meta-tools the hub exposes."""

from __future__ import annotations

from typing import List

from mcp import types as mcp_types

from mcp_hub.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT
from mcp_hub.server.operations import DISCOVER, INSPECT, INVOKE, ORCHESTRATE

_NAME_PROPERTY = {
    "type": "string",
    "description": (
        "Tool name in friendly form (camelCase, as listed by discover) "
        "OR the namespaced id (serverId__toolName)."
    ),
}

DISCOVER_DEF = mcp_types.Tool(
    name=DISCOVER,
    description=(
        "List available tools from all connected MCP servers. "
        "Results are paginated via limit/offset."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "limit": {
                "type": "number",
                "description": (
                    f"Optional maximum results to return "
                    f"(default: {DEFAULT_LIST_LIMIT}, max: {MAX_LIST_LIMIT})."
                ),
            },
            "offset": {
                "type": "number",
                "description": "Optional zero-based offset for pagination (default: 0).",
            },
        },
    },
)

INSPECT_DEF = mcp_types.Tool(
    name=INSPECT,
    description=(
        "Get a single tool's signature as a Python function stub. "
        "Use this before `invoke` or `orchestrate`."
    ),
    inputSchema={
        "type": "object",
        "properties": {"name": _NAME_PROPERTY},
        "required": ["name"],
    },
)

INVOKE_DEF = mcp_types.Tool(
    name=INVOKE,
    description=(
        "Call a single tool with parameters. "
        "Prefer `inspect` first to confirm parameters."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "name": _NAME_PROPERTY,
            "params": {
                "type": "object",
                "description": "Tool parameters as a JSON object (optional).",
            },
        },
        "required": ["name"],
    },
)

ORCHESTRATE_DEF = mcp_types.Tool(
    name=ORCHESTRATE,
    description=(
        "Execute a Python script to orchestrate multiple tool calls. "
        "Use `await mcp.call_tool(name, params)` inside the script. "
        "IMPORTANT: you MUST explicitly `return` the final value."
    ),
    inputSchema={
        "type": "object",
        "properties": {
            "code": {
                "type": "string",
                "description": (
                    "Python code to execute as the body of an async function. "
                    "Available names: `mcp.call_tool(name, params)`, "
                    "`mcp.log(level, message, fields=None)`, `parallel(...)`, "
                    "`settle(...)`, `console.*` and `print`. Use `await` "
                    "directly; imports are not available. "
                    "You MUST `return` the final value."
                ),
            }
        },
        "required": ["code"],
    },
)

META_TOOLS: List[mcp_types.Tool] = [DISCOVER_DEF, INSPECT_DEF, INVOKE_DEF, ORCHESTRATE_DEF]
