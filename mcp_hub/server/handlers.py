"""MCP handler functions - registered on the MCP server instance."""

import logging
from typing import Any, Dict, List, Optional

from mcp import types as mcp_types
from mcp.server import Server as McpServer

from mcp_hub.errors import HubBaseError
from mcp_hub.server.meta_server import MetaServer
from mcp_hub.server.meta_tools import META_TOOLS

logger = logging.getLogger(__name__)


class MetaToolError(Exception):
    """Carries the text of a failed meta-tool call back to the caller.

    The low-level MCP server turns an exception raised by a ``call_tool``
    handler into a result with ``isError`` set and the exception text as
    content.
    """


async def call_meta_tool(
    meta_server: Optional[MetaServer], name: str, arguments: Optional[Dict[str, Any]]
) -> List[mcp_types.TextContent]:
    if meta_server is None:
        raise MetaToolError("Hub is not initialized")

    try:
        result = await meta_server.handle(name, arguments)
    except HubBaseError as e_hub:
        logger.info("Meta-tool '%s' failed: %s", name, e_hub)
        raise MetaToolError(str(e_hub)) from e_hub
    except Exception as e_exc:
        logger.exception("Error executing tool %s", name)
        raise MetaToolError(f"Error executing tool {name}: {e_exc}") from e_exc

    if result.is_error:
        raise MetaToolError(result.text)
    return [mcp_types.TextContent(type="text", text=result.text)]


def register_handlers(mcp_server: McpServer) -> None:
    """Register the MCP protocol handlers on the server instance.

    The handlers read ``mcp_server.meta_server``, which the application
    lifespan sets once the backends are connected.
    """

    @mcp_server.list_tools()
    async def handle_list_tools() -> List[mcp_types.Tool]:
        logger.debug("Handling listTools request...")
        return list(META_TOOLS)

    @mcp_server.call_tool(validate_input=False)
    async def handle_call_tool(
        name: str, arguments: Optional[Dict[str, Any]]
    ) -> List[mcp_types.TextContent]:
        logger.debug("Handling callTool: name='%s'", name)
        return await call_meta_tool(getattr(mcp_server, "meta_server", None), name, arguments)
