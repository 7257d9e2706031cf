"""
MCP Hub - a meta-server in front of many MCP servers.

MCP Hub connects to multiple backend MCP servers and exposes four
meta-tools instead of their full tool catalogs: ``discover``, ``inspect``,
``invoke`` and ``orchestrate`` (a sandboxed Python script that chains
tool calls).
"""

from mcp_hub.constants import SERVER_NAME, SERVER_VERSION

__version__ = SERVER_VERSION
__app_name__ = SERVER_NAME

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "__version__",
    "__app_name__",
]
