"""Caller-facing side of the hub: the meta-tools and their MCP transport."""

from mcp_hub.server.meta_server import MetaResult, MetaServer

__all__ = ["MetaResult", "MetaServer"]
