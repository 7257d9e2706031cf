"""Backend connections, the aggregated tool catalog and the tool call path."""

from mcp_hub.bridge.catalog import ToolCatalog
from mcp_hub.bridge.client_manager import ClientManager
from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.bridge.provider_registry import ProviderRegistry, SessionProviderRegistry
from mcp_hub.bridge.tool_bridge import ToolBridge

__all__ = [
    "ClientManager",
    "ProviderRegistry",
    "SessionProviderRegistry",
    "ToolBridge",
    "ToolCatalog",
    "ToolDescriptor",
]
