"""Hub lifecycle management."""

from mcp_hub.runtime.models import ServiceState
from mcp_hub.runtime.service import HubService

__all__ = ["HubService", "ServiceState"]
