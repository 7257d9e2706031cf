"""Configuration loading and validation for MCP Hub."""

from mcp_hub.config.loader import (
    backends_to_conf,
    expand_env_vars,
    find_config_file,
    load_hub_config,
    parse_hub_config,
)
from mcp_hub.config.schema import (
    BackendConfig,
    HubConfig,
    HubSettings,
    ServerSettings,
    SseBackendConfig,
    StdioBackendConfig,
    StreamableHttpBackendConfig,
    TimeoutConfig,
)

__all__ = [
    "BackendConfig",
    "HubConfig",
    "HubSettings",
    "ServerSettings",
    "SseBackendConfig",
    "StdioBackendConfig",
    "StreamableHttpBackendConfig",
    "TimeoutConfig",
    "backends_to_conf",
    "expand_env_vars",
    "find_config_file",
    "load_hub_config",
    "parse_hub_config",
]
