"""Shared constants for MCP Hub."""

SERVER_NAME = "MCP Hub"
SERVER_VERSION = "0.1.0"

# Network defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9100
DEFAULT_TRANSPORT = "sse"

# SSE transport paths
SSE_PATH = "/sse"
POST_MESSAGES_PATH = "/messages/"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Backend connection timeouts
SSE_LOCAL_START_DELAY = 5  # seconds to wait for local SSE server startup
MCP_INIT_TIMEOUT = 15  # seconds for MCP session initialization
CAP_FETCH_TIMEOUT = 10.0  # seconds for a backend tool list fetch
STARTUP_TIMEOUT = 60.0  # seconds for spawn + init of one backend

# Tool ids are "<provider_id>__<local_name>"; friendly names never contain it.
TOOL_ID_SEPARATOR = "__"

# Catalog
TOOLS_CACHE_TTL = 60.0  # seconds

# Discovery paging
DEFAULT_LIST_LIMIT = 30
MAX_LIST_LIMIT = 100
DESCRIPTION_MAX_WORDS = 50

# Orchestration sandbox
DEFAULT_EXEC_TIMEOUT_MS = 60_000
MAX_LOGS = 1000
