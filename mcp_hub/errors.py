"""
Defines project-specific exception classes.
"""
from typing import Optional


class HubBaseError(Exception):
    """Base class for all custom exceptions in MCP Hub."""
    pass


class ConfigurationError(HubBaseError):
    """Raised when loading or validating the configuration file fails."""
    pass


class BackendServerError(HubBaseError):
    """
    Raised when connecting to, or listing tools from, a backend MCP
    server fails.
    """

    def __init__(self,
                 message: str,
                 svr_name: Optional[str] = None,
                 orig_exc: Optional[Exception] = None):
        self.svr_name = svr_name
        self.orig_exc = orig_exc

        full_msg = "Backend server error"
        if svr_name:
            full_msg += f" (server: {svr_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)


class InvalidArgumentError(HubBaseError):
    """Raised when a meta-operation is unknown or its arguments are malformed."""
    pass


class ToolNotFoundError(HubBaseError):
    """
    Raised when a tool reference does not resolve, even after a forced
    catalog refresh.
    """

    def __init__(self, name_or_id: str):
        self.name_or_id = name_or_id
        super().__init__(f"Tool not found: {name_or_id}")


class ProviderError(HubBaseError):
    """
    Raised when a backend reports a failed tool call.

    The message is the provider's own error text, unmodified.
    """

    def __init__(self, message: str, tool_id: Optional[str] = None):
        self.tool_id = tool_id
        super().__init__(message)


class CatalogUnavailableError(HubBaseError):
    """
    Raised when the tool catalog cannot be refreshed and there is no
    previous snapshot to fall back to. Retryable.
    """
    pass
