"""Pydantic configuration models for MCP Hub."""

from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from mcp_hub.constants import (
    DEFAULT_EXEC_TIMEOUT_MS,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_LOGS,
    TOOL_ID_SEPARATOR,
    TOOLS_CACHE_TTL,
)

# ── Backends ─────────────────────────────────────────────────────────────


class TimeoutConfig(BaseModel):
    """Per-backend overrides, in seconds. Unset values use the hub defaults."""

    init: Optional[float] = Field(default=None, ge=0, description="MCP initialize handshake.")
    cap_fetch: Optional[float] = Field(default=None, ge=0, description="tools/list request.")
    sse_startup: Optional[float] = Field(
        default=None,
        ge=0,
        description="Delay after spawning a local SSE server before connecting.",
    )
    startup: Optional[float] = Field(
        default=None,
        gt=0,
        description="Whole connect sequence, spawn included.",
    )


def _non_blank(value: Optional[str], what: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError(f"{what} must not be blank")
    return value


class _BackendBase(BaseModel):
    display_name: Optional[str] = Field(
        default=None,
        description="Human-friendly name; friendly tool names are derived from it.",
    )
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)


class StdioBackendConfig(_BackendBase):
    """A backend spawned as a child process and spoken to over stdin/stdout."""

    type: Literal["stdio"]
    command: str
    args: List[str] = Field(default_factory=list)
    env: Optional[Dict[str, str]] = None

    @field_validator("command")
    @classmethod
    def _check_command(cls, v: str) -> str:
        return _non_blank(v, "command")


class _HttpBackendBase(_BackendBase):
    url: str
    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Sent with every request; ${ENV_VAR} placeholders are expanded.",
    )

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL '{v}' must start with http:// or https://")
        return v


class SseBackendConfig(_HttpBackendBase):
    """A backend reached over SSE, optionally started locally via ``command``."""

    type: Literal["sse"]
    command: Optional[str] = None
    args: List[str] = Field(default_factory=list)
    env: Optional[Dict[str, str]] = None

    @field_validator("command")
    @classmethod
    def _check_command(cls, v: Optional[str]) -> Optional[str]:
        return _non_blank(v, "command")


class StreamableHttpBackendConfig(_HttpBackendBase):
    """A backend reached over MCP streamable HTTP."""

    type: Literal["streamable-http"]


BackendConfig = Annotated[
    Union[StdioBackendConfig, SseBackendConfig, StreamableHttpBackendConfig],
    Field(discriminator="type"),
]


# ── Server and hub settings ──────────────────────────────────────────────


class ServerSettings(BaseModel):
    """How callers reach the hub."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    transport: Literal["sse", "stdio"] = "sse"


class HubSettings(BaseModel):
    """Catalog and orchestration tuning."""

    catalog_ttl: float = Field(
        default=TOOLS_CACHE_TTL,
        ge=0,
        description="Seconds a tool catalog snapshot is served before refreshing.",
    )
    exec_timeout_ms: int = Field(
        default=DEFAULT_EXEC_TIMEOUT_MS,
        gt=0,
        description="Deadline for one orchestration script, in milliseconds.",
    )
    max_logs: int = Field(
        default=MAX_LOGS,
        ge=1,
        description="Captured log lines kept per script run (oldest dropped).",
    )
    call_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional timeout in seconds for a single backend tool call.",
    )


# ── Top-level config ────────────────────────────────────────────────────


class HubConfig(BaseModel):
    """The whole hub config file.

    Backend keys become tool-id prefixes (``<backend>__<tool>``), so they
    must be trimmed, non-empty strings without the separator::

        backends:
          github: {type: stdio, command: npx, args: [...]}
    """

    version: str = "1"
    server: ServerSettings = Field(default_factory=ServerSettings)
    hub: HubSettings = Field(default_factory=HubSettings)
    backends: Dict[str, BackendConfig] = Field(default_factory=dict)

    @field_validator("backends")
    @classmethod
    def _validate_backend_names(cls, v: Dict[str, BackendConfig]) -> Dict[str, BackendConfig]:
        for name in v:
            stripped = name.strip()
            if not stripped:
                raise ValueError("Backend name must be a non-empty string")
            if stripped != name:
                raise ValueError(f"Backend name '{name}' has leading/trailing whitespace")
            if TOOL_ID_SEPARATOR in name:
                raise ValueError(
                    f"Backend name '{name}' must not contain '{TOOL_ID_SEPARATOR}'"
                )
        return v
