"""Shared fakes and fixtures for the hub tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from mcp import types as mcp_types

from mcp_hub.bridge.catalog import ToolCatalog
from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.bridge.tool_bridge import ToolBridge
from mcp_hub.errors import BackendServerError
from mcp_hub.sandbox.runtime import SandboxRuntime
from mcp_hub.server.meta_server import MetaServer


def text_result(payload: Any, *, is_error: bool = False) -> mcp_types.CallToolResult:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def make_mock_tools() -> List[ToolDescriptor]:
    return [
        ToolDescriptor.from_provider(
            "github",
            "search_repos",
            provider_display_name="GitHub",
            description="Search for GitHub repositories",
            input_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Search query"},
                    "limit": {"type": "number", "description": "Max results"},
                },
                "required": ["query"],
            },
        ),
        ToolDescriptor.from_provider(
            "github",
            "get_user",
            provider_display_name="GitHub",
            description="Get GitHub user profile",
            input_schema={
                "type": "object",
                "properties": {
                    "username": {"type": "string", "description": "GitHub username"},
                },
                "required": ["username"],
            },
        ),
        ToolDescriptor.from_provider(
            "database",
            "query",
            provider_display_name="Database",
            description="Execute a database query",
            input_schema={
                "type": "object",
                "properties": {
                    "sql": {"type": "string", "description": "SQL query to execute"},
                },
                "required": ["sql"],
            },
        ),
    ]


Handler = Callable[[Any], Awaitable[mcp_types.CallToolResult]]


async def _default_response(tool_id: str, params: Any) -> mcp_types.CallToolResult:
    if tool_id == "github__search_repos":
        return text_result({"repos": ["repo1", "repo2"], "query": params})
    if tool_id == "github__get_user":
        return text_result({"username": params.get("username"), "id": 123})
    if tool_id == "database__query":
        return text_result({"rows": [{"id": 1}, {"id": 2}]})
    return text_result({})


async def hang(_params: Any) -> mcp_types.CallToolResult:
    await asyncio.Event().wait()
    raise AssertionError("unreachable")


class FakeProviderRegistry:
    """In-memory provider registry with call recording."""

    def __init__(self, tools: Optional[List[ToolDescriptor]] = None) -> None:
        self.tools: List[ToolDescriptor] = list(make_mock_tools() if tools is None else tools)
        self.handlers: Dict[str, Handler] = {}
        self.list_calls = 0
        self.calls: List[Tuple[str, Any, Optional[str]]] = []
        self.fail_listing = False
        self.abort = MagicMock(return_value=True)

    async def list_all(self) -> List[ToolDescriptor]:
        self.list_calls += 1
        if self.fail_listing:
            raise BackendServerError("listing failed")
        return list(self.tools)

    async def call_by_id(
        self, tool_id: str, params: Any, call_id: Optional[str] = None
    ) -> mcp_types.CallToolResult:
        self.calls.append((tool_id, params, call_id))
        handler = self.handlers.get(tool_id)
        if handler is not None:
            return await handler(params)
        return await _default_response(tool_id, params)

    def call_id_for(self, tool_id: str) -> Optional[str]:
        for called_id, _params, call_id in self.calls:
            if called_id == tool_id:
                return call_id
        return None


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def registry() -> FakeProviderRegistry:
    return FakeProviderRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog(registry: FakeProviderRegistry, clock: FakeClock) -> ToolCatalog:
    return ToolCatalog(registry, ttl=60.0, clock=clock)


@pytest.fixture
def bridge(catalog: ToolCatalog, registry: FakeProviderRegistry) -> ToolBridge:
    return ToolBridge(catalog, registry)


@pytest.fixture
def runtime(bridge: ToolBridge, registry: FakeProviderRegistry) -> SandboxRuntime:
    return SandboxRuntime(bridge, registry.abort, default_deadline_ms=5000)


@pytest.fixture
def meta_server(
    catalog: ToolCatalog, bridge: ToolBridge, runtime: SandboxRuntime
) -> MetaServer:
    return MetaServer(catalog, bridge, runtime)
