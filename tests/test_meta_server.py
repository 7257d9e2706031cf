"""End-to-end tests for the four meta-operations and their MCP handlers."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from mcp_hub.errors import InvalidArgumentError, ToolNotFoundError
from mcp_hub.server.handlers import MetaToolError, call_meta_tool
from mcp_hub.server.meta_server import MetaResult, MetaServer
from mcp_hub.server.meta_tools import META_TOOLS
from mcp_hub.server.operations import DiscoverRequest, parse_request

from conftest import FakeProviderRegistry, hang

# ── Argument parsing ─────────────────────────────────────────────────────


class TestParseRequest:
    @pytest.mark.parametrize(
        "args, limit, offset",
        [
            ({}, 30, 0),
            ({"limit": 1000, "offset": -5}, 100, 0),
            ({"limit": 0}, 1, 0),
            ({"limit": -3}, 1, 0),
            ({"limit": 2.7, "offset": 1.9}, 2, 1),
            ({"limit": "abc", "offset": "x"}, 30, 0),
            ({"limit": True}, 30, 0),
            ({"limit": float("nan"), "offset": float("inf")}, 30, 0),
            ({"limit": None}, 30, 0),
        ],
    )
    def test_discover_clamping(self, args, limit: int, offset: int) -> None:
        request = parse_request("discover", args)
        assert isinstance(request, DiscoverRequest)
        assert (request.limit, request.offset) == (limit, offset)

    def test_unknown_operation(self) -> None:
        with pytest.raises(InvalidArgumentError, match="Unknown tool: bogus"):
            parse_request("bogus", {})

    @pytest.mark.parametrize("args", [None, {}, {"name": 5}, {"name": ""}])
    def test_name_required(self, args) -> None:
        with pytest.raises(
            InvalidArgumentError, match="name parameter is required and must be a string"
        ):
            parse_request("inspect", args)

    def test_code_required(self) -> None:
        with pytest.raises(
            InvalidArgumentError, match="code parameter is required and must be a string"
        ):
            parse_request("orchestrate", {"code": 42})

    def test_params_must_be_object(self) -> None:
        with pytest.raises(InvalidArgumentError, match="params parameter must be an object"):
            parse_request("invoke", {"name": "databaseQuery", "params": "select 1"})

    def test_invoke_params_optional(self) -> None:
        request = parse_request("invoke", {"name": "databaseQuery"})
        assert request.params is None


# ── discover ─────────────────────────────────────────────────────────────


class TestDiscover:
    @pytest.mark.anyio
    async def test_lists_all_tools(self, meta_server: MetaServer) -> None:
        result = await meta_server.handle("discover", {})
        assert not result.is_error
        assert result.text.startswith("Total: 3 tools\nOffset: 0\nLimit: 30\nReturned: 3\n")
        assert "- githubSearchRepos (github__search_repos): Search for GitHub repositories" in (
            result.text
        )

    @pytest.mark.anyio
    async def test_pagination(self, meta_server: MetaServer) -> None:
        page = await meta_server.discover(limit=1, offset=1)
        assert [t.id for t in page.tools] == ["github__get_user"]
        assert (page.total, page.limit, page.offset) == (3, 1, 1)

    @pytest.mark.anyio
    async def test_offset_past_end(self, meta_server: MetaServer) -> None:
        result = await meta_server.handle("discover", {"offset": 10})
        assert result.text.endswith("No tools available")

    @pytest.mark.anyio
    async def test_served_from_cache(
        self, meta_server: MetaServer, registry: FakeProviderRegistry
    ) -> None:
        await meta_server.handle("discover", {})
        await meta_server.handle("discover", {"limit": 1})
        assert registry.list_calls == 1

    @pytest.mark.anyio
    async def test_invalidate_triggers_refresh(
        self, meta_server: MetaServer, registry: FakeProviderRegistry
    ) -> None:
        await meta_server.handle("discover", {})
        meta_server.invalidate()
        await meta_server.handle("discover", {})
        assert registry.list_calls == 2

    @pytest.mark.parametrize(
        "op, arguments",
        [
            ("invoke", {"name": "databaseQuery", "params": {"sql": "x"}}),
            (
                "orchestrate",
                {"code": 'return await mcp.call_tool("databaseQuery", {"sql": "x"})'},
            ),
        ],
    )
    @pytest.mark.anyio
    async def test_invalidate_rebuilds_once_for_calls(
        self,
        meta_server: MetaServer,
        registry: FakeProviderRegistry,
        op: str,
        arguments: dict,
    ) -> None:
        await meta_server.handle("discover", {})
        meta_server.invalidate()
        result = await meta_server.handle(op, arguments)
        assert not result.is_error
        assert registry.list_calls == 2


# ── inspect ──────────────────────────────────────────────────────────────


class TestInspect:
    @pytest.mark.anyio
    async def test_stub_for_friendly_name(self, meta_server: MetaServer) -> None:
        result = await meta_server.handle("inspect", {"name": "githubSearchRepos"})
        assert result.text.splitlines()[0] == (
            "def githubSearchRepos(*, query: str, limit: float = None) -> Any:"
        )
        assert "query (str): Search query" in result.text

    @pytest.mark.anyio
    async def test_stub_for_raw_id_uses_friendly_name(self, meta_server: MetaServer) -> None:
        text = await meta_server.inspect("database__query")
        assert text.startswith("def databaseQuery(*, sql: str) -> Any:")

    @pytest.mark.anyio
    async def test_unknown_tool(self, meta_server: MetaServer) -> None:
        with pytest.raises(ToolNotFoundError, match="Tool not found: nonexistentTool"):
            await meta_server.handle("inspect", {"name": "nonexistentTool"})


# ── invoke ───────────────────────────────────────────────────────────────


class TestInvoke:
    @pytest.mark.anyio
    async def test_result_rendered_as_json(
        self, meta_server: MetaServer, registry: FakeProviderRegistry
    ) -> None:
        result = await meta_server.handle(
            "invoke", {"name": "githubGetUser", "params": {"username": "octocat"}}
        )
        assert json.loads(result.text) == {"username": "octocat", "id": 123}
        assert registry.calls == [("github__get_user", {"username": "octocat"}, None)]

    @pytest.mark.anyio
    async def test_missing_params_sent_as_empty_object(
        self, meta_server: MetaServer, registry: FakeProviderRegistry
    ) -> None:
        await meta_server.handle("invoke", {"name": "database__query"})
        assert registry.calls[0][1] == {}

    @pytest.mark.anyio
    async def test_friendly_name_resolves_on_cold_hub(
        self, meta_server: MetaServer, registry: FakeProviderRegistry
    ) -> None:
        await meta_server.handle("invoke", {"name": "databaseQuery", "params": {"sql": "x"}})
        assert registry.list_calls == 1


# ── orchestrate ──────────────────────────────────────────────────────────


class TestOrchestrate:
    @pytest.mark.anyio
    async def test_list_then_exec_flow(self, meta_server: MetaServer) -> None:
        listing = await meta_server.handle("discover", {})
        assert "githubSearchRepos" in listing.text

        result = await meta_server.handle(
            "orchestrate",
            {"code": 'return await mcp.call_tool("githubSearchRepos", {"query": "test"})'},
        )
        payload = json.loads(result.text)
        assert result.is_error is False
        assert payload == {
            "result": {"repos": ["repo1", "repo2"], "query": {"query": "test"}},
            "logs": [],
            "isError": False,
        }

    @pytest.mark.anyio
    async def test_script_error_is_flagged(self, meta_server: MetaServer) -> None:
        result = await meta_server.handle("orchestrate", {"code": 'raise ValueError("test error")'})
        payload = json.loads(result.text)
        assert result.is_error is True
        assert payload["isError"] is True
        assert payload["error"] == "test error"
        assert "result" not in payload

    @pytest.mark.anyio
    async def test_timeout_keeps_logs(
        self, catalog, bridge, registry: FakeProviderRegistry
    ) -> None:
        from mcp_hub.sandbox.runtime import SandboxRuntime

        runtime = SandboxRuntime(bridge, registry.abort, default_deadline_ms=50)
        meta_server = MetaServer(catalog, bridge, runtime)
        registry.handlers["github__search_repos"] = hang

        result = await meta_server.handle(
            "orchestrate",
            {
                "code": (
                    'console.log("starting")\n'
                    'return await mcp.call_tool("githubSearchRepos", {"query": "x"})'
                )
            },
        )
        payload = json.loads(result.text)
        assert payload["error"] == "Execution timed out after 50ms"
        assert payload["logs"] == ["[log] starting"]
        assert registry.abort.called


# ── Fail-fast ────────────────────────────────────────────────────────────


class TestInvalidArgumentsFailFast:
    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "name, args",
        [
            ("bogus", {}),
            ("inspect", {}),
            ("invoke", {"name": 3}),
            ("orchestrate", {}),
        ],
    )
    async def test_registry_untouched(
        self, meta_server: MetaServer, registry: FakeProviderRegistry, name, args
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await meta_server.handle(name, args)
        assert registry.list_calls == 0
        assert registry.calls == []


# ── MCP handlers ─────────────────────────────────────────────────────────


class TestCallMetaTool:
    @pytest.mark.anyio
    async def test_success_returns_text_content(self, meta_server: MetaServer) -> None:
        content = await call_meta_tool(meta_server, "discover", None)
        assert len(content) == 1
        assert content[0].type == "text"
        assert content[0].text.startswith("Total: 3 tools")

    @pytest.mark.anyio
    async def test_hub_error_becomes_tool_error(self, meta_server: MetaServer) -> None:
        with pytest.raises(MetaToolError, match="^Unknown tool: bogus$"):
            await call_meta_tool(meta_server, "bogus", {})

    @pytest.mark.anyio
    async def test_flagged_result_becomes_tool_error(self, meta_server: MetaServer) -> None:
        with pytest.raises(MetaToolError) as exc_info:
            await call_meta_tool(meta_server, "orchestrate", {"code": 'raise ValueError("x")'})
        assert json.loads(str(exc_info.value))["error"] == "x"

    @pytest.mark.anyio
    async def test_unexpected_error_is_prefixed(self) -> None:
        server = MagicMock()
        server.handle = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(MetaToolError, match="^Error executing tool discover: boom$"):
            await call_meta_tool(server, "discover", {})

    @pytest.mark.anyio
    async def test_not_initialized(self) -> None:
        with pytest.raises(MetaToolError, match="Hub is not initialized"):
            await call_meta_tool(None, "discover", {})

    @pytest.mark.anyio
    async def test_meta_result_passthrough(self) -> None:
        server = MagicMock()
        server.handle = AsyncMock(return_value=MetaResult("ok"))
        content = await call_meta_tool(server, "invoke", {"name": "x__y"})
        assert content[0].text == "ok"


class TestMetaToolDefinitions:
    def test_exactly_four_tools(self) -> None:
        assert [t.name for t in META_TOOLS] == ["discover", "inspect", "invoke", "orchestrate"]

    def test_required_arguments_declared(self) -> None:
        by_name = {t.name: t for t in META_TOOLS}
        assert by_name["inspect"].inputSchema["required"] == ["name"]
        assert by_name["invoke"].inputSchema["required"] == ["name"]
        assert by_name["orchestrate"].inputSchema["required"] == ["code"]
        assert "required" not in by_name["discover"].inputSchema
