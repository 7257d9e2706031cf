"""The hub's caller-facing facade: discover, inspect, invoke, orchestrate."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, NamedTuple, Optional

from mcp_hub.bridge.catalog import ToolCatalog
from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.bridge.tool_bridge import ToolBridge
from mcp_hub.constants import DEFAULT_LIST_LIMIT
from mcp_hub.sandbox.models import ExecutionResult
from mcp_hub.sandbox.runtime import SandboxRuntime
from mcp_hub.server.format import format_as_text, format_tool_page, schema_to_stub, to_json_text
from mcp_hub.server.operations import (
    DiscoverRequest,
    InspectRequest,
    InvokeRequest,
    OrchestrateRequest,
    parse_request,
)

logger = logging.getLogger(__name__)


class ToolPage(NamedTuple):
    tools: List[ToolDescriptor]
    total: int
    limit: int
    offset: int


class MetaResult(NamedTuple):
    """Rendered outcome of one meta-tool call."""

    text: str
    is_error: bool = False


class MetaServer:
    """Composes the catalog, the tool bridge and the sandbox runtime.

    Every operation other than ``discover`` first makes sure the name
    mapping is warm, so friendly names resolve on a cold hub.
    """

    def __init__(self, catalog: ToolCatalog, bridge: ToolBridge, runtime: SandboxRuntime) -> None:
        self._catalog = catalog
        self._bridge = bridge
        self._runtime = runtime

    async def handle(self, name: str, arguments: Optional[Mapping[str, Any]]) -> MetaResult:
        """Parse, dispatch and render one meta-tool call.

        Argument errors surface as :class:`InvalidArgumentError` before the
        catalog is read. Failures from the operation itself propagate.
        """
        request = parse_request(name, arguments)
        logger.debug("Meta-operation '%s' with %s", request.op, request)

        if isinstance(request, DiscoverRequest):
            page = await self.discover(request.limit, request.offset)
            return MetaResult(format_tool_page(page.tools, page.total, page.limit, page.offset))
        if isinstance(request, InspectRequest):
            return MetaResult(await self.inspect(request.name))
        if isinstance(request, InvokeRequest):
            return MetaResult(format_as_text(await self.invoke(request.name, request.params)))
        if isinstance(request, OrchestrateRequest):
            result = await self.orchestrate(request.code)
            return MetaResult(to_json_text(result.to_dict()), is_error=result.is_error)
        raise AssertionError(f"unhandled request type {type(request).__name__}")

    async def discover(self, limit: Any = DEFAULT_LIST_LIMIT, offset: Any = 0) -> ToolPage:
        paging = DiscoverRequest(limit=limit, offset=offset)
        tools = await self._catalog.get()
        page = tools[paging.offset : paging.offset + paging.limit]
        logger.info(
            "discover: returning %d of %d tools (offset=%d, limit=%d).",
            len(page),
            len(tools),
            paging.offset,
            paging.limit,
        )
        return ToolPage(page, len(tools), paging.limit, paging.offset)

    async def inspect(self, name: str) -> str:
        descriptor = await self._bridge.resolve_descriptor(name)
        return schema_to_stub(
            descriptor.display_name, descriptor.description, descriptor.input_schema
        )

    async def invoke(self, name: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        await self._catalog.get()
        return await self._bridge.call(name, dict(params) if params else {})

    async def orchestrate(self, code: str) -> ExecutionResult:
        await self._catalog.get()
        result = await self._runtime.execute(code)
        logger.info(
            "orchestrate: finished (is_error=%s, %d log lines).", result.is_error, len(result.logs)
        )
        return result

    def invalidate(self) -> None:
        self._catalog.invalidate()
