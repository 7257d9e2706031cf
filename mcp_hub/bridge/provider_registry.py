"""Provider registry: the hub's view of every backend's tools.

:class:`ProviderRegistry` is the boundary the catalog and the tool bridge
are written against. :class:`SessionProviderRegistry` implements it on top
of the live MCP client sessions owned by a
:class:`~mcp_hub.bridge.client_manager.ClientManager`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Union

from mcp import types as mcp_types

from mcp_hub.bridge.client_manager import ClientManager
from mcp_hub.bridge.models import ToolDescriptor, split_tool_id
from mcp_hub.constants import CAP_FETCH_TIMEOUT
from mcp_hub.errors import BackendServerError, ToolNotFoundError

logger = logging.getLogger(__name__)


class ProviderRegistry(Protocol):
    """What the hub needs from the set of tool providers."""

    async def list_all(self) -> List[ToolDescriptor]: ...

    async def call_by_id(
        self, tool_id: str, params: Any, call_id: Optional[str] = None
    ) -> mcp_types.CallToolResult: ...

    def abort(self, call_id: str) -> Union[bool, Awaitable[bool]]: ...


class SessionProviderRegistry:
    """:class:`ProviderRegistry` over the sessions of a :class:`ClientManager`.

    Tool calls issued with a ``call_id`` run as tasks tracked under that
    id, so :meth:`abort` can cancel them.
    """

    def __init__(
        self,
        manager: ClientManager,
        call_timeout: Optional[float] = None,
    ) -> None:
        self._manager = manager
        self._call_timeout = call_timeout
        self._inflight: Dict[str, asyncio.Task] = {}

    # ── Listing ──────────────────────────────────────────────────────

    async def _list_backend(self, svr_name: str, session: Any) -> List[ToolDescriptor]:
        timeout = self._manager.get_cap_fetch_timeout(svr_name) or CAP_FETCH_TIMEOUT
        logger.debug("[%s] Requesting tools list (timeout %ss)...", svr_name, timeout)
        result = await asyncio.wait_for(session.list_tools(), timeout=timeout)

        display_name = self._manager.get_display_name(svr_name)
        descriptors: List[ToolDescriptor] = []
        for tool in getattr(result, "tools", None) or []:
            if not getattr(tool, "name", None):
                logger.warning("[%s] Found unnamed tool, skipped: %r", svr_name, tool)
                continue
            descriptors.append(
                ToolDescriptor.from_provider(
                    svr_name,
                    tool.name,
                    provider_display_name=display_name,
                    description=tool.description,
                    input_schema=tool.inputSchema,
                )
            )
        logger.debug("[%s] Listed %d tools.", svr_name, len(descriptors))
        return descriptors

    async def list_all(self) -> List[ToolDescriptor]:
        """List the tools of every connected backend.

        A backend that fails to list is logged and skipped. If every
        backend fails, :class:`BackendServerError` is raised so the catalog
        can keep serving its previous snapshot.
        """
        sessions = self._manager.get_all_sessions()
        names = list(sessions)
        results = await asyncio.gather(
            *(self._list_backend(name, sessions[name]) for name in names),
            return_exceptions=True,
        )

        tools: List[ToolDescriptor] = []
        failures = 0
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                failures += 1
                logger.error("[%s] Tool listing failed: %s", name, result, exc_info=result)
                continue
            tools.extend(result)

        if names and failures == len(names):
            raise BackendServerError(f"All {failures} backend(s) failed to list tools.")

        logger.info("Listed %d tools from %d backend(s).", len(tools), len(names) - failures)
        return tools

    # ── Calls ────────────────────────────────────────────────────────

    async def call_by_id(
        self, tool_id: str, params: Any, call_id: Optional[str] = None
    ) -> mcp_types.CallToolResult:
        """Route a call to the backend that owns *tool_id*."""
        try:
            svr_name, local_name = split_tool_id(tool_id)
        except ValueError:
            raise ToolNotFoundError(tool_id) from None

        session = self._manager.get_session(svr_name)
        if session is None:
            raise ToolNotFoundError(tool_id)

        arguments = params if isinstance(params, dict) else {}
        logger.info("[%s] Calling tool '%s' (call_id=%s).", svr_name, local_name, call_id)
        coro = session.call_tool(local_name, arguments)
        if self._call_timeout is not None:
            coro = asyncio.wait_for(coro, timeout=self._call_timeout)

        if call_id is None:
            return await coro

        task = asyncio.ensure_future(coro)
        self._inflight[call_id] = task
        try:
            return await task
        finally:
            self._inflight.pop(call_id, None)

    def abort(self, call_id: str) -> bool:
        """Cancel the in-flight call tagged *call_id*, if there is one."""
        task = self._inflight.pop(call_id, None)
        if task is None or task.done():
            logger.debug("abort(%s): no in-flight call.", call_id)
            return False
        task.cancel()
        logger.info("Aborted in-flight tool call %s.", call_id)
        return True

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)
