"""Resolve tool references and call them through the provider registry."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from mcp import types as mcp_types

from mcp_hub.bridge.catalog import ToolCatalog
from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.bridge.provider_registry import ProviderRegistry
from mcp_hub.errors import ProviderError, ToolNotFoundError

logger = logging.getLogger(__name__)

_DEFAULT_TOOL_ERROR = "Tool execution failed"


def _first_text(content: List[Any]) -> Optional[str]:
    for block in content:
        if getattr(block, "type", None) == "text":
            return block.text
    return None


def extract_tool_result(result: mcp_types.CallToolResult) -> Any:
    """Turn a successful provider response into a plain Python value.

    The first text block is parsed as JSON when possible and returned as
    raw text otherwise. Without any text block the whole content list is
    returned as JSON-compatible dicts; no content at all gives ``None``.
    """
    content = list(result.content or [])
    if not content:
        return None
    text = _first_text(content)
    if text is None:
        return [block.model_dump(mode="json", exclude_none=True) for block in content]
    try:
        return json.loads(text)
    except ValueError:
        return text


def raise_if_tool_error(result: mcp_types.CallToolResult, tool_id: str) -> None:
    if not result.isError:
        return
    message = _first_text(list(result.content or [])) or _DEFAULT_TOOL_ERROR
    raise ProviderError(message, tool_id=tool_id)


class ToolBridge:
    """Single call path from a tool reference to a provider.

    A reference is either a friendly name or a namespaced id. An unknown
    reference gets exactly one forced catalog refresh before the lookup is
    given up.
    """

    def __init__(self, catalog: ToolCatalog, registry: ProviderRegistry) -> None:
        self._catalog = catalog
        self._registry = registry

    async def resolve(self, name_or_id: str) -> str:
        await self._catalog.get()
        tool_id = self._catalog.resolve(name_or_id)
        if tool_id is not None:
            return tool_id

        logger.debug("'%s' not in mapping, forcing catalog refresh.", name_or_id)
        await self._catalog.refresh()
        tool_id = self._catalog.resolve(name_or_id)
        if tool_id is None:
            raise ToolNotFoundError(name_or_id)
        return tool_id

    async def resolve_descriptor(self, name_or_id: str) -> ToolDescriptor:
        """Resolve a reference to its descriptor without calling the tool."""
        await self._catalog.get()
        tool_id = self._catalog.resolve(name_or_id)
        descriptor = self._catalog.find(tool_id) if tool_id else None
        if descriptor is not None:
            return descriptor

        await self._catalog.refresh()
        tool_id = self._catalog.resolve(name_or_id)
        descriptor = self._catalog.find(tool_id) if tool_id else None
        if descriptor is None:
            raise ToolNotFoundError(name_or_id)
        return descriptor

    async def call(
        self, name_or_id: str, params: Any = None, call_id: Optional[str] = None
    ) -> Any:
        """Call a tool and return its normalized result.

        Raises :class:`ToolNotFoundError` for unknown references and
        :class:`ProviderError` when the provider flags the call as failed.
        """
        tool_id = await self.resolve(name_or_id)
        logger.debug("Calling '%s' as %s (call_id=%s).", name_or_id, tool_id, call_id)
        result = await self._registry.call_by_id(
            tool_id, params if params is not None else {}, call_id
        )
        raise_if_tool_error(result, tool_id)
        return extract_tool_result(result)
