"""Time-bounded cache of the aggregated tool catalog.

The catalog snapshot and the friendly-name mapping derived from it live in
a single immutable :class:`CacheEntry`. A rebuild creates a new entry and
swaps it in with one assignment, so concurrent readers see either the old
or the new entry, never a half-built one. There is no lock: when two
refreshes overlap, the one that finishes last wins.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.bridge.naming import (
    ToolIdentity,
    ToolNameMapping,
    build_tool_name_mapping,
    resolve_tool_id,
)
from mcp_hub.bridge.provider_registry import ProviderRegistry
from mcp_hub.constants import TOOLS_CACHE_TTL
from mcp_hub.errors import CatalogUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Catalog snapshot, its name mapping, and when it stops being fresh."""

    snapshot: Tuple[ToolDescriptor, ...]
    mapping: ToolNameMapping
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


def build_entry(
    tools: List[ToolDescriptor], ttl: float, now: float
) -> CacheEntry:
    """Derive friendly names for *tools* and package them as a cache entry."""
    mapping = build_tool_name_mapping(
        ToolIdentity(t.id, t.provider_display_name, t.local_name) for t in tools
    )
    snapshot = tuple(
        sorted(
            (t.model_copy(update={"friendly_name": mapping.to_friendly[t.id]}) for t in tools),
            key=lambda t: t.id,
        )
    )
    return CacheEntry(snapshot=snapshot, mapping=mapping, expires_at=now + ttl)


class ToolCatalog:
    """Aggregated tool catalog backed by a :class:`ProviderRegistry`.

    Parameters
    ----------
    registry:
        Source of truth for the tool list.
    ttl:
        Seconds a snapshot is served before the next read refreshes it.
    clock:
        Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        ttl: float = TOOLS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._ttl = ttl
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._refresh_count = 0

    # ── Reads ────────────────────────────────────────────────────────

    async def get(self) -> List[ToolDescriptor]:
        """Return the catalog, refreshing first if the cache is stale."""
        entry = await self.refresh_or_serve()
        return list(entry.snapshot)

    async def refresh_or_serve(self) -> CacheEntry:
        entry = self._entry
        if entry is not None and entry.is_fresh(self._clock()):
            logger.debug("Serving cached catalog (%d tools).", len(entry.snapshot))
            return entry
        return await self._rebuild()

    @property
    def mapping(self) -> Optional[ToolNameMapping]:
        entry = self._entry
        return entry.mapping if entry is not None else None

    @property
    def refresh_count(self) -> int:
        """Number of completed provider listings."""
        return self._refresh_count

    def resolve(self, name_or_id: str) -> Optional[str]:
        """Resolve against the current mapping without refreshing."""
        return resolve_tool_id(self.mapping, name_or_id)

    def find(self, tool_id: str) -> Optional[ToolDescriptor]:
        """Look up a descriptor in the current snapshot by id."""
        entry = self._entry
        if entry is None:
            return None
        for tool in entry.snapshot:
            if tool.id == tool_id:
                return tool
        return None

    # ── Writes ───────────────────────────────────────────────────────

    async def refresh(self) -> List[ToolDescriptor]:
        """Force a rebuild from the provider registry."""
        entry = await self._rebuild()
        return list(entry.snapshot)

    def invalidate(self) -> None:
        """Drop the cached snapshot and mapping."""
        self._entry = None
        logger.debug("Tool catalog invalidated.")

    async def _rebuild(self) -> CacheEntry:
        previous = self._entry
        logger.debug("Fetching fresh tool list from providers...")
        try:
            tools = await self._registry.list_all()
        except Exception as exc:
            if previous is not None:
                logger.warning(
                    "Catalog refresh failed, serving previous snapshot (%d tools): %s",
                    len(previous.snapshot),
                    exc,
                )
                return previous
            raise CatalogUnavailableError(f"Tool catalog unavailable: {exc}") from exc

        self._refresh_count += 1
        entry = build_entry(list(tools), self._ttl, self._clock())
        self._entry = entry
        logger.info("Tool catalog rebuilt: %d tools.", len(entry.snapshot))
        return entry
