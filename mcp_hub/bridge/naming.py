"""Friendly tool names.

Backends expose tools under names that may collide across servers or are
awkward to type (``search-repos``, ``@org/tool``). The hub gives every
tool a camelCase *friendly name* derived from the provider's display name
and the tool's local name, e.g.::

    ("GitHub", "search_repos")        -> githubSearchRepos
    ("@cherry/browser", "execute")    -> cherryBrowserExecute

Collisions are suffixed deterministically (``githubSearchRepos_2``).
The original namespaced id (``github__search_repos``) always stays
resolvable because friendly names never contain the separator.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional

from mcp_hub.constants import TOOL_ID_SEPARATOR

_WORD_RE = re.compile(r"[A-Za-z0-9]+")
_EMPTY_TOOL_PART = "tool"


class ToolIdentity(NamedTuple):
    """The fields of a descriptor that the friendly name is derived from."""

    id: str
    provider_display_name: str
    local_name: str


@dataclass(frozen=True)
class ToolNameMapping:
    """Bidirectional id <-> friendly-name lookup built from one snapshot."""

    to_friendly: Mapping[str, str]
    to_id: Mapping[str, str]

    def __len__(self) -> int:
        return len(self.to_friendly)


def is_namespaced_tool_id(name: str) -> bool:
    return TOOL_ID_SEPARATOR in name


def to_camel_case(value: str) -> str:
    """camelCase *value*, dropping every non-alphanumeric character.

    The first word is lower-cased entirely; later words are capitalised.
    """
    words = _WORD_RE.findall(value or "")
    if not words:
        return ""
    head, *tail = words
    return head.lower() + "".join(w[:1].upper() + w[1:].lower() for w in tail)


def build_friendly_name(provider_display_name: Optional[str], local_name: str) -> str:
    """Join the camel-cased provider and tool parts into one name."""
    provider_part = to_camel_case(provider_display_name or "")
    tool_part = to_camel_case(local_name) or _EMPTY_TOOL_PART
    if not provider_part:
        return tool_part
    return provider_part + tool_part[:1].upper() + tool_part[1:]


def build_tool_name_mapping(tools: Iterable[ToolIdentity]) -> ToolNameMapping:
    """Build the mapping for a catalog snapshot.

    Input is sorted by id first, so the result does not depend on the order
    backends were enumerated in. On collision the later id (in sorted order)
    gets the first free ``_<n>`` suffix, starting at 2.
    """
    to_friendly: dict[str, str] = {}
    to_id: dict[str, str] = {}

    for tool in sorted(tools, key=lambda t: t.id):
        base = build_friendly_name(tool.provider_display_name, tool.local_name)
        name = base
        n = 2
        while name in to_id:
            name = f"{base}_{n}"
            n += 1
        to_friendly[tool.id] = name
        to_id[name] = tool.id

    return ToolNameMapping(
        to_friendly=MappingProxyType(to_friendly),
        to_id=MappingProxyType(to_id),
    )


def resolve_tool_id(mapping: Optional[ToolNameMapping], name_or_id: str) -> Optional[str]:
    """Resolve a friendly name or namespaced id to an id.

    Namespaced ids are returned unchanged without consulting *mapping*, so a
    raw id keeps working even when the mapping is stale. Returns ``None``
    when the name is not (currently) known.
    """
    if not name_or_id:
        return None
    if is_namespaced_tool_id(name_or_id):
        return name_or_id
    if mapping is None:
        return None
    return mapping.to_id.get(name_or_id)
