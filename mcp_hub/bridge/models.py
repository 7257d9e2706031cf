"""Pydantic models for the aggregated tool catalog."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from mcp_hub.constants import TOOL_ID_SEPARATOR


def make_tool_id(provider_id: str, local_name: str) -> str:
    """Compose the namespaced id ``<provider_id>__<local_name>``."""
    return f"{provider_id}{TOOL_ID_SEPARATOR}{local_name}"


def split_tool_id(tool_id: str) -> tuple[str, str]:
    """Split a namespaced id at its first separator.

    Raises ``ValueError`` if *tool_id* is not namespaced.
    """
    provider_id, sep, local_name = tool_id.partition(TOOL_ID_SEPARATOR)
    if not sep or not provider_id or not local_name:
        raise ValueError(f"'{tool_id}' is not a namespaced tool id")
    return provider_id, local_name


class ToolDescriptor(BaseModel):
    """One tool exposed by one provider (backend MCP server).

    ``friendly_name`` is derived by the name mapper on every catalog
    rebuild and is ``None`` on descriptors coming straight from a provider.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Namespaced id: <provider_id>__<local_name>.")
    provider_id: str
    provider_display_name: str = ""
    local_name: str
    description: Optional[str] = None
    input_schema: Optional[Dict[str, Any]] = None
    friendly_name: Optional[str] = None

    @classmethod
    def from_provider(
        cls,
        provider_id: str,
        local_name: str,
        *,
        provider_display_name: Optional[str] = None,
        description: Optional[str] = None,
        input_schema: Optional[Dict[str, Any]] = None,
    ) -> "ToolDescriptor":
        return cls(
            id=make_tool_id(provider_id, local_name),
            provider_id=provider_id,
            provider_display_name=(
                provider_id if provider_display_name is None else provider_display_name
            ),
            local_name=local_name,
            description=description,
            input_schema=input_schema,
        )

    @property
    def display_name(self) -> str:
        """Friendly name when mapped, otherwise the raw id."""
        return self.friendly_name or self.id
