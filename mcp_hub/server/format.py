"""Text rendering for meta-tool responses."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

from mcp_hub.bridge.models import ToolDescriptor
from mcp_hub.constants import DESCRIPTION_MAX_WORDS

_JSON_TO_PY = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
    "array": "list",
    "object": "dict",
    "null": "None",
}


# ── discover ─────────────────────────────────────────────────────────────


def truncate_description(text: str, max_words: int = DESCRIPTION_MAX_WORDS) -> str:
    if max_words <= 0:
        return ""
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)
    return " ".join(words[:max_words]) + "…"


def format_tool_page(
    tools: Sequence[ToolDescriptor], total: int, limit: int, offset: int
) -> str:
    header = [f"Total: {total} tools", f"Offset: {offset}", f"Limit: {limit}"]
    if not tools:
        return "\n".join(header + ["", "No tools available"])

    lines = header + [f"Returned: {len(tools)}", ""]
    for tool in tools:
        desc = truncate_description(tool.description or tool.display_name)
        lines.append(f"- {tool.display_name} ({tool.id}): {desc}")
    return "\n".join(lines)


# ── inspect ──────────────────────────────────────────────────────────────


def _json_type_to_py(schema_type: Any) -> str:
    if isinstance(schema_type, str):
        return _JSON_TO_PY.get(schema_type, "Any")
    return "Any"


def schema_to_py_type(prop: Dict[str, Any]) -> str:
    """Python annotation text for one JSON-schema property."""
    if not isinstance(prop, dict):
        return "Any"
    enum_values = prop.get("enum")
    if isinstance(enum_values, list) and enum_values:
        return "Literal[" + ", ".join(repr(v) for v in enum_values) + "]"
    schema_type = prop.get("type")
    if isinstance(schema_type, list):
        return " | ".join(_json_type_to_py(t) for t in schema_type) or "Any"
    return _json_type_to_py(schema_type)


def _first_line(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    stripped = text.strip()
    return stripped.splitlines()[0] if stripped else ""


def schema_to_stub(
    func_name: str, description: Optional[str], input_schema: Optional[Dict[str, Any]]
) -> str:
    """Render a tool as a keyword-only Python function stub.

    Required parameters come first (alphabetical), then optional ones
    defaulting to ``None``. The docstring carries the description, a usage
    line and one ``Args`` entry per parameter.
    """
    schema = input_schema if isinstance(input_schema, dict) else {}
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        properties = {}
    required_raw = schema.get("required")
    required_set = set(required_raw) if isinstance(required_raw, list) else set()

    required = sorted(p for p in properties if p in required_set)
    optional = sorted(p for p in properties if p not in required_set)

    params = [f"{p}: {schema_to_py_type(properties[p])}" for p in required]
    params += [f"{p}: {schema_to_py_type(properties[p])} = None" for p in optional]
    if params:
        signature = f"def {func_name}(*, {', '.join(params)}) -> Any:"
    else:
        signature = f"def {func_name}() -> Any:"

    desc = (description or "").strip() or func_name
    usage_args = ", ".join(f'"{p}": ...' for p in required)
    lines = [signature, '    """' + desc.replace("\n", "\n    "), ""]
    lines.append(f'    Usage: await mcp.call_tool("{func_name}", {{{usage_args}}})')

    if params:
        lines += ["", "    Args:"]
        for name in required + optional:
            py_type = schema_to_py_type(properties[name])
            marker = py_type if name in required_set else f"{py_type}, optional"
            entry = f"        {name} ({marker})"
            prop = properties[name]
            prop_desc = _first_line(prop.get("description") if isinstance(prop, dict) else None)
            lines.append(f"{entry}: {prop_desc}" if prop_desc else entry)

    lines.append('    """')
    return "\n".join(lines)


# ── invoke ───────────────────────────────────────────────────────────────


def format_as_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def to_json_text(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
