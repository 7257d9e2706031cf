"""Tests for the text rendering of meta-tool responses."""

from __future__ import annotations

import pytest

from mcp_hub.bridge.catalog import build_entry
from mcp_hub.server.format import (
    format_as_text,
    format_tool_page,
    schema_to_py_type,
    schema_to_stub,
    truncate_description,
)

from conftest import make_mock_tools


class TestTruncateDescription:
    def test_short_text_untouched(self) -> None:
        assert truncate_description("Search for repos") == "Search for repos"

    def test_long_text_truncated_with_ellipsis(self) -> None:
        text = " ".join(f"w{i}" for i in range(60))
        truncated = truncate_description(text, max_words=50)
        assert truncated.endswith("w49…")
        assert len(truncated.split()) == 50

    def test_whitespace_collapsed(self) -> None:
        assert truncate_description("a\n  b\tc") == "a b c"


class TestFormatToolPage:
    def test_page(self) -> None:
        tools = list(build_entry(make_mock_tools(), ttl=60.0, now=0.0).snapshot)
        text = format_tool_page(tools[:2], total=3, limit=2, offset=0)
        assert text == (
            "Total: 3 tools\n"
            "Offset: 0\n"
            "Limit: 2\n"
            "Returned: 2\n"
            "\n"
            "- databaseQuery (database__query): Execute a database query\n"
            "- githubGetUser (github__get_user): Get GitHub user profile"
        )

    def test_empty_page(self) -> None:
        text = format_tool_page([], total=3, limit=30, offset=10)
        assert text == "Total: 3 tools\nOffset: 10\nLimit: 30\n\nNo tools available"


# ── Stubs ────────────────────────────────────────────────────────────────


class TestSchemaToPyType:
    @pytest.mark.parametrize(
        "prop, expected",
        [
            ({"type": "string"}, "str"),
            ({"type": "integer"}, "int"),
            ({"type": "number"}, "float"),
            ({"type": "boolean"}, "bool"),
            ({"type": "array", "items": {"type": "string"}}, "list"),
            ({"type": "object"}, "dict"),
            ({"type": ["string", "null"]}, "str | None"),
            ({"enum": ["asc", "desc"]}, "Literal['asc', 'desc']"),
            ({}, "Any"),
            ({"type": "mystery"}, "Any"),
        ],
    )
    def test_types(self, prop, expected: str) -> None:
        assert schema_to_py_type(prop) == expected


class TestSchemaToStub:
    def test_required_then_optional(self) -> None:
        search = make_mock_tools()[0]
        stub = schema_to_stub("githubSearchRepos", search.description, search.input_schema)
        assert stub == (
            "def githubSearchRepos(*, query: str, limit: float = None) -> Any:\n"
            '    """Search for GitHub repositories\n'
            "\n"
            '    Usage: await mcp.call_tool("githubSearchRepos", {"query": ...})\n'
            "\n"
            "    Args:\n"
            "        query (str): Search query\n"
            "        limit (float, optional): Max results\n"
            '    """'
        )

    def test_no_parameters(self) -> None:
        stub = schema_to_stub("statusPing", None, None)
        assert stub.splitlines()[0] == "def statusPing() -> Any:"
        assert '    """statusPing' in stub
        assert "Args:" not in stub
        assert 'mcp.call_tool("statusPing", {})' in stub

    def test_parameter_without_description(self) -> None:
        stub = schema_to_stub(
            "t",
            "d",
            {"type": "object", "properties": {"flag": {"type": "boolean"}}},
        )
        assert "        flag (bool, optional)\n" in stub


class TestFormatAsText:
    def test_values(self) -> None:
        assert format_as_text(None) == "null"
        assert format_as_text("plain") == "plain"
        assert format_as_text({"a": 1}) == '{\n  "a": 1\n}'
        assert format_as_text([1, 2]) == "[\n  1,\n  2\n]"
