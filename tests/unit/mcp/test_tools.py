"""Unit tests for the MCP tool catalogue and argument validation."""

import pytest
from tsk.infrastructure.exceptions import TskValidationError
from tsk.mcp.tools import (
    CreateArguments,
    ListArguments,
    MemoryListArguments,
    NoArguments,
    ToolName,
    get_tool,
    list_tools,
    parse_arguments,
)


class TestToolCatalogue:
    """Test the declared tool list."""

    def test_every_tool_is_listed_once(self) -> None:
        """Test that the catalogue covers every tool name."""
        names = [tool.name for tool in list_tools()]
        assert names == [name.value for name in ToolName]
        assert len(set(names)) == 13

    def test_required_fields_are_declared(self) -> None:
        """Test the declared schemas of a few tools."""
        schemas = {tool.name: tool.inputSchema for tool in list_tools()}

        assert schemas["create"]["required"] == ["title", "description"]
        assert set(schemas["create"]["properties"]) == {"title", "description", "parent", "depend"}
        assert schemas["update"]["required"] == ["id", "description"]
        assert schemas["memory_search"]["required"] == ["query"]
        assert "required" not in schemas["list"]
        assert schemas["init"] == {"type": "object", "properties": {}}

    def test_get_tool(self) -> None:
        """Test lookup by wire name."""
        assert get_tool("memory_create").name is ToolName.MEMORY_CREATE
        assert get_tool("nonexistent") is None


class TestParseArguments:
    """Test argument records."""

    def test_none_means_no_arguments(self) -> None:
        """Test that a missing bundle is an empty one."""
        assert isinstance(parse_arguments(get_tool("init"), None), NoArguments)
        assert parse_arguments(get_tool("list"), None) == ListArguments()

    def test_valid_create(self) -> None:
        """Test a complete create bundle."""
        arguments = parse_arguments(
            get_tool("create"), {"title": "T", "description": "D", "parent": "abc123"}
        )
        assert arguments == CreateArguments(title="T", description="D", parent="abc123")

    def test_unknown_keys_are_ignored(self) -> None:
        """Test that extra keys do not fail validation."""
        arguments = parse_arguments(get_tool("list"), {"all": True, "verbose": 1})
        assert arguments == ListArguments(all=True)

    def test_missing_required_field(self) -> None:
        """Test that a missing field is named in the error."""
        with pytest.raises(TskValidationError, match="Invalid arguments for 'create': description"):
            parse_arguments(get_tool("create"), {"title": "T"})

    @pytest.mark.parametrize(
        "tool,raw",
        [
            ("list", {"all": "yes"}),
            ("list", {"inprogress": 1}),
            ("show", {"id": 123456}),
            ("memory_list", {"last": "5"}),
            ("memory_list", {"last": True}),
            ("create", {"title": None, "description": "D"}),
        ],
    )
    def test_wrong_types_fail_closed(self, tool: str, raw: dict) -> None:
        """Test that mistyped values are rejected instead of coerced or defaulted."""
        with pytest.raises(TskValidationError, match=f"Invalid arguments for '{tool}'"):
            parse_arguments(get_tool(tool), raw)

    def test_negative_last(self) -> None:
        """Test that memory_list rejects a negative limit."""
        with pytest.raises(TskValidationError, match="last"):
            parse_arguments(get_tool("memory_list"), {"last": -3})
        assert parse_arguments(get_tool("memory_list"), {"last": 0}) == MemoryListArguments(last=0)

    def test_non_object_bundle(self) -> None:
        """Test that arguments must be an object."""
        with pytest.raises(TskValidationError, match="expected an object"):
            parse_arguments(get_tool("show"), ["abc123"])
