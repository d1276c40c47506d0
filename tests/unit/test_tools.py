"""Unit tests for tools and the tool registry."""

import pytest
from pydantic import BaseModel

from agent_team.tools import BLOCK_TASK_ACTION, BlockTaskTool, FunctionTool, ToolRegistry, ToolResult, tool
from agent_team.utils.errors import ValidationError


class SearchArgs(BaseModel):
    query: str
    limit: int = 3


def search(query: str, limit: int = 3) -> list[str]:
    """Search the web."""
    return [f"{query} #{i}" for i in range(limit)]


async def echo(input: str) -> str:
    return input


@tool(name="shout", description="Upper-case the input")
def shout(text: str) -> str:
    return text.upper()


@pytest.mark.asyncio
class TestFunctionTool:
    """Tests for FunctionTool."""

    async def test_name_and_description_from_function(self):
        search_tool = FunctionTool(search)

        assert search_tool.name == "search"
        assert search_tool.description == "Search the web."
        assert search_tool.describe()["input_schema"] == {"type": "object", "properties": {}}

    async def test_sync_function(self):
        result = await FunctionTool(search).invoke({"query": "heaps", "limit": 2})

        assert result.success
        assert result.data == ["heaps #0", "heaps #1"]

    async def test_scalar_input_goes_to_input_argument(self):
        result = await FunctionTool(echo).invoke("hello")
        assert result.data == "hello"

    async def test_args_schema_validates_and_fills_defaults(self):
        search_tool = FunctionTool(search, args_schema=SearchArgs)

        assert search_tool.parameters["required"] == ["query"]
        result = await search_tool.invoke({"query": "tries"})
        assert len(result.data) == 3

    async def test_args_schema_rejects_bad_input(self):
        result = await FunctionTool(search, args_schema=SearchArgs).invoke({"limit": 2})

        assert not result.success
        assert result.error.startswith("Invalid input for search")

    async def test_decorator(self):
        assert isinstance(shout, FunctionTool)
        assert shout.name == "shout"
        assert shout.description == "Upper-case the input"
        assert (await shout.invoke({"text": "hi"})).data == "HI"

    async def test_tool_result_is_passed_through(self):
        async def refuse():
            return ToolResult.fail("no quota")

        result = await FunctionTool(refuse).invoke()
        assert result.error == "no quota"


@pytest.mark.asyncio
class TestBlockTaskTool:
    """Tests for the built-in block_task tool."""

    async def test_reports_block_action(self):
        result = await BlockTaskTool().invoke({"reason": "  Needs approval "})

        assert result.action == BLOCK_TASK_ACTION
        assert result.data == {"action": BLOCK_TASK_ACTION, "reason": "Needs approval"}

    async def test_missing_reason(self):
        result = await BlockTaskTool().invoke({})
        assert result.data["reason"] == "No reason given"


class TestToolResult:
    """Tests for ToolResult rendering."""

    def test_string_content(self):
        assert ToolResult.ok("plain").to_content() == "plain"

    def test_structured_content(self):
        assert ToolResult.ok({"a": 1}).to_content() == '{"a": 1}'

    def test_error_content(self):
        assert ToolResult.fail("boom").to_content() == "Error: boom"

    def test_truncation(self):
        result = ToolResult.ok("x" * (ToolResult.MAX_SIZE + 10))

        content = result.to_content()

        assert result.truncated
        assert content.endswith("[Warning: Output truncated due to size limit]")
        assert len(content) < ToolResult.MAX_SIZE + 100

    def test_to_dict(self):
        assert ToolResult.fail("boom").to_dict() == {"success": False, "data": None, "error": "boom"}


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_register_and_resolve_by_name(self):
        search_tool = FunctionTool(search)
        registry = ToolRegistry([search_tool])

        assert registry.has("search")
        assert registry.resolve("search") is search_tool
        assert registry.list_all() == [search_tool]

    def test_duplicate_names_are_rejected(self):
        registry = ToolRegistry([FunctionTool(search)])
        with pytest.raises(ValueError, match="already registered"):
            registry.register(FunctionTool(search))

    def test_resolve_tool_class_path(self):
        resolved = ToolRegistry().resolve("agent_team.tools.block_task:BlockTaskTool")
        assert isinstance(resolved, BlockTaskTool)

    def test_resolve_function_path(self):
        resolved = ToolRegistry().resolve("os.path:basename")

        assert isinstance(resolved, FunctionTool)
        assert resolved.name == "basename"

    def test_resolve_instance_path(self):
        assert ToolRegistry().resolve(f"{__name__}:shout") is shout

    def test_unknown_name(self):
        with pytest.raises(ValidationError, match="Unknown tool 'search'"):
            ToolRegistry().resolve("search")

    def test_bad_import_path(self):
        with pytest.raises(ValidationError) as exc_info:
            ToolRegistry().resolve("agent_team.tools:missing_tool")
        assert isinstance(exc_info.value.root_error, AttributeError)

    def test_not_a_tool(self):
        with pytest.raises(ValidationError, match="is not a tool"):
            ToolRegistry().resolve("agent_team.tools.block_task:BLOCK_TASK_ACTION")
