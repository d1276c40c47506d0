"""Tools for agent-team agents."""

from .base import BaseTool, FunctionTool, tool
from .block_task import BLOCK_TASK_ACTION, BLOCK_TASK_TOOL_NAME, KANBAN_TOOLS, BlockTaskTool
from .registry import ToolRegistry
from .result import ToolResult

__all__ = [
    # Interface
    "BaseTool",
    "FunctionTool",
    "tool",
    "ToolResult",
    # Built-in
    "BlockTaskTool",
    "BLOCK_TASK_TOOL_NAME",
    "BLOCK_TASK_ACTION",
    "KANBAN_TOOLS",
    # Registry
    "ToolRegistry",
]
