"""Built-in ``block_task`` tool.

Agents call this tool when a task cannot or should not be completed
(missing permissions, unsafe request, insufficient information). The
iteration controller recognises the ``BLOCK_TASK`` action in the result
and ends the loop with a block instead of a final answer.
"""

from typing import Any

from .base import BaseTool
from .result import ToolResult

BLOCK_TASK_TOOL_NAME = "block_task"
BLOCK_TASK_ACTION = "BLOCK_TASK"


class BlockTaskTool(BaseTool):
    """Lets an agent refuse or block the task it is working on."""

    @property
    def name(self) -> str:
        return BLOCK_TASK_TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Use this tool to block the current task when it cannot or should not be completed, "
            "for example because of missing permissions, safety concerns or missing information. "
            "Explain the reason clearly."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "reason": {
                    "type": "string",
                    "description": "Why the task is being blocked",
                }
            },
            "required": ["reason"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        reason = str(kwargs.get("reason") or "").strip() or "No reason given"
        return ToolResult.ok(
            {"action": BLOCK_TASK_ACTION, "reason": reason},
            action=BLOCK_TASK_ACTION,
        )


KANBAN_TOOLS = {BLOCK_TASK_TOOL_NAME: BlockTaskTool}
