"""Tool invocation for agent-team agents.

This module looks up the tool an agent asked for, runs it as a tracked,
abortable call and turns the result (or failure) into the feedback
message for the next iteration.
"""

from typing import Any, Callable, Optional

from pydantic import BaseModel

from ..llm.prompts import PromptTemplates
from ..models.agent import Agent
from ..models.status import AgentStatus
from ..models.task import Task
from ..state.promises import ActivePromises
from ..tools.block_task import BLOCK_TASK_ACTION
from ..tools.result import ToolResult
from ..utils.errors import AbortError, ToolInvocationError
from ..utils.logging import get_logger
from .transitions import AgentTransitions

logger = get_logger(__name__)


class ToolExecutionOutcome(BaseModel):
    """Result of one tool invocation.

    Attributes:
        tool_name: Requested tool
        success: Whether the tool ran and reported success
        result: Rendered tool output
        error: Error message on failure
        feedback_message: Message for the next iteration
        status: Final agent status (USING_TOOL_END, USING_TOOL_ERROR
            or TOOL_DOES_NOT_EXIST)
        block_reason: Set when the tool asked to block the task
    """

    tool_name: str
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    feedback_message: str
    status: AgentStatus
    block_reason: Optional[str] = None


class ToolInvoker:
    """Runs agent tools and reports their outcome."""

    def __init__(
        self,
        transitions: AgentTransitions,
        promises: ActivePromises,
        prompts: Optional[PromptTemplates] = None,
        guard: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize the tool invoker.

        Args:
            transitions: Agent status updater
            promises: Registry of abortable calls
            prompts: Feedback templates
            guard: Raises an ``AbortError`` when new calls are not allowed
        """
        self.transitions = transitions
        self.promises = promises
        self.prompts = prompts or PromptTemplates()
        self.guard = guard

    async def execute_tool(
        self,
        agent: Agent,
        task: Task,
        tool_name: str,
        tool_input: Any,
    ) -> ToolExecutionOutcome:
        """Execute a tool the agent requested.

        A missing tool or a failing tool never raises: both are reported
        back to the agent as feedback so it can try another approach.

        Args:
            agent: Calling agent (in EXECUTING_ACTION)
            task: Task being worked on
            tool_name: Name from the ``action`` field
            tool_input: Value of the ``actionInput`` field

        Returns:
            ToolExecutionOutcome

        Raises:
            AbortError: If the workflow is paused or stopped during the call
        """
        tool = agent.get_tool(tool_name)
        if tool is None:
            logger.warning(f"Agent {agent.name} requested unknown tool '{tool_name}'")
            await self.transitions.update(
                agent,
                task,
                AgentStatus.TOOL_DOES_NOT_EXIST,
                f"Tool {tool_name} does not exist",
                {"tool_name": tool_name, "available_tools": [t.name for t in agent.tools]},
            )
            return ToolExecutionOutcome(
                tool_name=tool_name,
                success=False,
                error=f"Tool '{tool_name}' does not exist",
                feedback_message=self.prompts.tool_not_exist_feedback(agent, task, tool_name),
                status=AgentStatus.TOOL_DOES_NOT_EXIST,
            )

        await self.transitions.update(
            agent,
            task,
            AgentStatus.USING_TOOL,
            f"Using tool: {tool_name}",
            {"tool_name": tool_name, "input": tool_input},
        )

        try:
            result: ToolResult = await self.promises.run(
                agent.id,
                tool.invoke(tool_input),
                label=f"tool:{tool_name}",
                guard=self.guard,
            )
        except AbortError:
            raise
        except Exception as e:
            error = ToolInvocationError(f"Tool {tool_name} failed: {e}", tool_name=tool_name, root_error=e)
            return await self._tool_error(agent, task, tool_name, str(error))

        if not isinstance(result, ToolResult):
            result = ToolResult.ok(result)
        if not result.success:
            return await self._tool_error(agent, task, tool_name, result.error or "Unknown error")

        content = result.to_content()
        await self.transitions.update(
            agent,
            task,
            AgentStatus.USING_TOOL_END,
            f"Tool {tool_name} finished",
            {"tool_name": tool_name, "result": result.to_dict(), "truncated": result.truncated},
        )

        block_reason = None
        if result.action == BLOCK_TASK_ACTION:
            block_reason = self._block_reason(result)
            logger.info(f"Agent {agent.name} decided to block task {task.id}: {block_reason}")

        return ToolExecutionOutcome(
            tool_name=tool_name,
            success=True,
            result=content,
            feedback_message=self.prompts.tool_result_feedback(agent, task, tool_name, content),
            status=AgentStatus.USING_TOOL_END,
            block_reason=block_reason,
        )

    async def _tool_error(self, agent: Agent, task: Task, tool_name: str, error: str) -> ToolExecutionOutcome:
        logger.warning(f"Tool {tool_name} failed for agent {agent.name}: {error}")
        await self.transitions.update(
            agent,
            task,
            AgentStatus.USING_TOOL_ERROR,
            f"Error using tool: {tool_name}",
            {"tool_name": tool_name, "error": error},
        )
        return ToolExecutionOutcome(
            tool_name=tool_name,
            success=False,
            error=error,
            feedback_message=self.prompts.tool_error_feedback(agent, task, tool_name, error),
            status=AgentStatus.USING_TOOL_ERROR,
        )

    @staticmethod
    def _block_reason(result: ToolResult) -> str:
        if isinstance(result.data, dict) and result.data.get("reason"):
            return str(result.data["reason"])
        return "Task blocked by agent"
