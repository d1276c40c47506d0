"""Agent entity for agent-team.

This module defines the Agent entity: an LLM-backed worker with a role,
a bounded tool set and its own conversation history.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config.schemas import LLMConfig
from ..tools.base import BaseTool
from ..utils.id import generate_agent_id
from .message import Message
from .status import AgentStatus


class Agent(BaseModel):
    """Represents an agent of a team.

    Agents are mutable: the lifecycle manager and iteration controller
    update ``status``, ``messages`` and the iteration bookkeeping in place,
    while the workflow log keeps immutable snapshots.

    Attributes:
        id: Unique identifier ("agent_" + UUID v4)
        name: Agent name, unique within a team
        role: Agent's role
        goal: What the agent tries to achieve
        background: Background injected into the system prompt
        llm_config: Language model configuration
        tools: Tools the agent may call (unique names)
        status: Current agent status
        max_iterations: Iteration cap per task
        force_final_answer: Ask for a final answer two iterations before the cap
        messages: Conversation history for the current task
        system_message: System prompt for the current task
        last_feedback_message: Last message sent to the model, replayed on resume
        current_iterations: Iterations used on the current task
        llm_client: Language-model client bound by the lifecycle manager
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=generate_agent_id, description="Unique identifier")
    name: str = Field(..., min_length=1, description="Agent name")
    role: str = Field(..., description="Agent's role")
    goal: str = Field(..., description="Agent's goal")
    background: str = Field(..., description="Agent's background")
    llm_config: LLMConfig = Field(default_factory=LLMConfig, description="Language model configuration")
    tools: list[BaseTool] = Field(default_factory=list, description="Available tools")
    status: AgentStatus = Field(default=AgentStatus.INITIAL, description="Current status")
    max_iterations: int = Field(default=10, ge=1, description="Iteration cap per task")
    force_final_answer: bool = Field(default=True, description="Force a final answer near the cap")
    messages: list[Message] = Field(default_factory=list, description="Conversation history")
    system_message: str = Field(default="", description="System prompt for the current task")
    last_feedback_message: Optional[str] = Field(None, description="Last message sent to the model")
    current_iterations: int = Field(default=0, ge=0, description="Iterations used on the current task")
    current_task_id: Optional[str] = Field(None, description="Task the agent is working on")
    llm_client: Any = Field(default=None, exclude=True, repr=False, description="Bound language-model client")

    def get_tool(self, name: str) -> Optional[BaseTool]:
        """Return the tool with exactly this name, if the agent has it."""
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def has_tool(self, name: str) -> bool:
        return self.get_tool(name) is not None

    def begin_task(self, task_id: str, system_message: str) -> None:
        """Start a fresh conversation for a task."""
        self.current_task_id = task_id
        self.system_message = system_message
        self.messages = []
        self.current_iterations = 0
        self.last_feedback_message = None

    def reset(self) -> None:
        """Clear per-task state; used on workflow stop and restart."""
        self.status = AgentStatus.INITIAL
        self.messages = []
        self.system_message = ""
        self.last_feedback_message = None
        self.current_iterations = 0
        self.current_task_id = None

    def llm_messages(self, messages: Optional[list[Message]] = None) -> list[dict[str, str]]:
        """System prompt followed by the history (or ``messages``), in client format."""
        history = [m.to_llm() for m in (self.messages if messages is None else messages)]
        if self.system_message:
            return [{"role": "system", "content": self.system_message}, *history]
        return history
