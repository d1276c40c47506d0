"""agent-team.

A Python library for orchestrating teams of LLM-backed agents that work
through a board of tasks, with explicit status machines, pause/resume/stop
controls, human feedback and per-model cost tracking.
"""

from .agent import AgentExecutionResult, AgentManager, AgentSelectionCriteria, IterationController, ToolInvoker
from .config import (
    AgentConfig,
    LLMConfig,
    TaskConfig,
    TeamConfig,
    WorkflowSettings,
    load_team_config,
)
from .execution import Team, TaskManager, WorkflowController
from .llm import LanguageModelClient, LLMResponse, OpenAIChatClient, OutputParser, PromptTemplates
from .models import (
    Agent,
    AgentStatus,
    Task,
    TaskStatus,
    TeamState,
    WorkflowLog,
    WorkflowResult,
    WorkflowStatus,
)
from .state import ActivePromises, StatusRegistry, Store
from .tools import BaseTool, BlockTaskTool, FunctionTool, ToolResult, tool
from .tracing import CostCalculator, TelemetrySink
from .utils.errors import (
    AbortError,
    AgentTeamError,
    PauseAbortError,
    StopAbortError,
    TaskBlockError,
    ValidationError,
    WorkflowError,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core entities
    "Agent",
    "Task",
    "TeamState",
    "WorkflowLog",
    "WorkflowResult",
    "AgentStatus",
    "TaskStatus",
    "WorkflowStatus",
    # Configuration
    "AgentConfig",
    "LLMConfig",
    "TaskConfig",
    "TeamConfig",
    "WorkflowSettings",
    "load_team_config",
    # Agents
    "AgentManager",
    "AgentExecutionResult",
    "AgentSelectionCriteria",
    "IterationController",
    "ToolInvoker",
    # Execution
    "Team",
    "TaskManager",
    "WorkflowController",
    # Language models
    "LanguageModelClient",
    "LLMResponse",
    "OpenAIChatClient",
    "OutputParser",
    "PromptTemplates",
    # State
    "StatusRegistry",
    "Store",
    "ActivePromises",
    # Tools
    "BaseTool",
    "FunctionTool",
    "BlockTaskTool",
    "ToolResult",
    "tool",
    # Tracing
    "CostCalculator",
    "TelemetrySink",
    # Errors
    "AgentTeamError",
    "ValidationError",
    "AbortError",
    "PauseAbortError",
    "StopAbortError",
    "TaskBlockError",
    "WorkflowError",
]
