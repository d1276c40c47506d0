"""Agents for agent-team: lifecycle, agentic loop and tool invocation."""

from .history import MessageHistory
from .invoker import ToolExecutionOutcome, ToolInvoker
from .iteration import IterationController, LoopOutcome, LoopOutcomeKind
from .manager import (
    AgentExecutionOutcome,
    AgentExecutionResult,
    AgentManager,
    AgentSelectionCriteria,
)
from .transitions import AgentTransitions

__all__ = [
    # Lifecycle
    "AgentManager",
    "AgentExecutionResult",
    "AgentExecutionOutcome",
    "AgentSelectionCriteria",
    # Agentic loop
    "IterationController",
    "LoopOutcome",
    "LoopOutcomeKind",
    # Tools
    "ToolInvoker",
    "ToolExecutionOutcome",
    # Status and history
    "AgentTransitions",
    "MessageHistory",
]
