"""Data models for agent-team."""

from .agent import Agent
from .log import AgentSnapshot, TaskSnapshot, WorkflowLog
from .message import Message
from .output import LLMUsage, ParsedOutput, ParseOutcome, ParseResult, ThinkingResult
from .stats import CostDetails, LLMUsageStats, TaskStats, WorkflowStats
from .status import (
    STATUS_ENUMS,
    AgentStatus,
    FeedbackStatus,
    LogType,
    MessageStatus,
    StatusEntity,
    TaskStatus,
    WorkflowAction,
    WorkflowStatus,
)
from .task import FeedbackItem, Task, now_ms
from .team import TeamState, WorkflowResult

__all__ = [
    # Core entities
    "Agent",
    "Task",
    "FeedbackItem",
    "Message",
    "TeamState",
    "WorkflowResult",
    # Statuses
    "StatusEntity",
    "AgentStatus",
    "TaskStatus",
    "WorkflowStatus",
    "MessageStatus",
    "FeedbackStatus",
    "LogType",
    "WorkflowAction",
    "STATUS_ENUMS",
    # Logs
    "WorkflowLog",
    "AgentSnapshot",
    "TaskSnapshot",
    # Model output
    "ParsedOutput",
    "ParseOutcome",
    "ParseResult",
    "LLMUsage",
    "ThinkingResult",
    # Stats
    "LLMUsageStats",
    "CostDetails",
    "TaskStats",
    "WorkflowStats",
    "now_ms",
]
