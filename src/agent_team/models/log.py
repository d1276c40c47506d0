"""Workflow log entries for agent-team.

The workflow log is append-only and is the single source of historical
truth: task statistics, costs and replays are all computed from it.
Entries reference agents and tasks through immutable snapshots, never
live objects.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_jsonable_python

from .status import AgentStatus, LogType, TaskStatus, WorkflowStatus
from .task import now_ms


class AgentSnapshot(BaseModel):
    """Immutable view of an agent at the moment a log entry was written."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    status: AgentStatus
    model: str


class TaskSnapshot(BaseModel):
    """Immutable view of a task at the moment a log entry was written."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    status: TaskStatus
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None


class WorkflowLog(BaseModel):
    """One entry of the workflow log.

    Attributes:
        timestamp: Epoch ms when the entry was created
        log_type: Workflow, agent or task status update
        log_description: Human readable summary
        metadata: Structured details (usage, outputs, errors, stats)
        task: Snapshot of the related task
        agent: Snapshot of the related agent
        task_status: Task status recorded by the entry
        agent_status: Agent status recorded by the entry
        workflow_status: Workflow status recorded by the entry
    """

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(default_factory=now_ms)
    log_type: LogType
    log_description: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    task: Optional[TaskSnapshot] = None
    agent: Optional[AgentSnapshot] = None
    task_status: Optional[TaskStatus] = None
    agent_status: Optional[AgentStatus] = None
    workflow_status: Optional[WorkflowStatus] = None

    def to_export(self) -> dict[str, Any]:
        """Flat JSON-serializable representation for external consumers."""
        return {
            "timestamp": self.timestamp,
            "logType": self.log_type.value,
            "logDescription": self.log_description,
            "metadata": to_jsonable_python(self.metadata, fallback=str),
            "task": self.task.model_dump(mode="json") if self.task else None,
            "agent": self.agent.model_dump(mode="json") if self.agent else None,
            "taskStatus": self.task_status.value if self.task_status else None,
            "agentStatus": self.agent_status.value if self.agent_status else None,
            "workflowStatus": self.workflow_status.value if self.workflow_status else None,
        }
