"""Workflow log writer for agent-team.

``WorkflowLogger`` builds ``WorkflowLog`` entries from live agents and
tasks (taking snapshots) and appends them to the team store with a
single copy-on-write update.
"""

from typing import Any, Optional

from ..models.agent import Agent
from ..models.log import AgentSnapshot, TaskSnapshot, WorkflowLog
from ..models.status import LogType, WorkflowStatus
from ..models.task import Task
from ..models.team import TeamState
from ..state.store import Store


def snapshot_agent(agent: Agent) -> AgentSnapshot:
    return AgentSnapshot(
        id=agent.id,
        name=agent.name,
        role=agent.role,
        status=agent.status,
        model=agent.llm_config.model,
    )


def snapshot_task(task: Task) -> TaskSnapshot:
    return TaskSnapshot(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        agent_id=task.agent.id if task.agent else None,
        agent_name=task.agent.name if task.agent else None,
    )


class WorkflowLogger:
    """Appends entries to the workflow log held by a team store."""

    def __init__(self, store: Store[TeamState]) -> None:
        self.store = store

    def append(self, entry: WorkflowLog) -> WorkflowLog:
        self.store.set_state(lambda s: {"workflow_logs": [*s.workflow_logs, entry]})
        return entry

    def agent_status(
        self,
        agent: Agent,
        task: Optional[Task],
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WorkflowLog:
        """Record the agent's current status."""
        return self.append(
            WorkflowLog(
                log_type=LogType.AGENT_STATUS_UPDATE,
                log_description=description,
                metadata=dict(metadata or {}),
                agent=snapshot_agent(agent),
                task=snapshot_task(task) if task else None,
                agent_status=agent.status,
                task_status=task.status if task else None,
                workflow_status=self.store.get_state().team_workflow_status,
            )
        )

    def task_status(
        self,
        task: Task,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WorkflowLog:
        """Record the task's current status."""
        return self.append(
            WorkflowLog(
                log_type=LogType.TASK_STATUS_UPDATE,
                log_description=description,
                metadata=dict(metadata or {}),
                task=snapshot_task(task),
                agent=snapshot_agent(task.agent) if task.agent else None,
                task_status=task.status,
                agent_status=task.agent.status if task.agent else None,
                workflow_status=self.store.get_state().team_workflow_status,
            )
        )

    def workflow_status(
        self,
        status: WorkflowStatus,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> WorkflowLog:
        """Record a workflow status (which may differ from the stored one)."""
        return self.append(
            WorkflowLog(
                log_type=LogType.WORKFLOW_STATUS_UPDATE,
                log_description=description,
                metadata=dict(metadata or {}),
                workflow_status=status,
            )
        )


def export_logs(state: TeamState) -> list[dict[str, Any]]:
    """Every log entry in its flat export form."""
    return [entry.to_export() for entry in state.workflow_logs]
