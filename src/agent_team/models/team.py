"""Team state for agent-team.

``TeamState`` is the value held by the observable store. It is replaced
copy-on-write on every update; agents and tasks inside it are shared,
mutable entities.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .agent import Agent
from .log import WorkflowLog
from .stats import WorkflowStats
from .status import TaskStatus, WorkflowStatus
from .task import Task


class WorkflowResult(BaseModel):
    """Outcome handed to callers awaiting a workflow run.

    Attributes:
        status: Workflow status when the run settled
        result: Result of the last task when FINISHED
        error: Error description when ERRORED or STOPPED by failure
        blocked_task_id: Task that blocked the workflow
        stats: Workflow statistics
    """

    status: WorkflowStatus
    result: Any = None
    error: Optional[str] = None
    blocked_task_id: Optional[str] = None
    stats: Optional[WorkflowStats] = None


class TeamState(BaseModel):
    """Complete state of a team.

    Attributes:
        name: Team name
        env: Environment values (API keys) available to agents
        inputs: Workflow inputs interpolated into task descriptions
        agents: Agents, in declaration order
        tasks: Tasks, in board order
        workflow_logs: Append-only workflow log
        team_workflow_status: Current workflow status
        workflow_result: Result of the last settled run
        active_promises: In-flight cancellable calls per agent id
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    env: dict[str, str] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)
    agents: list[Agent] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    workflow_logs: list[WorkflowLog] = Field(default_factory=list)
    team_workflow_status: WorkflowStatus = WorkflowStatus.INITIAL
    workflow_result: Optional[WorkflowResult] = None
    active_promises: dict[str, frozenset[Any]] = Field(default_factory=dict)

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def get_agent(self, name_or_id: str) -> Optional[Agent]:
        for agent in self.agents:
            if agent.id == name_or_id or agent.name == name_or_id:
                return agent
        return None

    def tasks_with_status(self, *statuses: TaskStatus) -> list[Task]:
        return [task for task in self.tasks if task.status in statuses]
