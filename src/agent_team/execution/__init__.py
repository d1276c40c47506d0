"""Task and workflow execution for agent-team."""

from .task_manager import TaskManager
from .team import Team
from .workflow import WorkflowController, build_task_graph

__all__ = [
    "Team",
    "TaskManager",
    "WorkflowController",
    "build_task_graph",
]
