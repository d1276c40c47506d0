"""Agent status updates for agent-team.

Every agent status change goes through the status registry; accepted
changes are applied to the agent and written to the workflow log.
"""

from typing import Any, Optional

from ..models.agent import Agent
from ..models.status import AgentStatus, StatusEntity
from ..models.task import Task
from ..state.registry import StatusRegistry
from ..state.rules import TransitionContext
from ..tracing.logs import WorkflowLogger
from ..utils.logging import get_logger

logger = get_logger(__name__)


class AgentTransitions:
    """Applies registry-approved agent status changes and logs them."""

    def __init__(self, registry: StatusRegistry, workflow_logger: WorkflowLogger) -> None:
        self.registry = registry
        self.workflow_logger = workflow_logger

    async def update(
        self,
        agent: Agent,
        task: Optional[Task],
        status: AgentStatus,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move ``agent`` to ``status`` and append a log entry.

        Returns:
            False (leaving the agent untouched) if the registry refused
        """
        accepted = await self.registry.transition(
            TransitionContext(
                entity=StatusEntity.AGENT,
                entity_id=agent.id,
                current_status=agent.status,
                target_status=status,
                metadata={"task_id": task.id if task else None},
            )
        )
        if not accepted:
            logger.warning(f"Agent {agent.name} could not move {agent.status.value} -> {status.value}")
            return False

        agent.status = status
        self.workflow_logger.agent_status(agent, task, description, metadata)
        return True
