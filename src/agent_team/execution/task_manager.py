"""Task lifecycle management for agent-team.

This module moves tasks through their board statuses (via the status
registry), records results, errors and statistics on the task and in the
workflow log, and guards task execution with a watchdog.
"""

from typing import Any, Awaitable, Optional, TypeVar, Union

from ..models.agent import Agent
from ..models.stats import TaskStats
from ..models.status import StatusEntity, TaskStatus, WorkflowAction
from ..models.task import FeedbackItem, Task
from ..models.team import TeamState
from ..state.promises import ActivePromises
from ..state.registry import StatusRegistry
from ..state.rules import TransitionContext
from ..state.store import Store
from ..tracing.logs import WorkflowLogger
from ..tracing.usage import CostCalculator, calculate_task_stats
from ..utils.errors import AgentTeamError, TaskBlockError, TaskTimeoutError
from ..utils.logging import get_logger
from ..utils.timeout import TimeoutError, wait_with_timeout

logger = get_logger(__name__)

T = TypeVar("T")

# Statuses a task passes through ABORTED from when the workflow stops.
ABORTABLE_STATUSES = (TaskStatus.DOING, TaskStatus.PAUSED, TaskStatus.RESUMED)


class TaskManager:
    """Applies task status changes and bookkeeping."""

    def __init__(
        self,
        registry: StatusRegistry,
        store: Store[TeamState],
        workflow_logger: WorkflowLogger,
        promises: ActivePromises,
        cost_calculator: Optional[CostCalculator] = None,
    ) -> None:
        """Initialize the task manager.

        Args:
            registry: Status registry validating every change
            store: Team store holding the workflow log
            workflow_logger: Writes task log entries
            promises: Registry of abortable calls (used by the watchdog)
            cost_calculator: Prices for task statistics
        """
        self.registry = registry
        self.store = store
        self.workflow_logger = workflow_logger
        self.promises = promises
        self.cost_calculator = cost_calculator or CostCalculator()

    async def set_status(
        self,
        task: Task,
        status: TaskStatus,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move ``task`` to ``status`` through the registry and log it.

        Returns:
            False (leaving the task untouched) if the registry refused
        """
        accepted = await self.registry.transition(
            TransitionContext(
                entity=StatusEntity.TASK,
                entity_id=task.id,
                current_status=task.status,
                target_status=status,
                metadata={"agent_id": task.agent.id if task.agent else None},
            )
        )
        if not accepted:
            logger.warning(f"Task {task.id} could not move {task.status.value} -> {status.value}")
            return False

        task.status = status
        self.workflow_logger.task_status(task, description, metadata)
        return True

    def get_task_stats(self, task: Task) -> TaskStats:
        """Statistics of the task's current run, folded from the workflow log."""
        return calculate_task_stats(task, self.store.get_state().workflow_logs, self.cost_calculator)

    async def handle_task_started(self, task: Task, resumed: bool = False) -> bool:
        if resumed:
            return await self.set_status(task, TaskStatus.DOING, f"Task resumed: {task.label}", {"resumed": True})
        task.error = None
        return await self.set_status(task, TaskStatus.DOING, f"Task started: {task.label}")

    async def handle_task_completed(self, agent: Agent, task: Task, result: Any) -> TaskStatus:
        """Record a final answer.

        The task goes to AWAITING_VALIDATION instead of DONE when it
        requires external validation.

        Returns:
            The task's status afterwards
        """
        stats = self.get_task_stats(task)
        task.result = result
        task.stats = stats
        metadata = {"result": result, "agent": agent.name, **stats.model_dump()}

        if task.external_validation_required:
            await self.set_status(task, TaskStatus.AWAITING_VALIDATION, f"Task awaiting validation: {task.label}", metadata)
        else:
            await self.set_status(task, TaskStatus.DONE, f"Task completed: {task.label}", metadata)
            task.mark_feedback_processed()
        logger.info(
            f"Task {task.id} {task.status.value} in {stats.duration:.2f}s "
            f"({stats.iteration_count} iterations, cost {stats.cost_details.total_cost})"
        )
        return task.status

    async def handle_task_blocked(self, task: Task, error: TaskBlockError) -> bool:
        stats = self.get_task_stats(task)
        task.stats = stats
        task.error = error.message
        task.mark_feedback_processed()
        return await self.set_status(
            task,
            TaskStatus.BLOCKED,
            f"Task blocked: {task.label}",
            {"error": error.to_dict(), **stats.model_dump()},
        )

    async def handle_task_error(
        self,
        task: Task,
        error: Union[str, BaseException],
        extra: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Move the task to ERROR and record the error.

        ``extra`` is merged into the log metadata (e.g. the agent's last output).
        """
        if isinstance(error, AgentTeamError):
            details = error.to_dict()
            message = error.message
        elif isinstance(error, BaseException):
            details = {"name": type(error).__name__, "message": str(error)}
            message = str(error)
        else:
            details = {"message": error}
            message = error

        stats = self.get_task_stats(task)
        task.stats = stats
        task.error = message
        task.mark_feedback_processed()
        logger.error(f"Task {task.id} failed: {message}")
        metadata = {"error": details, **stats.model_dump(), **(extra or {})}
        return await self.set_status(task, TaskStatus.ERROR, f"Task error: {task.label}", metadata)

    async def handle_task_aborted(self, task: Task, reason: str = "Workflow stopped") -> bool:
        return await self.set_status(task, TaskStatus.ABORTED, f"Task aborted: {task.label}", {"reason": reason})

    async def handle_task_paused(self, task: Task) -> bool:
        return await self.set_status(task, TaskStatus.PAUSED, f"Task paused: {task.label}")

    async def handle_task_resumed(self, task: Task) -> bool:
        return await self.set_status(task, TaskStatus.RESUMED, f"Task resumed: {task.label}", {"resumed": True})

    async def handle_task_revised(self, task: Task, feedback: str) -> bool:
        """Attach human feedback and send the task back for revision."""
        item = FeedbackItem(content=feedback)
        task.feedback_history = [*task.feedback_history, item]
        return await self.set_status(
            task, TaskStatus.REVISE, f"Task revision requested: {task.label}", {"feedback": item.model_dump()}
        )

    async def handle_task_validated(self, task: Task) -> bool:
        """Accept a task waiting for validation (AWAITING_VALIDATION -> VALIDATED -> DONE)."""
        if not await self.set_status(task, TaskStatus.VALIDATED, f"Task validated: {task.label}"):
            return False
        task.mark_feedback_processed()
        return await self.set_status(task, TaskStatus.DONE, f"Task completed: {task.label}", {"result": task.result})

    async def reset_task(self, task: Task, keep_done: bool = True) -> None:
        """Put a task back to TODO, aborting it first when it is running.

        TODO tasks are left as they are, and so are DONE tasks unless
        ``keep_done`` is False (workflow restart).
        """
        if task.status == TaskStatus.TODO or (keep_done and task.status == TaskStatus.DONE):
            return
        if task.status in ABORTABLE_STATUSES:
            await self.handle_task_aborted(task)
        if await self.set_status(task, TaskStatus.TODO, f"Task reset: {task.label}"):
            task.result = None
            task.error = None
            task.stats = None

    async def run_with_watchdog(self, task: Task, awaitable: Awaitable[T], timeout_ms: Optional[int]) -> T:
        """Await a task execution, failing the task when it runs too long.

        Raises:
            TaskTimeoutError: After the task was moved to ERROR and its
                agent's in-flight calls were aborted
        """
        try:
            return await wait_with_timeout(awaitable, timeout_ms, label=f"Task {task.id}")
        except TimeoutError as e:
            error = TaskTimeoutError(task.id, timeout_ms or 0, root_error=e)
            if task.agent is not None:
                self.promises.abort_agent(task.agent.id, WorkflowAction.STOP)
            await self.handle_task_error(task, error)
            raise error from e
