"""Workflow control plane for agent-team.

This module schedules tasks onto their agents and implements the
workflow controls: start, pause, resume and stop, plus the human loop
(feedback and validation).

Scheduling:
    Without any ``depends_on`` the tasks run one after another in board
    order. Once a task declares dependencies, every task runs as soon as
    the tasks it depends on are DONE. At most ``max_concurrency`` tasks
    run at once.
"""

import asyncio
from typing import Any, Optional

import networkx as nx

from ..agent.manager import AgentExecutionOutcome, AgentExecutionResult, AgentManager
from ..config.schemas import WorkflowSettings
from ..models.status import AgentStatus, StatusEntity, TaskStatus, WorkflowAction, WorkflowStatus
from ..models.task import Task
from ..models.team import TeamState, WorkflowResult
from ..state.promises import ActivePromises
from ..state.registry import StatusRegistry
from ..state.rules import TransitionContext
from ..state.store import Store
from ..tracing.logs import WorkflowLogger
from ..tracing.telemetry import TelemetrySink
from ..tracing.usage import CostCalculator, calculate_workflow_stats
from ..utils.errors import TaskTimeoutError, ValidationError, WorkflowError
from ..utils.logging import get_logger
from .task_manager import TaskManager

logger = get_logger(__name__)

# Task statuses the scheduler may start.
STARTABLE_STATUSES = (TaskStatus.TODO, TaskStatus.REVISE)
# Task statuses that leave the workflow BLOCKED once nothing else can run.
WAITING_STATUSES = (TaskStatus.BLOCKED, TaskStatus.AWAITING_VALIDATION)


def build_task_graph(tasks: list[Task]) -> nx.DiGraph:
    """Dependency graph of the board (edge = prerequisite -> dependent).

    Boards without any ``depends_on`` are chained in board order.

    Raises:
        ValidationError: On unknown dependencies or cycles
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(task.id for task in tasks)

    if not any(task.depends_on for task in tasks):
        for previous, task in zip(tasks, tasks[1:]):
            graph.add_edge(previous.id, task.id)
        return graph

    for task in tasks:
        for dependency in task.depends_on:
            if dependency not in graph:
                raise ValidationError(f"Task {task.id} depends on unknown task {dependency}")
            graph.add_edge(dependency, task.id)

    if not nx.is_directed_acyclic_graph(graph):
        cycle = " -> ".join(str(edge[0]) for edge in nx.find_cycle(graph))
        raise ValidationError(f"Task dependencies contain a cycle: {cycle}")
    return graph


class WorkflowController:
    """Runs a team's tasks and applies workflow controls.

    Args:
        store: Team store
        registry: Status registry
        workflow_logger: Workflow log writer
        promises: Registry of abortable calls
        agent_manager: Runs agents on tasks
        task_manager: Applies task status changes
        settings: Scheduling limits
        telemetry: Signal sink for workflow milestones
        cost_calculator: Prices for workflow statistics
    """

    def __init__(
        self,
        store: Store[TeamState],
        registry: StatusRegistry,
        workflow_logger: WorkflowLogger,
        promises: ActivePromises,
        agent_manager: AgentManager,
        task_manager: TaskManager,
        settings: Optional[WorkflowSettings] = None,
        telemetry: Optional[TelemetrySink] = None,
        cost_calculator: Optional[CostCalculator] = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.workflow_logger = workflow_logger
        self.promises = promises
        self.agent_manager = agent_manager
        self.task_manager = task_manager
        self.settings = settings or WorkflowSettings()
        self.telemetry = telemetry or TelemetrySink(enabled=False)
        self.cost_calculator = cost_calculator or CostCalculator()

        self._graph: Optional[nx.DiGraph] = None
        self._runner: Optional[asyncio.Task[None]] = None
        self._running: dict[str, asyncio.Task[None]] = {}
        self._unstartable: set[str] = set()
        self._settled: Optional[asyncio.Event] = None
        self._control_lock = asyncio.Lock()

    @property
    def status(self) -> WorkflowStatus:
        return self.store.get_state().team_workflow_status

    # Status

    async def _set_status(
        self,
        status: WorkflowStatus,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> bool:
        state = self.store.get_state()
        accepted = await self.registry.transition(
            TransitionContext(
                entity=StatusEntity.WORKFLOW,
                entity_id=state.name,
                current_status=state.team_workflow_status,
                target_status=status,
            )
        )
        if not accepted:
            logger.warning(f"Workflow {state.name} could not move {state.team_workflow_status.value} -> {status.value}")
            return False

        self.store.set_state(lambda s: {"team_workflow_status": status})
        self.workflow_logger.workflow_status(status, description, metadata)
        logger.info(f"Workflow {state.name}: {status.value}")
        return True

    async def _require_status(
        self,
        status: WorkflowStatus,
        description: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        if not await self._set_status(status, description, metadata):
            raise WorkflowError(
                f"Workflow could not move to {status.value}",
                root_error=self.registry.last_error,
            )

    # Start

    async def start(self, inputs: Optional[dict[str, Any]] = None) -> WorkflowResult:
        """Run the workflow until it settles.

        Pause and resume happen while this call is waiting; it returns
        once the workflow is FINISHED, ERRORED, BLOCKED or STOPPED.

        Args:
            inputs: Values interpolated into task descriptions

        Returns:
            WorkflowResult of the run

        Raises:
            WorkflowError: If the workflow is already running
            ValidationError: If task dependencies are invalid
        """
        async with self._control_lock:
            if self.status in (WorkflowStatus.RUNNING, WorkflowStatus.PAUSED, WorkflowStatus.STOPPING):
                raise WorkflowError(f"Cannot start a workflow that is {self.status.value}")

            state = self.store.get_state()
            self._graph = build_task_graph(state.tasks)

            if self.status != WorkflowStatus.INITIAL:
                await self._reset_for_restart()

            merged_inputs = {**state.inputs, **(inputs or {})}
            self.store.set_state(lambda s: {"inputs": merged_inputs, "workflow_result": None})
            for task in state.tasks:
                task.inputs = merged_inputs

            self._unstartable = set()
            self._settled = asyncio.Event()
            await self._require_status(
                WorkflowStatus.RUNNING,
                "Workflow started",
                {"event": "start", "inputs": merged_inputs},
            )
            self.telemetry.signal(
                "workflow_started",
                {"team": state.name, "agents": len(state.agents), "tasks": len(state.tasks)},
            )
            self._runner = asyncio.create_task(self._run())

        return await self.wait()

    async def wait(self) -> Optional[WorkflowResult]:
        """Wait until the current run settles and return its result."""
        if self._settled is not None:
            await self._settled.wait()
        return self.store.get_state().workflow_result

    async def _reset_for_restart(self) -> None:
        state = self.store.get_state()
        for task in state.tasks:
            await self.task_manager.reset_task(task, keep_done=False)
        for agent in state.agents:
            await self.agent_manager.reset_agent(agent)
        await self._require_status(WorkflowStatus.INITIAL, "Workflow reset")

    # Scheduling

    async def _run(self) -> None:
        try:
            await self._schedule()
        except Exception as e:
            logger.exception(f"Workflow scheduler failed: {e}")
            if self.status == WorkflowStatus.RUNNING:
                await self._finish(WorkflowStatus.ERRORED, error=str(e))

    async def _schedule(self) -> None:
        while self.status == WorkflowStatus.RUNNING:
            self._running = {task_id: t for task_id, t in self._running.items() if not t.done()}
            tasks = self.store.get_state().tasks

            failed = [task for task in tasks if task.status == TaskStatus.ERROR]
            if failed:
                await self._drain()
                await self._finish(WorkflowStatus.ERRORED, error=failed[0].error or f"Task {failed[0].id} failed")
                return

            if all(task.status == TaskStatus.DONE for task in tasks):
                # An empty board has nothing left to do
                await self._finish(WorkflowStatus.FINISHED, result=tasks[-1].result if tasks else None)
                return

            for task in self._ready_tasks(tasks):
                self._launch(task)

            if not self._running:
                waiting = [task for task in tasks if task.status in WAITING_STATUSES]
                if waiting:
                    await self._finish(
                        WorkflowStatus.BLOCKED,
                        error=waiting[0].error,
                        blocked_task_id=waiting[0].id,
                    )
                else:
                    await self._finish(WorkflowStatus.ERRORED, error="No task can be started")
                return

            await asyncio.wait(list(self._running.values()), return_when=asyncio.FIRST_COMPLETED)

    def _ready_tasks(self, tasks: list[Task]) -> list[Task]:
        done = {task.id for task in tasks if task.status == TaskStatus.DONE}
        limit = self.settings.max_concurrency
        ready = []
        for task in tasks:
            if limit is not None and len(self._running) + len(ready) >= limit:
                break
            if task.status not in STARTABLE_STATUSES or task.id in self._running or task.id in self._unstartable:
                continue
            prerequisites = set(self._graph.predecessors(task.id)) if self._graph is not None else set()
            if prerequisites <= done:
                ready.append(task)
        return ready

    def _launch(self, task: Task, resume: bool = False) -> None:
        self._running[task.id] = asyncio.create_task(self._execute(task, resume=resume))

    def _context_for(self, task: Task) -> str:
        """Results of the DONE tasks before ``task`` on the board."""
        parts = []
        for other in self.store.get_state().tasks:
            if other.id == task.id:
                break
            if other.status == TaskStatus.DONE and other.result is not None:
                parts.append(f"Task: {other.interpolated_description}\nResult: {other.result}\n")
        return "\n".join(parts)

    async def _execute(self, task: Task, resume: bool = False) -> None:
        agent = task.agent
        try:
            feedback = None
            if not resume and task.status == TaskStatus.REVISE and task.pending_feedback:
                feedback = "\n".join(item.content for item in task.pending_feedback)

            if not await self.task_manager.handle_task_started(task, resumed=resume):
                logger.error(f"Task {task.id} could not be started from {task.status.value}")
                self._unstartable.add(task.id)
                return

            # ERROR is only reachable from DOING
            if agent is None:
                await self.task_manager.handle_task_error(task, f"Task {task.id} has no agent")
                return

            result = await self.task_manager.run_with_watchdog(
                task,
                self.agent_manager.execute_task(
                    agent,
                    task,
                    context=self._context_for(task),
                    feedback=feedback,
                    resume=resume,
                ),
                self.settings.task_timeout_ms,
            )
            await self._apply_result(task, result)

        except TaskTimeoutError as e:
            await self.agent_manager.transitions.update(
                agent, task, AgentStatus.AGENTIC_LOOP_ERROR, "Task timed out", {"error": e.to_dict()}
            )
            self.telemetry.signal("task_error", {"reason": "timeout"})
        except Exception as e:
            logger.exception(f"Task {task.id} execution failed: {e}")
            await self.task_manager.handle_task_error(task, e)
            self.telemetry.signal("task_error", {"reason": type(e).__name__})

    async def _apply_result(self, task: Task, result: AgentExecutionResult) -> None:
        agent = task.agent
        if result.outcome == AgentExecutionOutcome.TASK_COMPLETED:
            await self.task_manager.handle_task_completed(agent, task, result.result)
        elif result.outcome == AgentExecutionOutcome.AGENT_BLOCK_TASK:
            await self.task_manager.handle_task_blocked(task, result.block_error)
        elif result.outcome == AgentExecutionOutcome.ABORTED:
            if result.abort_action == WorkflowAction.PAUSE:
                await self.task_manager.handle_task_paused(task)
                await self.agent_manager.pause_agent(agent, task)
            # Stopped tasks are reset by stop()
        else:
            extra = {"last_output": result.last_output} if result.last_output else None
            await self.task_manager.handle_task_error(task, result.error or result.outcome.value, extra)
            self.telemetry.signal("task_error", {"reason": result.outcome.value})

    async def _drain(self) -> None:
        """Wait for every running task coroutine to return."""
        running = [t for t in self._running.values() if not t.done() and t is not asyncio.current_task()]
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        self._running = {}

    async def _await_runner(self) -> None:
        runner = self._runner
        if runner is not None and not runner.done() and runner is not asyncio.current_task():
            await asyncio.gather(runner, return_exceptions=True)

    async def _finish(
        self,
        status: WorkflowStatus,
        result: Any = None,
        error: Optional[str] = None,
        blocked_task_id: Optional[str] = None,
    ) -> None:
        stats = calculate_workflow_stats(self.store.get_state(), self.cost_calculator)
        workflow_result = WorkflowResult(
            status=status,
            result=result,
            error=error,
            blocked_task_id=blocked_task_id,
            stats=stats,
        )
        descriptions = {
            WorkflowStatus.FINISHED: "Workflow finished",
            WorkflowStatus.ERRORED: f"Workflow errored: {error}",
            WorkflowStatus.BLOCKED: f"Workflow blocked by task {blocked_task_id}",
            WorkflowStatus.STOPPED: "Workflow stopped",
        }
        metadata = {"result": result, "error": error, "blocked_task_id": blocked_task_id, **stats.model_dump()}
        if not await self._set_status(status, descriptions.get(status, status.value), metadata):
            return
        self.store.set_state(lambda s: {"workflow_result": workflow_result})
        self.telemetry.signal(
            f"workflow_{status.value.lower()}",
            {"team": stats.team_name, "duration": stats.duration, "total_cost": stats.cost_details.total_cost},
        )
        self._settle()

    def _settle(self) -> None:
        if self._settled is not None:
            self._settled.set()

    # Controls

    async def pause(self) -> None:
        """Pause a running workflow.

        In-flight calls are rejected with ``PauseAbortError``; DOING tasks
        and their agents end up PAUSED.

        Raises:
            WorkflowError: If the workflow is not RUNNING
        """
        async with self._control_lock:
            if self.status != WorkflowStatus.RUNNING:
                raise WorkflowError(f"Cannot pause a workflow that is {self.status.value}")

            await self._require_status(WorkflowStatus.PAUSED, "Workflow paused")
            aborted = self.promises.abort_all(WorkflowAction.PAUSE)
            logger.info(f"Paused workflow, aborted {aborted} in-flight call(s)")

            await self._drain()
            await self._await_runner()

            for task in self.store.get_state().tasks_with_status(TaskStatus.DOING):
                await self.task_manager.handle_task_paused(task)
                if task.agent is not None:
                    await self.agent_manager.pause_agent(task.agent, task)

    async def resume(self) -> None:
        """Resume a paused workflow.

        Every PAUSED task is re-invoked with its agent's last feedback
        message, keeping the conversation and iteration count.

        Raises:
            WorkflowError: If the workflow is not PAUSED
        """
        async with self._control_lock:
            if self.status != WorkflowStatus.PAUSED:
                raise WorkflowError(f"Cannot resume a workflow that is {self.status.value}")

            await self._await_runner()
            await self._require_status(WorkflowStatus.RUNNING, "Workflow resumed", {"event": "resume"})

            for task in self.store.get_state().tasks_with_status(TaskStatus.PAUSED):
                if await self.task_manager.handle_task_resumed(task):
                    self._launch(task, resume=True)
            self._runner = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the workflow and reset unfinished work.

        Tasks that are neither DONE nor TODO go back to TODO (through
        ABORTED when they were running) and agents are reset. If any step
        fails the workflow is still forced to STOPPED.

        Raises:
            WorkflowError: If the workflow is not RUNNING or PAUSED, or
                when a step failed (after forcing STOPPED)
        """
        async with self._control_lock:
            if self.status not in (WorkflowStatus.RUNNING, WorkflowStatus.PAUSED):
                raise WorkflowError(f"Cannot stop a workflow that is {self.status.value}")

            try:
                await self._require_status(WorkflowStatus.STOPPING, "Workflow stopping")
                aborted = self.promises.abort_all(WorkflowAction.STOP)
                logger.info(f"Stopping workflow, aborted {aborted} in-flight call(s)")

                await self._drain()
                await self._await_runner()

                state = self.store.get_state()
                for task in state.tasks:
                    await self.task_manager.reset_task(task)
                for agent in state.agents:
                    await self.agent_manager.reset_agent(agent)

                unfinished = [t.id for t in state.tasks if t.status not in (TaskStatus.DONE, TaskStatus.TODO)]
                if unfinished:
                    raise WorkflowError(f"Tasks could not be reset: {', '.join(unfinished)}")

                await self._finish(WorkflowStatus.STOPPED)
                if self.status != WorkflowStatus.STOPPED:
                    raise WorkflowError("Workflow could not move to STOPPED")
            except Exception as e:
                self._force_stopped(e)
                raise WorkflowError(f"Error stopping workflow: {e}", root_error=e) from e

    def _force_stopped(self, error: BaseException) -> None:
        logger.error(f"Forcing workflow to STOPPED after error: {error}")
        self.store.set_state(
            lambda s: {
                "team_workflow_status": WorkflowStatus.STOPPED,
                "workflow_result": WorkflowResult(status=WorkflowStatus.STOPPED, error=str(error)),
                "active_promises": {},
            }
        )
        self.workflow_logger.workflow_status(
            WorkflowStatus.STOPPED,
            "Workflow stopped after an error",
            {"error": str(error)},
        )
        self.telemetry.signal("workflow_stop_error", {"error": type(error).__name__})
        self._settle()

    # Human in the loop

    async def provide_feedback(self, task_id: str, content: str) -> None:
        """Send a task back to its agent with feedback.

        Raises:
            WorkflowError: For unknown tasks or tasks that cannot be revised
        """
        async with self._control_lock:
            task = self._get_task(task_id)
            revisable = (TaskStatus.DONE, TaskStatus.BLOCKED, TaskStatus.ERROR, TaskStatus.AWAITING_VALIDATION)
            if task.status not in revisable:
                raise WorkflowError(f"Cannot give feedback on task {task_id} while it is {task.status.value}")
            if not await self.task_manager.handle_task_revised(task, content):
                raise WorkflowError(f"Task {task_id} could not be sent back for revision")
            await self._reactivate("Workflow resumed after feedback")

    async def validate_task(self, task_id: str) -> None:
        """Accept a task that awaits external validation.

        Raises:
            WorkflowError: For unknown tasks or tasks not awaiting validation
        """
        async with self._control_lock:
            task = self._get_task(task_id)
            if task.status != TaskStatus.AWAITING_VALIDATION:
                raise WorkflowError(f"Task {task_id} is not awaiting validation ({task.status.value})")
            if not await self.task_manager.handle_task_validated(task):
                raise WorkflowError(f"Task {task_id} could not be validated")
            await self._reactivate("Workflow resumed after validation")

    def _get_task(self, task_id: str) -> Task:
        task = self.store.get_state().get_task(task_id)
        if task is None:
            raise WorkflowError(f"Unknown task {task_id}")
        return task

    async def _reactivate(self, description: str) -> None:
        """Restart scheduling when the workflow had settled."""
        if self.status not in (WorkflowStatus.BLOCKED, WorkflowStatus.ERRORED, WorkflowStatus.FINISHED):
            return
        await self._await_runner()
        self._settled = asyncio.Event()
        await self._require_status(WorkflowStatus.RUNNING, description, {"event": "reactivate"})
        self._runner = asyncio.create_task(self._run())
