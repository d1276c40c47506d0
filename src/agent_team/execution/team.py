"""Team facade for agent-team.

A ``Team`` wires the services (status registry, store, workflow log,
promise registry, agent and task managers, workflow controller) for one
board of agents and tasks, and exposes the workflow controls and state
queries.

Example:
    team = Team.from_config(load_team_config("team.yaml"))
    result = await team.start({"topic": "sorting algorithms"})
    print(result.status, result.result)
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Union

from ..agent.manager import AgentManager, AgentSelectionCriteria
from ..agent.transitions import AgentTransitions
from ..config.schemas import AgentConfig, StatusSettings, TeamConfig, WorkflowSettings
from ..llm.prompts import PromptTemplates
from ..models.agent import Agent
from ..models.stats import TaskStats, WorkflowStats
from ..models.status import TaskStatus, WorkflowStatus
from ..models.task import Task
from ..models.team import TeamState, WorkflowResult
from ..state.promises import ActivePromises, workflow_guard
from ..state.registry import StatusRegistry
from ..state.store import Store
from ..tools.base import BaseTool
from ..tools.registry import ToolRegistry
from ..tracing.logs import WorkflowLogger, export_logs
from ..tracing.telemetry import TelemetrySink
from ..tracing.usage import CostCalculator, calculate_workflow_stats
from ..utils.errors import ValidationError
from ..utils.logging import get_logger
from .task_manager import TaskManager
from .workflow import WorkflowController

logger = get_logger(__name__)


class Team:
    """A board of agents and tasks with its workflow controls.

    Args:
        name: Team name
        agents: Agents, already created (see ``create_agent``)
        tasks: Tasks in board order, each with an agent assigned
        env: Environment values (API keys)
        inputs: Default workflow inputs
        workflow_settings: Scheduling limits
        status_settings: Status registry limits
        telemetry: Signal sink (disabled when omitted)
        pricing_calculator: Model prices for statistics
        prompts: Prompt and feedback templates
        tool_registry: Resolves tool names from agent configs
    """

    def __init__(
        self,
        name: str,
        agents: Optional[list[Agent]] = None,
        tasks: Optional[list[Task]] = None,
        env: Optional[Mapping[str, str]] = None,
        inputs: Optional[dict[str, Any]] = None,
        workflow_settings: Optional[WorkflowSettings] = None,
        status_settings: Optional[StatusSettings] = None,
        telemetry: Optional[TelemetrySink] = None,
        pricing_calculator: Optional[CostCalculator] = None,
        prompts: Optional[PromptTemplates] = None,
        tool_registry: Optional[ToolRegistry] = None,
    ) -> None:
        self.store: Store[TeamState] = Store(
            TeamState(
                name=name,
                env=dict(env or {}),
                inputs=dict(inputs or {}),
                agents=list(agents or []),
                tasks=list(tasks or []),
            )
        )
        self.registry = StatusRegistry.from_settings(status_settings or StatusSettings())
        self.workflow_logger = WorkflowLogger(self.store)
        self.promises = ActivePromises(self.store)
        self.telemetry = telemetry or TelemetrySink(enabled=False)
        self.cost_calculator = pricing_calculator or CostCalculator()

        self.agent_manager = AgentManager(
            AgentTransitions(self.registry, self.workflow_logger),
            self.promises,
            guard=workflow_guard(self.store),
            prompts=prompts,
            tool_registry=tool_registry,
            cost_calculator=self.cost_calculator,
            env=env,
        )
        self.task_manager = TaskManager(
            self.registry,
            self.store,
            self.workflow_logger,
            self.promises,
            cost_calculator=self.cost_calculator,
        )
        self.workflow = WorkflowController(
            self.store,
            self.registry,
            self.workflow_logger,
            self.promises,
            self.agent_manager,
            self.task_manager,
            settings=workflow_settings,
            telemetry=self.telemetry,
            cost_calculator=self.cost_calculator,
        )

    @classmethod
    def from_config(
        cls,
        config: TeamConfig,
        llm_clients: Optional[Mapping[str, Any]] = None,
        tools: Optional[Mapping[str, list[BaseTool]]] = None,
        tool_registry: Optional[ToolRegistry] = None,
        telemetry: Optional[TelemetrySink] = None,
        prompts: Optional[PromptTemplates] = None,
    ) -> "Team":
        """Build a team from configuration.

        Args:
            config: Validated team configuration
            llm_clients: Clients by agent name, replacing the configured ones
            tools: Extra tool instances by agent name
            tool_registry: Resolves tool names from agent configs
            telemetry: Signal sink; built from ``config.telemetry`` when omitted
            prompts: Prompt and feedback templates

        Raises:
            ValidationError: Listing the problems of every invalid agent
                and every task without a matching agent
        """
        team = cls(
            name=config.name,
            env=config.env,
            inputs=config.inputs,
            workflow_settings=config.workflow,
            status_settings=config.status,
            telemetry=telemetry or TelemetrySink(enabled=config.telemetry.enabled),
            pricing_calculator=CostCalculator(config.pricing),
            prompts=prompts,
            tool_registry=tool_registry,
        )
        llm_clients = llm_clients or {}
        tools = tools or {}

        errors: list[str] = []
        agents: list[Agent] = []
        for agent_config in config.agents:
            try:
                agents.append(
                    team.agent_manager.create_agent(
                        agent_config,
                        tools=tools.get(agent_config.name, ()),
                        llm_client=llm_clients.get(agent_config.name),
                    )
                )
            except ValidationError as e:
                errors.extend(f"agents.{agent_config.name}.{problem}" for problem in (e.errors or [e.message]))

        tasks: list[Task] = []
        for index, task_config in enumerate(config.tasks):
            agent = None
            if task_config.agent:
                agent = next((a for a in agents if a.name == task_config.agent), None)
            elif task_config.agent_role:
                agent = team.agent_manager.select_agent(agents, AgentSelectionCriteria(role=task_config.agent_role))
            elif agents:
                agent = agents[0]
            if agent is None and not errors:
                errors.append(f"tasks.{index}: no agent matches the task")

            fields = task_config.model_dump(exclude={"agent", "agent_role", "id"})
            if task_config.id:
                fields["id"] = task_config.id
            tasks.append(Task(agent=agent, **fields))

        if errors:
            raise ValidationError(f"Invalid team configuration '{config.name}'", errors=errors)

        team.store.set_state(lambda s: {"agents": agents, "tasks": tasks})
        logger.info(f"Team {config.name} ready: {len(agents)} agent(s), {len(tasks)} task(s)")
        return team

    def create_agent(
        self,
        config: Union[AgentConfig, dict[str, Any]],
        tools: Iterable[BaseTool] = (),
        llm_client: Any = None,
    ) -> Agent:
        """Create an agent (see ``AgentManager.create_agent``) and add it to the team."""
        agent = self.agent_manager.create_agent(config, tools=tools, llm_client=llm_client)
        self.store.set_state(lambda s: {"agents": [*s.agents, agent]})
        return agent

    def add_task(self, task: Task) -> Task:
        """Append a task to the board."""
        self.store.set_state(lambda s: {"tasks": [*s.tasks, task]})
        return task

    # Workflow controls

    async def start(self, inputs: Optional[dict[str, Any]] = None) -> WorkflowResult:
        return await self.workflow.start(inputs)

    async def pause(self) -> None:
        await self.workflow.pause()

    async def resume(self) -> None:
        await self.workflow.resume()

    async def stop(self) -> None:
        await self.workflow.stop()

    async def provide_feedback(self, task_id: str, content: str) -> None:
        await self.workflow.provide_feedback(task_id, content)

    async def validate_task(self, task_id: str) -> None:
        await self.workflow.validate_task(task_id)

    async def wait(self) -> Optional[WorkflowResult]:
        return await self.workflow.wait()

    # State queries

    def get_store(self) -> Store[TeamState]:
        return self.store

    def subscribe(
        self,
        listener: Callable[..., Any],
        selector: Optional[Callable[[TeamState], Any]] = None,
    ) -> Callable[[], None]:
        """Listen to store changes (see ``Store.subscribe``)."""
        return self.store.subscribe(listener, selector)

    def get_workflow_status(self) -> WorkflowStatus:
        return self.store.get_state().team_workflow_status

    def get_workflow_result(self) -> Optional[WorkflowResult]:
        return self.store.get_state().workflow_result

    def get_tasks(self) -> list[Task]:
        return list(self.store.get_state().tasks)

    def get_tasks_by_status(self, status: TaskStatus) -> list[Task]:
        return self.store.get_state().tasks_with_status(status)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_state().get_task(task_id)

    def get_agent(self, name_or_id: str) -> Optional[Agent]:
        return self.store.get_state().get_agent(name_or_id)

    def get_task_stats(self, task_id: str) -> Optional[TaskStats]:
        task = self.get_task(task_id)
        if task is None:
            return None
        return task.stats or self.task_manager.get_task_stats(task)

    def get_workflow_stats(self) -> WorkflowStats:
        return calculate_workflow_stats(self.store.get_state(), self.cost_calculator)

    def export_logs(self) -> list[dict[str, Any]]:
        """Workflow log in its flat, JSON-serializable export form."""
        return export_logs(self.store.get_state())

    async def cleanup(self) -> None:
        """Close every agent's language-model client."""
        for agent in self.store.get_state().agents:
            client = agent.llm_client
            if client is not None and hasattr(client, "cleanup"):
                try:
                    await client.cleanup()
                except Exception as e:
                    logger.warning(f"Failed to close client of agent {agent.name}: {e}")
