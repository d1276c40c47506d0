"""Agent lifecycle management for agent-team.

This module creates agents from configuration (validating everything up
front), runs them on tasks through the agentic loop and maps the loop's
outcome to the result the task layer consumes.
"""

from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..config.loader import format_validation_errors
from ..config.schemas import AgentConfig
from ..llm.client import create_llm_client
from ..llm.parser import OutputParser
from ..llm.prompts import PromptTemplates
from ..models.agent import Agent
from ..models.status import AgentStatus, WorkflowAction
from ..models.task import Task
from ..state.promises import ActivePromises
from ..tools.base import BaseTool
from ..tools.block_task import KANBAN_TOOLS
from ..tools.registry import ToolRegistry
from ..tracing.usage import CostCalculator
from ..utils.errors import TaskBlockError, ValidationError
from ..utils.logging import get_logger
from .history import MessageHistory
from .iteration import IterationController, LoopOutcome, LoopOutcomeKind
from .transitions import AgentTransitions

logger = get_logger(__name__)


class AgentExecutionOutcome(str, Enum):
    """How an agent's work on a task ended."""

    TASK_COMPLETED = "TASK_COMPLETED"
    AGENT_BLOCK_TASK = "AGENT_BLOCK_TASK"
    MAX_ITERATIONS_ERROR = "MAX_ITERATIONS_ERROR"
    ABORTED = "ABORTED"
    AGENTIC_LOOP_ERROR = "AGENTIC_LOOP_ERROR"


class AgentExecutionResult(BaseModel):
    """Result of an agent executing a task.

    Attributes:
        outcome: How execution ended
        result: Final answer when TASK_COMPLETED
        error: Error description for failures
        block_error: Block details when AGENT_BLOCK_TASK
        abort_action: PAUSE or STOP when ABORTED
        iterations: Iterations used on the task
        max_iterations: The agent's cap
        last_output: Last parsed model output (camelCase keys), if any
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: AgentExecutionOutcome
    result: Any = None
    error: Optional[str] = None
    block_error: Optional[TaskBlockError] = None
    abort_action: Optional[WorkflowAction] = None
    iterations: int = 0
    max_iterations: int = 0
    last_output: Optional[dict[str, Any]] = None

    @property
    def completed(self) -> bool:
        return self.outcome == AgentExecutionOutcome.TASK_COMPLETED


class AgentSelectionCriteria(BaseModel):
    """Filter used by ``AgentManager.select_agent``.

    Attributes:
        role: Required role (case-insensitive)
        required_tools: Tool names the agent must have
        max_input_price_per_million: Upper bound on the model's input price
        max_output_price_per_million: Upper bound on the model's output price
    """

    role: Optional[str] = None
    required_tools: list[str] = Field(default_factory=list)
    max_input_price_per_million: Optional[float] = Field(None, ge=0)
    max_output_price_per_million: Optional[float] = Field(None, ge=0)


class AgentManager:
    """Creates agents and runs them on tasks."""

    def __init__(
        self,
        transitions: AgentTransitions,
        promises: ActivePromises,
        guard: Optional[Callable[[], None]] = None,
        prompts: Optional[PromptTemplates] = None,
        parser: Optional[OutputParser] = None,
        tool_registry: Optional[ToolRegistry] = None,
        cost_calculator: Optional[CostCalculator] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Initialize the agent manager.

        Args:
            transitions: Agent status updater
            promises: Registry of abortable calls
            guard: Raises an ``AbortError`` when the workflow is paused or stopped
            prompts: Prompt and feedback templates
            parser: Output parser
            tool_registry: Resolves tool names listed in agent configs
            cost_calculator: Model prices used by ``select_agent``
            env: Team environment (API keys) for new clients
        """
        self.transitions = transitions
        self.promises = promises
        self.prompts = prompts or PromptTemplates()
        self.tool_registry = tool_registry or ToolRegistry()
        self.cost_calculator = cost_calculator or CostCalculator()
        self.env = dict(env or {})
        self.history = MessageHistory(transitions.registry)
        self.iteration = IterationController(
            transitions,
            promises,
            self.history,
            guard=guard,
            parser=parser,
            prompts=self.prompts,
        )

    def create_agent(
        self,
        config: Union[AgentConfig, dict[str, Any]],
        tools: Iterable[BaseTool] = (),
        llm_client: Any = None,
    ) -> Agent:
        """Create an agent, validating the whole configuration first.

        Args:
            config: Agent configuration (model or raw mapping)
            tools: Tool instances in addition to those named in the config
            llm_client: Client to use instead of one built from ``llm_config``

        Returns:
            A new agent in INITIAL status

        Raises:
            ValidationError: Listing every problem found
        """
        if not isinstance(config, AgentConfig):
            try:
                config = AgentConfig.model_validate(config)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Invalid agent configuration",
                    errors=format_validation_errors(e),
                    root_error=e,
                ) from e

        errors: list[str] = []
        agent_tools: list[BaseTool] = list(tools)
        for reference in config.tools:
            try:
                agent_tools.append(self.tool_registry.resolve(reference))
            except ValidationError as e:
                errors.append(f"tools: {e.message}")

        for name in config.kanban_tools:
            tool_class = KANBAN_TOOLS.get(name)
            if tool_class is None:
                errors.append(f"kanban_tools: unknown board tool '{name}'")
            else:
                agent_tools.append(tool_class())

        names = [t.name for t in agent_tools]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            errors.append(f"tools: duplicate tool names: {', '.join(duplicates)}")

        client = llm_client or create_llm_client(config.llm_config, env=self.env)
        try:
            client.validate_config()
        except ValidationError as e:
            errors.extend(f"llm_config: {problem}" for problem in (e.errors or [e.message]))

        if errors:
            raise ValidationError(f"Invalid configuration for agent '{config.name}'", errors=errors)

        agent = Agent(
            name=config.name,
            role=config.role,
            goal=config.goal,
            background=config.background,
            llm_config=config.llm_config,
            tools=agent_tools,
            max_iterations=config.max_iterations,
            force_final_answer=config.force_final_answer,
            llm_client=client,
        )
        logger.info(f"Created agent {agent.name} ({agent.role}) with {len(agent_tools)} tool(s)")
        return agent

    async def execute_task(
        self,
        agent: Agent,
        task: Task,
        context: str = "",
        feedback: Optional[str] = None,
        resume: bool = False,
    ) -> AgentExecutionResult:
        """Run ``agent`` on ``task``.

        Args:
            agent: Agent assigned to the task
            task: Task to work on
            context: Results of earlier tasks
            feedback: Human feedback to address (revision)
            resume: Continue a paused execution by replaying the last feedback

        Returns:
            AgentExecutionResult (never raises for model or tool failures)
        """
        if agent.status == AgentStatus.PAUSED:
            await self.transitions.update(agent, task, AgentStatus.RESUMED, "Agent resumed", {"resumed": True})

        if resume and agent.last_feedback_message and agent.current_task_id == task.id:
            message = agent.last_feedback_message
        elif feedback:
            if agent.current_task_id != task.id or not agent.system_message:
                await self._begin(agent, task)
            agent.current_iterations = 0
            message = self.prompts.work_on_feedback_feedback(agent, task, feedback)
        else:
            await self._begin(agent, task)
            message = self.prompts.initial_message(agent, task, context)

        logger.info(f"Agent {agent.name} working on task {task.id}{' (resumed)' if resume else ''}")
        loop = await self.iteration.run(agent, task, message)
        return self._to_result(agent, loop)

    async def _begin(self, agent: Agent, task: Task) -> None:
        """Start a fresh conversation for ``task``."""
        await self.history.clear(agent)
        agent.begin_task(task.id, self.prompts.system_message(agent, task))

    def _to_result(self, agent: Agent, loop: LoopOutcome) -> AgentExecutionResult:
        common = {"iterations": loop.iterations, "max_iterations": loop.max_iterations}
        if loop.kind == LoopOutcomeKind.FINAL_ANSWER:
            return AgentExecutionResult(
                outcome=AgentExecutionOutcome.TASK_COMPLETED, result=loop.final_answer, **common
            )
        if loop.kind == LoopOutcomeKind.BLOCKED:
            block_error = TaskBlockError(
                loop.block_reason or "Task blocked by agent",
                blocked_by=agent.name,
                is_agent_decision=True,
            )
            return AgentExecutionResult(
                outcome=AgentExecutionOutcome.AGENT_BLOCK_TASK,
                error=block_error.message,
                block_error=block_error,
                **common,
            )
        if loop.kind == LoopOutcomeKind.MAX_ITERATIONS:
            return AgentExecutionResult(
                outcome=AgentExecutionOutcome.MAX_ITERATIONS_ERROR,
                error=loop.error,
                last_output=loop.last_output.to_json_dict() if loop.last_output else None,
                **common,
            )
        if loop.kind == LoopOutcomeKind.ABORTED:
            return AgentExecutionResult(
                outcome=AgentExecutionOutcome.ABORTED,
                error=loop.error,
                abort_action=loop.abort_action,
                **common,
            )
        return AgentExecutionResult(outcome=AgentExecutionOutcome.AGENTIC_LOOP_ERROR, error=loop.error, **common)

    async def pause_agent(self, agent: Agent, task: Optional[Task]) -> bool:
        return await self.transitions.update(agent, task, AgentStatus.PAUSED, "Agent paused")

    async def reset_agent(self, agent: Agent) -> None:
        """Return the agent to INITIAL and clear its per-task state."""
        if agent.status != AgentStatus.INITIAL:
            await self.transitions.update(agent, None, AgentStatus.INITIAL, "Agent reset")
        await self.history.clear(agent)
        agent.reset()

    def select_agent(self, agents: Iterable[Agent], criteria: AgentSelectionCriteria) -> Optional[Agent]:
        """First agent matching every criterion, or None.

        An agent whose model has no known price never matches a price bound.
        """
        for agent in agents:
            if criteria.role and agent.role.lower() != criteria.role.lower():
                continue
            if any(not agent.has_tool(name) for name in criteria.required_tools):
                continue
            if criteria.max_input_price_per_million is not None or criteria.max_output_price_per_million is not None:
                pricing = self.cost_calculator.price_for(agent.llm_config.model)
                if pricing is None:
                    continue
                if (
                    criteria.max_input_price_per_million is not None
                    and pricing.input_price_per_million > criteria.max_input_price_per_million
                ):
                    continue
                if (
                    criteria.max_output_price_per_million is not None
                    and pricing.output_price_per_million > criteria.max_output_price_per_million
                ):
                    continue
            return agent
        return None
