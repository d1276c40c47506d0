"""Transition tables for agent-team status machines.

Each entity kind has a table of ``TransitionRule`` entries. A rule allows
every ``from_`` status to move to every ``to`` status and may carry a
validator (sync or async, returning bool) and idempotent side effects.
The tables are plain data; ``state.machine`` compiles them into graphs.
"""

from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.status import AgentStatus, MessageStatus, StatusEntity, TaskStatus, WorkflowStatus


class TransitionContext(BaseModel):
    """A requested status change.

    Attributes:
        entity: Entity kind
        entity_id: Id of the agent/task/team/history being changed
        current_status: Status the entity is in
        target_status: Status requested
        metadata: Free-form details passed to validators and subscribers
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    entity: StatusEntity
    entity_id: str = ""
    current_status: str
    target_status: str
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("current_status", "target_status", mode="before")
    @classmethod
    def coerce_status(cls, v: Any) -> str:
        """Accept enum members as well as raw values."""
        return v.value if hasattr(v, "value") else v


Validator = Callable[[TransitionContext], Union[bool, Awaitable[bool]]]
SideEffect = Callable[[TransitionContext], Union[None, Awaitable[None]]]


class TransitionRule(BaseModel):
    """Allowed moves between statuses of one entity kind.

    Attributes:
        from_: Source statuses
        to: Target statuses
        validate: Optional check run before the transition is accepted
        side_effects: Optional idempotent callback run after acceptance
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)

    from_: tuple[str, ...]
    to: tuple[str, ...]
    validate_fn: Optional[Validator] = Field(None, alias="validate")
    side_effects: Optional[SideEffect] = None

    @field_validator("from_", "to", mode="before")
    @classmethod
    def coerce_statuses(cls, v: Any) -> tuple[str, ...]:
        items = v if isinstance(v, (list, tuple, set, frozenset)) else [v]
        return tuple(item.value if hasattr(item, "value") else item for item in items)

    def matches(self, current: str, target: str) -> bool:
        return current in self.from_ and target in self.to


def rule(from_: Any, to: Any, **kwargs: Any) -> TransitionRule:
    """Shorthand for building a ``TransitionRule``."""
    return TransitionRule(from_=from_, to=to, **kwargs)


A = AgentStatus

# Statuses an agent passes through while a task is in progress.
AGENT_ACTIVE_STATUSES = (
    A.ITERATION_START,
    A.THINKING,
    A.THINKING_END,
    A.THINKING_ERROR,
    A.THOUGHT,
    A.SELF_QUESTION,
    A.EXECUTING_ACTION,
    A.USING_TOOL,
    A.USING_TOOL_END,
    A.USING_TOOL_ERROR,
    A.TOOL_DOES_NOT_EXIST,
    A.OBSERVATION,
    A.FINAL_ANSWER,
    A.ISSUES_PARSING_LLM_OUTPUT,
    A.OUTPUT_SCHEMA_VALIDATION_ERROR,
    A.WEIRD_LLM_OUTPUT,
    A.ITERATION_END,
    A.RESUMED,
)

# Statuses that end an agent's work on a task.
AGENT_SETTLED_STATUSES = (
    A.TASK_COMPLETED,
    A.MAX_ITERATIONS_ERROR,
    A.AGENTIC_LOOP_ERROR,
    A.DECIDED_TO_BLOCK_TASK,
    A.TASK_ABORTED,
)

AGENT_RULES = (
    rule((A.INITIAL, *AGENT_SETTLED_STATUSES, A.RESUMED), A.ITERATION_START),
    rule(A.ITERATION_START, (A.THINKING, A.MAX_ITERATIONS_ERROR)),
    rule(A.THINKING, (A.THINKING_END, A.THINKING_ERROR)),
    rule(
        A.THINKING_END,
        (
            A.THOUGHT,
            A.SELF_QUESTION,
            A.EXECUTING_ACTION,
            A.OBSERVATION,
            A.FINAL_ANSWER,
            A.ISSUES_PARSING_LLM_OUTPUT,
            A.OUTPUT_SCHEMA_VALIDATION_ERROR,
            A.WEIRD_LLM_OUTPUT,
        ),
    ),
    rule(A.EXECUTING_ACTION, (A.USING_TOOL, A.TOOL_DOES_NOT_EXIST)),
    rule(A.USING_TOOL, (A.USING_TOOL_END, A.USING_TOOL_ERROR)),
    rule(
        (
            A.THOUGHT,
            A.SELF_QUESTION,
            A.OBSERVATION,
            A.FINAL_ANSWER,
            A.ISSUES_PARSING_LLM_OUTPUT,
            A.OUTPUT_SCHEMA_VALIDATION_ERROR,
            A.WEIRD_LLM_OUTPUT,
            A.USING_TOOL_END,
            A.USING_TOOL_ERROR,
            A.TOOL_DOES_NOT_EXIST,
            A.THINKING_ERROR,
        ),
        A.ITERATION_END,
    ),
    rule(
        A.ITERATION_END,
        (A.ITERATION_START, A.TASK_COMPLETED, A.MAX_ITERATIONS_ERROR, A.DECIDED_TO_BLOCK_TASK),
    ),
    rule(AGENT_ACTIVE_STATUSES, A.AGENTIC_LOOP_ERROR),
    rule((A.INITIAL, *AGENT_ACTIVE_STATUSES), (A.PAUSED, A.TASK_ABORTED)),
    rule(A.PAUSED, (A.RESUMED, A.TASK_ABORTED)),
    rule((*AGENT_ACTIVE_STATUSES, *AGENT_SETTLED_STATUSES, A.PAUSED), A.INITIAL),
)

T = TaskStatus

TASK_RULES = (
    rule(T.PENDING, T.TODO),
    rule(T.TODO, (T.DOING, T.BLOCKED)),
    rule(T.DOING, (T.DONE, T.ERROR, T.BLOCKED, T.AWAITING_VALIDATION, T.PAUSED, T.ABORTED)),
    rule(T.PAUSED, (T.RESUMED, T.ABORTED)),
    rule(T.RESUMED, (T.DOING, T.ABORTED)),
    rule(T.AWAITING_VALIDATION, (T.VALIDATED, T.REVISE)),
    rule(T.VALIDATED, T.DONE),
    rule((T.ERROR, T.BLOCKED, T.DONE), T.REVISE),
    rule(T.ERROR, T.BLOCKED),
    rule(T.BLOCKED, T.ERROR),
    rule(T.REVISE, T.DOING),
    rule(
        (
            T.DOING,
            T.PAUSED,
            T.RESUMED,
            T.BLOCKED,
            T.ERROR,
            T.AWAITING_VALIDATION,
            T.VALIDATED,
            T.REVISE,
            T.ABORTED,
            T.DONE,
        ),
        T.TODO,
    ),
)

W = WorkflowStatus

WORKFLOW_RULES = (
    rule(W.INITIAL, W.RUNNING),
    rule(W.RUNNING, (W.PAUSED, W.STOPPING, W.ERRORED, W.FINISHED, W.BLOCKED)),
    rule(W.PAUSED, (W.RUNNING, W.STOPPING)),
    rule(W.STOPPING, W.STOPPED),
    rule(W.BLOCKED, (W.RUNNING, W.ERRORED)),
    rule((W.ERRORED, W.FINISHED), W.RUNNING),
    rule((W.STOPPED, W.ERRORED, W.FINISHED, W.BLOCKED), W.INITIAL),
)

M = MessageStatus

# History operations start only from a settled status
MESSAGE_IDLE = (M.INITIAL, M.PROCESSED, M.RETRIEVED, M.CLEARED, M.ERROR)

MESSAGE_RULES = (
    rule(MESSAGE_IDLE, M.QUEUED),
    rule(M.QUEUED, (M.PROCESSING, M.ERROR)),
    rule(M.PROCESSING, (M.PROCESSED, M.ERROR)),
    rule(MESSAGE_IDLE, M.RETRIEVING),
    rule(M.RETRIEVING, (M.RETRIEVED, M.ERROR)),
    rule(MESSAGE_IDLE, M.CLEARING),
    rule(M.CLEARING, (M.CLEARED, M.ERROR)),
)

TRANSITION_RULES: dict[StatusEntity, tuple[TransitionRule, ...]] = {
    StatusEntity.AGENT: AGENT_RULES,
    StatusEntity.TASK: TASK_RULES,
    StatusEntity.WORKFLOW: WORKFLOW_RULES,
    StatusEntity.MESSAGE: MESSAGE_RULES,
}
