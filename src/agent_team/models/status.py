"""Status enumerations for agent-team.

One ``str`` enum per entity kind tracked by the status registry, plus the
small enums used by workflow logs and feedback.
"""

from enum import Enum


class StatusEntity(str, Enum):
    """Entity kinds whose status changes are validated by the registry."""

    AGENT = "agent"
    TASK = "task"
    WORKFLOW = "workflow"
    MESSAGE = "message"


class AgentStatus(str, Enum):
    """Status of an agent while it works through a task."""

    INITIAL = "INITIAL"
    ITERATION_START = "ITERATION_START"
    THINKING = "THINKING"
    THINKING_END = "THINKING_END"
    THINKING_ERROR = "THINKING_ERROR"
    THOUGHT = "THOUGHT"
    SELF_QUESTION = "SELF_QUESTION"
    EXECUTING_ACTION = "EXECUTING_ACTION"
    USING_TOOL = "USING_TOOL"
    USING_TOOL_END = "USING_TOOL_END"
    USING_TOOL_ERROR = "USING_TOOL_ERROR"
    TOOL_DOES_NOT_EXIST = "TOOL_DOES_NOT_EXIST"
    OBSERVATION = "OBSERVATION"
    FINAL_ANSWER = "FINAL_ANSWER"
    ISSUES_PARSING_LLM_OUTPUT = "ISSUES_PARSING_LLM_OUTPUT"
    OUTPUT_SCHEMA_VALIDATION_ERROR = "OUTPUT_SCHEMA_VALIDATION_ERROR"
    WEIRD_LLM_OUTPUT = "WEIRD_LLM_OUTPUT"
    ITERATION_END = "ITERATION_END"
    MAX_ITERATIONS_ERROR = "MAX_ITERATIONS_ERROR"
    AGENTIC_LOOP_ERROR = "AGENTIC_LOOP_ERROR"
    DECIDED_TO_BLOCK_TASK = "DECIDED_TO_BLOCK_TASK"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_ABORTED = "TASK_ABORTED"
    PAUSED = "PAUSED"
    RESUMED = "RESUMED"


class TaskStatus(str, Enum):
    """Status of a task on the team board."""

    PENDING = "PENDING"
    TODO = "TODO"
    DOING = "DOING"
    BLOCKED = "BLOCKED"
    PAUSED = "PAUSED"
    RESUMED = "RESUMED"
    REVISE = "REVISE"
    AWAITING_VALIDATION = "AWAITING_VALIDATION"
    VALIDATED = "VALIDATED"
    DONE = "DONE"
    ERROR = "ERROR"
    ABORTED = "ABORTED"


class WorkflowStatus(str, Enum):
    """Status of a team workflow."""

    INITIAL = "INITIAL"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    ERRORED = "ERRORED"
    FINISHED = "FINISHED"
    BLOCKED = "BLOCKED"

    @property
    def is_settled(self) -> bool:
        """True when the workflow is no longer making progress on its own."""
        return self in (
            WorkflowStatus.STOPPED,
            WorkflowStatus.ERRORED,
            WorkflowStatus.FINISHED,
            WorkflowStatus.BLOCKED,
        )


class MessageStatus(str, Enum):
    """Status of a message-history operation."""

    INITIAL = "INITIAL"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    RETRIEVING = "RETRIEVING"
    RETRIEVED = "RETRIEVED"
    CLEARING = "CLEARING"
    CLEARED = "CLEARED"
    ERROR = "ERROR"


class FeedbackStatus(str, Enum):
    """Status of a human feedback item attached to a task."""

    PENDING = "PENDING"
    PROCESSED = "PROCESSED"


class LogType(str, Enum):
    """Kinds of workflow log entries."""

    WORKFLOW_STATUS_UPDATE = "WorkflowStatusUpdate"
    AGENT_STATUS_UPDATE = "AgentStatusUpdate"
    TASK_STATUS_UPDATE = "TaskStatusUpdate"


class WorkflowAction(str, Enum):
    """Control actions that can abort in-flight calls."""

    STOP = "STOP"
    PAUSE = "PAUSE"
    RESUME = "RESUME"
    INITIATE = "INITIATE"


STATUS_ENUMS: dict[StatusEntity, type[Enum]] = {
    StatusEntity.AGENT: AgentStatus,
    StatusEntity.TASK: TaskStatus,
    StatusEntity.WORKFLOW: WorkflowStatus,
    StatusEntity.MESSAGE: MessageStatus,
}
