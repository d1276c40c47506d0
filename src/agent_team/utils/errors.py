"""Error taxonomy for agent-team.

All errors derive from ``AgentTeamError`` and carry an optional root
error, a recommended action and free-form context so they can be
rendered for humans and embedded into workflow log metadata.
"""

from enum import Enum
from typing import Any, Optional


class AgentTeamError(Exception):
    """Base error for the agent-team package.

    Attributes:
        message: Human readable description
        root_error: Underlying exception, if any
        recommended_action: Hint for the operator
        context: Structured details for logs
    """

    def __init__(
        self,
        message: str,
        *,
        root_error: Optional[BaseException] = None,
        recommended_action: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.root_error = root_error
        self.recommended_action = recommended_action
        self.context = dict(context or {})

    @property
    def pretty_message(self) -> str:
        """Multi-line rendering used by the CLI and error logs."""
        lines = [f"{type(self).__name__}: {self.message}"]
        if self.root_error is not None:
            lines.append(f"Caused by: {type(self.root_error).__name__}: {self.root_error}")
        if self.recommended_action:
            lines.append(f"Recommended action: {self.recommended_action}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation for log metadata."""
        data: dict[str, Any] = {"name": type(self).__name__, "message": self.message}
        if self.root_error is not None:
            data["root_error"] = str(self.root_error)
        if self.recommended_action:
            data["recommended_action"] = self.recommended_action
        if self.context:
            data["context"] = self.context
        return data


class ValidationError(AgentTeamError):
    """Invalid configuration or malformed input.

    Attributes:
        errors: Every problem found, so callers can report them at once
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])


class InvocationError(AgentTeamError):
    """Failure of an external call (language model or tool)."""


class LLMInvocationError(InvocationError):
    """The language-model provider call failed."""


class ToolInvocationError(InvocationError):
    """A tool raised while being invoked."""

    def __init__(self, message: str, tool_name: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.tool_name = tool_name


class AbortError(AgentTeamError):
    """An in-flight call was rejected by the workflow control plane."""

    def __init__(self, message: str = "Operation aborted", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class StopAbortError(AbortError):
    """Raised into in-flight calls when the workflow is stopped."""

    def __init__(self, message: str = "Workflow stopped", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class PauseAbortError(AbortError):
    """Raised into in-flight calls when the workflow is paused."""

    def __init__(self, message: str = "Workflow paused", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class WorkflowError(AgentTeamError):
    """Illegal or failed workflow control operation."""


class TaskBlockError(AgentTeamError):
    """A task could not proceed.

    Attributes:
        block_reason: Why the task is blocked
        blocked_by: Name of the agent (or component) that blocked it
        is_agent_decision: True when an agent chose to block via ``block_task``
    """

    def __init__(
        self,
        block_reason: str,
        blocked_by: str,
        is_agent_decision: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(f"Task blocked: {block_reason}", **kwargs)
        self.block_reason = block_reason
        self.blocked_by = blocked_by
        self.is_agent_decision = is_agent_decision

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            block_reason=self.block_reason,
            blocked_by=self.blocked_by,
            is_agent_decision=self.is_agent_decision,
        )
        return data


class TaskTimeoutError(AgentTeamError):
    """A task exceeded its execution watchdog."""

    def __init__(self, task_id: str, timeout_ms: int, **kwargs: Any) -> None:
        super().__init__(f"Task {task_id} timed out after {timeout_ms}ms", **kwargs)
        self.task_id = task_id
        self.timeout_ms = timeout_ms


class StatusErrorType(str, Enum):
    """Reasons a status transition can be refused."""

    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    TIMEOUT = "TIMEOUT"
    CONCURRENT_TRANSITION = "CONCURRENT_TRANSITION"
    INVALID_STATE = "INVALID_STATE"


class StatusError(AgentTeamError):
    """A refused status transition.

    The registry records and logs these instead of raising them.
    """

    def __init__(self, error_type: StatusErrorType, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.error_type = error_type

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["type"] = self.error_type.value
        return data
