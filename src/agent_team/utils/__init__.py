"""Utility modules for agent-team."""

from .errors import (
    AbortError,
    AgentTeamError,
    InvocationError,
    LLMInvocationError,
    PauseAbortError,
    StatusError,
    StatusErrorType,
    StopAbortError,
    TaskBlockError,
    TaskTimeoutError,
    ToolInvocationError,
    ValidationError,
    WorkflowError,
)
from .id import generate_agent_id, generate_task_id, generate_uuid
from .logging import (
    ColoredFormatter,
    LogEntry,
    LoggerContext,
    LogLevel,
    StructuredFormatter,
    get_logger,
    setup_logging,
)
from .retry import async_retry_with_exponential_backoff, is_retryable_error
from .timeout import TimeoutError, maybe_await, wait_with_timeout

__all__ = [
    # Errors
    "AgentTeamError",
    "ValidationError",
    "InvocationError",
    "LLMInvocationError",
    "ToolInvocationError",
    "AbortError",
    "StopAbortError",
    "PauseAbortError",
    "WorkflowError",
    "TaskBlockError",
    "TaskTimeoutError",
    "StatusError",
    "StatusErrorType",
    # ID generation
    "generate_uuid",
    "generate_agent_id",
    "generate_task_id",
    # Retry
    "async_retry_with_exponential_backoff",
    "is_retryable_error",
    # Timeout
    "TimeoutError",
    "wait_with_timeout",
    "maybe_await",
    # Logging
    "setup_logging",
    "get_logger",
    "LogLevel",
    "LogEntry",
    "StructuredFormatter",
    "ColoredFormatter",
    "LoggerContext",
]
