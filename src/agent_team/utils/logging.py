"""Logging configuration for agent-team.

This module provides console and structured (JSON) logging for the
``agent_team`` package, plus a context helper that tags every record
emitted inside a block with workflow identifiers (team, task, agent).
"""

import json
import logging
import sys
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

PACKAGE_LOGGER = "agent_team"


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogEntry(BaseModel):
    """Structured log entry.

    Attributes:
        timestamp: ISO-8601 timestamp of the record
        level: Log level name
        message: Rendered log message
        logger: Logger name
        context: Source location plus any workflow context attached by
            ``LoggerContext``
    """

    timestamp: str
    level: str
    message: str
    logger: str
    context: dict[str, Any] = Field(default_factory=dict)


class StructuredFormatter(logging.Formatter):
    """Formatter producing one JSON object (or a plain line) per record."""

    def __init__(self, format_type: str = "json") -> None:
        """Initialize the structured formatter.

        Args:
            format_type: Output format ("json" or "text")
        """
        super().__init__()
        self.format_type = format_type

    def format(self, record: logging.LogRecord) -> str:
        entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created).isoformat(),
            level=record.levelname,
            message=record.getMessage(),
            logger=record.name,
            context={
                "function": record.funcName,
                "line": record.lineno,
                "module": record.module,
            },
        )
        entry.context.update(getattr(record, "context", {}) or {})

        if record.exc_info:
            entry.context["exception"] = self.formatException(record.exc_info)

        if self.format_type == "json":
            return json.dumps(entry.model_dump(), default=str)

        suffix = ""
        workflow_context = getattr(record, "context", None)
        if workflow_context:
            suffix = " " + " ".join(f"{k}={v}" for k, v in workflow_context.items())
        return f"{entry.timestamp} [{entry.level}] {entry.logger}: {entry.message}{suffix}"


class ColoredFormatter(logging.Formatter):
    """Colored console formatter using ANSI escape codes."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.COLORS.get(record.levelname, "")
        level_name = f"{level_color}{record.levelname}{self.COLORS['RESET']}"
        line = f"[{level_name}] {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str | LogLevel = "INFO",
    format_type: str = "text",
    use_colors: bool = True,
    log_file: str | None = None,
) -> logging.Logger:
    """Set up logging for the agent_team package.

    Only the package logger is configured; records still propagate to the
    root logger so host applications (and pytest's caplog) see them.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("json", "text")
        use_colors: Whether to use colors in console output
        log_file: Optional file to write logs to

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    level_name = level.value if isinstance(level, LogLevel) else level.upper()
    package_logger.setLevel(getattr(logging, level_name))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    if use_colors and format_type == "text":
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(StructuredFormatter(format_type=format_type))
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(format_type="json"))
        package_logger.addHandler(file_handler)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


class LoggerContext:
    """Context manager that attaches workflow context to log records.

    Example:
        with LoggerContext(logger, {"team": "research", "task_id": "task_1"}):
            logger.info("Task started")  # record.context carries team/task_id
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any]) -> None:
        self.logger = logger
        self.context = context
        self.old_factory: Any = None

    def __enter__(self) -> "LoggerContext":
        self.old_factory = self.logger.makeRecord
        old_factory = self.old_factory
        context = self.context

        def make_record_with_context(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = old_factory(*args, **kwargs)
            merged = dict(getattr(record, "context", {}) or {})
            merged.update(context)
            record.context = merged
            return record

        self.logger.makeRecord = make_record_with_context  # type: ignore[method-assign]
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self.old_factory:
            self.logger.makeRecord = self.old_factory  # type: ignore[method-assign]
