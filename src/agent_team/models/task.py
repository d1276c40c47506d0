"""Task entity for agent-team.

This module defines the Task entity representing a unit of work on the
team board, and the feedback items humans attach to it.
"""

import re
import time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.id import generate_task_id
from .agent import Agent
from .stats import TaskStats
from .status import FeedbackStatus, TaskStatus

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class FeedbackItem(BaseModel):
    """Human feedback on a task.

    Attributes:
        content: Feedback text sent to the agent
        status: PENDING until the revised task settles
        timestamp: Epoch ms when the feedback was given
    """

    content: str = Field(..., min_length=1)
    status: FeedbackStatus = Field(default=FeedbackStatus.PENDING)
    timestamp: int = Field(default_factory=now_ms)


class Task(BaseModel):
    """Represents a unit of work assigned to one agent.

    Attributes:
        id: Unique identifier ("task_" + UUID v4 unless given)
        title: Short title
        description: What needs to be done; ``{name}`` placeholders are
            filled from workflow inputs
        expected_output: Shape of the expected result
        agent: Assigned agent (None only before assignment)
        status: Current board status
        depends_on: Ids of tasks that must be DONE before this one starts
        external_validation_required: Require a human validation before DONE
        output_schema: Pydantic model the final answer must validate against
        stats: Statistics recorded on completion
        feedback_history: Human feedback, oldest first
        result: Final answer (string, or dict when an output schema is set)
        error: Last error message
        inputs: Workflow inputs used for interpolation
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=generate_task_id, description="Unique identifier")
    title: str = Field(default="", description="Short title")
    description: str = Field(..., min_length=1, description="What needs to be done")
    expected_output: str = Field(default="", description="Expected result")
    agent: Optional[Agent] = Field(None, description="Assigned agent")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Current board status")
    depends_on: list[str] = Field(default_factory=list, description="Prerequisite task ids")
    external_validation_required: bool = Field(default=False)
    output_schema: Optional[type[BaseModel]] = Field(None, description="Schema for the final answer")
    stats: Optional[TaskStats] = Field(None, description="Statistics recorded on completion")
    feedback_history: list[FeedbackItem] = Field(default_factory=list)
    result: Any = Field(None, description="Final answer")
    error: Optional[str] = Field(None, description="Last error message")
    inputs: dict[str, Any] = Field(default_factory=dict, description="Workflow inputs")

    @property
    def label(self) -> str:
        """Title if set, otherwise a shortened description."""
        if self.title:
            return self.title
        return self.description if len(self.description) <= 60 else self.description[:57] + "..."

    @property
    def interpolated_description(self) -> str:
        """Description with ``{placeholders}`` replaced from ``inputs``; unknown names are kept."""
        return PLACEHOLDER_PATTERN.sub(
            lambda m: str(self.inputs.get(m.group(1), m.group(0))), self.description
        )

    @property
    def pending_feedback(self) -> list[FeedbackItem]:
        return [f for f in self.feedback_history if f.status == FeedbackStatus.PENDING]

    def mark_feedback_processed(self) -> None:
        """Mark every pending feedback item as processed."""
        self.feedback_history = [
            f.model_copy(update={"status": FeedbackStatus.PROCESSED}) if f.status == FeedbackStatus.PENDING else f
            for f in self.feedback_history
        ]
