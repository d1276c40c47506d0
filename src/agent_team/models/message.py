"""Message entity for agent-team.

This module defines the chat messages that make up an agent's history.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    """A message in an agent's conversation history.

    Attributes:
        role: Message role ("system", "user", "assistant")
        content: Message content
        timestamp: When the message was recorded
    """

    role: Literal["system", "user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    timestamp: datetime = Field(default_factory=datetime.now, description="Message timestamp")

    def is_from_assistant(self) -> bool:
        """Check if this message is from the assistant."""
        return self.role == "assistant"

    def to_llm(self) -> dict[str, str]:
        """Convert to the ``{"role", "content"}`` shape language-model clients take."""
        return {"role": self.role, "content": self.content}
