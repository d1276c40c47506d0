"""Structured language-model output for agent-team.

Agents answer in a small JSON protocol (``thought`` / ``action`` /
``actionInput`` / ``observation`` / ``isFinalAnswerReady`` /
``finalAnswer``). These models carry the parsed form of one response.
"""

import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ParsedOutput(BaseModel):
    """One parsed agent response.

    Attributes:
        thought: Reasoning the agent shares
        action: Tool name, or ``"self_question"``
        action_input: Tool input (any JSON value) or question text
        observation: What the agent concluded from a tool result
        is_final_answer_ready: Agent signals it can answer next
        final_answer: The answer to the task (text or object)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    thought: Optional[str] = None
    action: Optional[str] = None
    action_input: Any = Field(None, alias="actionInput")
    observation: Optional[str] = None
    is_final_answer_ready: Optional[bool] = Field(None, alias="isFinalAnswerReady")
    final_answer: Any = Field(None, alias="finalAnswer")

    @field_validator("thought", "action", "observation", mode="before")
    @classmethod
    def as_text(cls, v: Any) -> Optional[str]:
        """Well-formed JSON with a non-string value still counts as output."""
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v, ensure_ascii=False)

    def to_json_dict(self) -> dict[str, Any]:
        """Wire form using the protocol's camelCase keys, unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ParseOutcome(str, Enum):
    """How a response was turned into a ``ParsedOutput``."""

    PARSED = "parsed"
    RECOVERED = "recovered"
    FAILED = "failed"


class ParseResult(BaseModel):
    """Result of parsing one raw response.

    Attributes:
        outcome: Strict parse, recovered parse or failure
        output: Parsed output (None on failure)
        raw: The original text
        error: Why parsing failed
    """

    outcome: ParseOutcome
    output: Optional[ParsedOutput] = None
    raw: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.output is not None


class LLMUsage(BaseModel):
    """Token usage and latency of one model call; ``-1`` when unreported."""

    input_tokens: int = -1
    output_tokens: int = -1
    latency_ms: float = 0.0


class ThinkingResult(BaseModel):
    """Everything produced by one thinking step."""

    raw: str
    parse: ParseResult
    usage: LLMUsage = Field(default_factory=LLMUsage)
    model: str = ""

    @property
    def output(self) -> Optional[ParsedOutput]:
        return self.parse.output
