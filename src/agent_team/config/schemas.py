"""Configuration schemas for agent-team.

This module defines Pydantic models for validating team configuration
files and programmatic agent/task definitions.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Default environment variable holding the API key for each provider.
DEFAULT_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "ollama": None,
    "custom": None,
}

DEFAULT_ENDPOINTS = {
    "deepseek": "https://api.deepseek.com/v1",
    "ollama": "http://localhost:11434/v1",
}


class LLMConfig(BaseModel):
    """Configuration for the language model behind an agent."""

    provider: Literal["openai", "deepseek", "ollama", "custom"] = Field(
        default="openai", description="Provider family (OpenAI-compatible API)"
    )
    model: str = Field(default="gpt-4o-mini", min_length=1, description="Model identifier")
    endpoint: Optional[str] = Field(None, description="API base URL; provider default when omitted")
    api_key_env: Optional[str] = Field(None, description="Environment variable name containing the API key")
    api_key: Optional[str] = Field(None, description="Inline API key (prefer api_key_env)", repr=False)
    temperature: float = Field(default=0.7, ge=0, le=2, description="Sampling temperature")
    max_tokens: Optional[int] = Field(default=None, ge=1, description="Maximum tokens to generate")
    streaming: bool = Field(default=False, description="Stream completions chunk by chunk")
    timeout_ms: int = Field(default=60_000, ge=1, description="Per-request transport timeout")
    max_retries: int = Field(default=3, ge=1, description="Attempts for retryable transport errors")

    @property
    def resolved_api_key_env(self) -> Optional[str]:
        """The environment variable consulted for the API key."""
        return self.api_key_env or DEFAULT_API_KEY_ENV.get(self.provider)

    @property
    def resolved_endpoint(self) -> Optional[str]:
        """The base URL handed to the client, if any."""
        return self.endpoint or DEFAULT_ENDPOINTS.get(self.provider)


class AgentConfig(BaseModel):
    """Configuration for an agent."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Agent name, unique within a team")
    role: str = Field(..., min_length=1, description="Agent's role")
    goal: str = Field(..., min_length=1, description="What the agent tries to achieve")
    background: str = Field(..., min_length=1, description="Background injected into the system prompt")
    llm_config: LLMConfig = Field(default_factory=LLMConfig, description="Language model configuration")
    tools: list[str] = Field(
        default_factory=list, description="Tool names or 'module:attribute' import paths"
    )
    kanban_tools: list[str] = Field(default_factory=list, description="Built-in board tools, e.g. block_task")
    max_iterations: int = Field(default=10, ge=1, le=1000, description="Maximum reasoning iterations")
    force_final_answer: bool = Field(default=True, description="Ask for a final answer two iterations before the cap")

    @field_validator("name", "role", "goal", "background")
    @classmethod
    def not_blank(cls, v: str) -> str:
        """Reject whitespace-only values."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class TaskConfig(BaseModel):
    """Configuration for a task."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(None, description="Stable identifier; generated when omitted")
    title: str = Field(default="", description="Short title")
    description: str = Field(..., min_length=1, description="What needs to be done")
    expected_output: str = Field(default="", description="Shape of the expected result")
    agent: Optional[str] = Field(None, description="Name of the agent assigned to the task")
    agent_role: Optional[str] = Field(None, description="Select the first agent with this role when agent is unset")
    depends_on: list[str] = Field(default_factory=list, description="Ids of tasks that must be DONE first")
    external_validation_required: bool = Field(default=False, description="Require validate_task before DONE")


class WorkflowSettings(BaseModel):
    """Scheduling limits for the workflow control plane."""

    max_concurrency: Optional[int] = Field(None, ge=1, description="Maximum tasks running at once (None = unbounded)")
    task_timeout_ms: Optional[int] = Field(300_000, ge=1, description="Per-task watchdog; None disables it")


class StatusSettings(BaseModel):
    """Limits for the status registry."""

    validation_timeout_ms: int = Field(default=5_000, ge=1, description="Budget for transition validators")
    max_history: int = Field(default=1_000, ge=1, description="Status change events kept in memory")


class TelemetrySettings(BaseModel):
    """Anonymous usage telemetry."""

    enabled: bool = Field(default=True, description="Emit telemetry signals")


class ModelPricing(BaseModel):
    """Price per million tokens for one model."""

    input_price_per_million: float = Field(..., ge=0)
    output_price_per_million: float = Field(..., ge=0)


class TeamConfig(BaseModel):
    """Top-level configuration for a team."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Team name")
    env: dict[str, str] = Field(default_factory=dict, description="Environment values (API keys) for the team")
    inputs: dict[str, Any] = Field(default_factory=dict, description="Default workflow inputs")
    agents: list[AgentConfig] = Field(..., min_length=1, description="Agents of the team")
    tasks: list[TaskConfig] = Field(..., min_length=1, description="Tasks in board order")
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)
    status: StatusSettings = Field(default_factory=StatusSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)
    pricing: dict[str, ModelPricing] = Field(default_factory=dict, description="Extra or overriding model prices")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")

    @model_validator(mode="after")
    def check_references(self) -> "TeamConfig":
        """Check agent names are unique and tasks reference known agents/tasks."""
        names = [agent.name for agent in self.agents]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate agent names: {', '.join(duplicates)}")

        task_ids = [task.id for task in self.tasks if task.id]
        if len(task_ids) != len(set(task_ids)):
            raise ValueError("Duplicate task ids")

        for task in self.tasks:
            if task.agent and task.agent not in names:
                raise ValueError(f"Task '{task.title or task.description}' references unknown agent '{task.agent}'")
            unknown = [dep for dep in task.depends_on if dep not in task_ids]
            if unknown:
                raise ValueError(f"Task '{task.id}' depends on unknown tasks: {', '.join(unknown)}")
        return self


def validate_agent_config(data: dict[str, Any]) -> AgentConfig:
    """Validate agent configuration data.

    Raises:
        pydantic.ValidationError: If the configuration is invalid
    """
    return AgentConfig(**data)


def validate_team_config(data: dict[str, Any]) -> TeamConfig:
    """Validate team configuration data.

    Raises:
        pydantic.ValidationError: If the configuration is invalid
    """
    return TeamConfig(**data)
