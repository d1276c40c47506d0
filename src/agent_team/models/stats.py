"""Usage and cost statistics for agent-team.

Everything here is derived from the workflow log; none of these models
is a source of truth on its own.
"""

from typing import Optional

from pydantic import BaseModel, Field


class LLMUsageStats(BaseModel):
    """Language-model usage folded from agent log entries.

    Attributes:
        input_tokens: Prompt tokens reported by the provider
        output_tokens: Completion tokens reported by the provider
        calls_count: Successful model calls
        calls_error_count: Failed model calls
        parsing_errors: Responses that could not be parsed
        total_latency_ms: Sum of call latencies
    """

    input_tokens: int = 0
    output_tokens: int = 0
    calls_count: int = 0
    calls_error_count: int = 0
    parsing_errors: int = 0
    total_latency_ms: float = 0.0

    @property
    def average_latency_ms(self) -> float:
        return self.total_latency_ms / self.calls_count if self.calls_count else 0.0

    def merge(self, other: "LLMUsageStats") -> "LLMUsageStats":
        """Return the field-wise sum of two usage records."""
        return LLMUsageStats(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            calls_count=self.calls_count + other.calls_count,
            calls_error_count=self.calls_error_count + other.calls_error_count,
            parsing_errors=self.parsing_errors + other.parsing_errors,
            total_latency_ms=self.total_latency_ms + other.total_latency_ms,
        )


class CostDetails(BaseModel):
    """Monetary cost in USD; ``-1`` marks a model without known pricing."""

    cost_input_tokens: float = 0.0
    cost_output_tokens: float = 0.0
    total_cost: float = 0.0

    @classmethod
    def unknown(cls) -> "CostDetails":
        return cls(cost_input_tokens=-1, cost_output_tokens=-1, total_cost=-1)


class TaskStats(BaseModel):
    """Statistics recorded on a task when it completes.

    Attributes:
        start_time: Epoch ms of the last DOING transition
        end_time: Epoch ms of completion
        duration: Seconds between start and end
        llm_usage_stats: Aggregated usage across models
        iteration_count: Finished iterations
        model_usage: Usage per model identifier
        cost_details: Cost computed from ``model_usage``
    """

    start_time: Optional[int] = None
    end_time: int = 0
    duration: float = 0.0
    llm_usage_stats: LLMUsageStats = Field(default_factory=LLMUsageStats)
    iteration_count: int = 0
    model_usage: dict[str, LLMUsageStats] = Field(default_factory=dict)
    cost_details: CostDetails = Field(default_factory=CostDetails)


class WorkflowStats(BaseModel):
    """Statistics for a whole workflow run."""

    start_time: Optional[int] = None
    end_time: int = 0
    duration: float = 0.0
    llm_usage_stats: LLMUsageStats = Field(default_factory=LLMUsageStats)
    iteration_count: int = 0
    model_usage: dict[str, LLMUsageStats] = Field(default_factory=dict)
    cost_details: CostDetails = Field(default_factory=CostDetails)
    task_count: int = 0
    agent_count: int = 0
    team_name: str = ""
