"""Resource and cost tracking for agent-team.

Usage statistics are never stored as mutable counters; they are folded
from the workflow log on demand:

- ``THINKING_END`` entries carry token usage, latency and the model name
- ``THINKING_ERROR`` entries count failed model calls
- ``ISSUES_PARSING_LLM_OUTPUT`` entries count unparseable responses
- ``ITERATION_END`` entries count iterations

Costs are derived from per-million-token prices.
"""

from typing import Iterable, Optional

from ..config.schemas import ModelPricing
from ..models.log import WorkflowLog
from ..models.stats import CostDetails, LLMUsageStats, TaskStats, WorkflowStats
from ..models.status import AgentStatus, LogType, TaskStatus
from ..models.task import Task, now_ms
from ..models.team import TeamState

# USD per million tokens (input, output)
DEFAULT_PRICING: dict[str, ModelPricing] = {
    name: ModelPricing(input_price_per_million=inp, output_price_per_million=out)
    for name, (inp, out) in {
        "gpt-4o-mini": (0.15, 0.6),
        "gpt-4o": (5.0, 15.0),
        "gpt-4-turbo": (10.0, 30.0),
        "gpt-4": (30.0, 60.0),
        "gpt-3.5-turbo": (0.5, 1.5),
        "claude-3-5-sonnet": (3.0, 15.0),
        "claude-3-opus": (15.0, 75.0),
        "claude-3-sonnet": (3.0, 15.0),
        "claude-3-haiku": (0.25, 1.25),
        "gemini-1.5-flash": (0.35, 1.05),
        "gemini-1.5-pro": (3.5, 10.5),
        "deepseek-chat": (0.27, 1.1),
    }.items()
}


class CostCalculator:
    """Computes monetary cost from token usage.

    Args:
        pricing: Extra or overriding prices, merged over ``DEFAULT_PRICING``
    """

    def __init__(self, pricing: Optional[dict[str, ModelPricing]] = None) -> None:
        self.pricing = {**DEFAULT_PRICING, **(pricing or {})}

    def price_for(self, model: str) -> Optional[ModelPricing]:
        """Exact match first, then the longest known prefix (dated model versions)."""
        if model in self.pricing:
            return self.pricing[model]
        candidates = [name for name in self.pricing if model.startswith(name)]
        if not candidates:
            return None
        return self.pricing[max(candidates, key=len)]

    def model_cost(self, model: str, usage: LLMUsageStats) -> CostDetails:
        """Cost of one model's usage; ``-1`` values when the model is unknown."""
        price = self.price_for(model)
        if price is None:
            return CostDetails.unknown()
        cost_in = usage.input_tokens / 1_000_000 * price.input_price_per_million
        cost_out = usage.output_tokens / 1_000_000 * price.output_price_per_million
        return CostDetails(
            cost_input_tokens=round(cost_in, 6),
            cost_output_tokens=round(cost_out, 6),
            total_cost=round(cost_in + cost_out, 6),
        )

    def total_cost(self, model_usage: dict[str, LLMUsageStats]) -> CostDetails:
        """Sum of per-model costs; unknown as soon as one model is unknown."""
        total = CostDetails()
        for model, usage in model_usage.items():
            cost = self.model_cost(model, usage)
            if cost.total_cost < 0:
                return CostDetails.unknown()
            total = CostDetails(
                cost_input_tokens=round(total.cost_input_tokens + cost.cost_input_tokens, 6),
                cost_output_tokens=round(total.cost_output_tokens + cost.cost_output_tokens, 6),
                total_cost=round(total.total_cost + cost.total_cost, 6),
            )
        return total


def fold_agent_logs(logs: Iterable[WorkflowLog]) -> tuple[dict[str, LLMUsageStats], int]:
    """Fold agent log entries into per-model usage and an iteration count."""
    model_usage: dict[str, LLMUsageStats] = {}
    iterations = 0

    for log in logs:
        if log.log_type != LogType.AGENT_STATUS_UPDATE:
            continue
        model = str(log.metadata.get("model") or (log.agent.model if log.agent else "unknown"))
        current = model_usage.get(model, LLMUsageStats())

        if log.agent_status == AgentStatus.THINKING_END:
            usage = log.metadata.get("usage") or {}
            input_tokens = int(usage.get("input_tokens", -1))
            output_tokens = int(usage.get("output_tokens", -1))
            model_usage[model] = current.merge(
                LLMUsageStats(
                    input_tokens=max(input_tokens, 0),
                    output_tokens=max(output_tokens, 0),
                    calls_count=1,
                    total_latency_ms=float(usage.get("latency_ms", 0.0)),
                )
            )
        elif log.agent_status == AgentStatus.THINKING_ERROR:
            model_usage[model] = current.merge(LLMUsageStats(calls_error_count=1))
        elif log.agent_status == AgentStatus.ISSUES_PARSING_LLM_OUTPUT:
            model_usage[model] = current.merge(LLMUsageStats(parsing_errors=1))
        elif log.agent_status == AgentStatus.ITERATION_END:
            iterations += 1

    return model_usage, iterations


def _sum_usage(model_usage: dict[str, LLMUsageStats]) -> LLMUsageStats:
    total = LLMUsageStats()
    for usage in model_usage.values():
        total = total.merge(usage)
    return total


def task_start_index(task: Task, logs: list[WorkflowLog]) -> Optional[int]:
    """Index of the DOING entry that started the task's current run.

    DOING entries written when a paused task resumes do not restart the
    clock.
    """
    for index in range(len(logs) - 1, -1, -1):
        log = logs[index]
        if (
            log.log_type == LogType.TASK_STATUS_UPDATE
            and log.task is not None
            and log.task.id == task.id
            and log.task_status == TaskStatus.DOING
            and not log.metadata.get("resumed")
        ):
            return index
    return None


def calculate_task_stats(
    task: Task,
    logs: list[WorkflowLog],
    calculator: Optional[CostCalculator] = None,
) -> TaskStats:
    """Statistics of the task's current run, folded from ``logs``."""
    calculator = calculator or CostCalculator()
    start = task_start_index(task, logs)
    window = logs[start:] if start is not None else logs
    task_logs = [log for log in window if log.task is not None and log.task.id == task.id]

    model_usage, iterations = fold_agent_logs(task_logs)
    start_time = logs[start].timestamp if start is not None else None
    end_time = now_ms()
    return TaskStats(
        start_time=start_time,
        end_time=end_time,
        duration=(end_time - start_time) / 1000 if start_time is not None else 0.0,
        llm_usage_stats=_sum_usage(model_usage),
        iteration_count=iterations,
        model_usage=model_usage,
        cost_details=calculator.total_cost(model_usage),
    )


def workflow_start_index(logs: list[WorkflowLog]) -> Optional[int]:
    for index in range(len(logs) - 1, -1, -1):
        log = logs[index]
        if log.log_type == LogType.WORKFLOW_STATUS_UPDATE and log.metadata.get("event") == "start":
            return index
    return None


def calculate_workflow_stats(state: TeamState, calculator: Optional[CostCalculator] = None) -> WorkflowStats:
    """Statistics of the current (or last) workflow run."""
    calculator = calculator or CostCalculator()
    logs = state.workflow_logs
    start = workflow_start_index(logs)
    window = logs[start:] if start is not None else logs

    model_usage, iterations = fold_agent_logs(window)
    start_time = logs[start].timestamp if start is not None else None
    end_time = now_ms()
    return WorkflowStats(
        start_time=start_time,
        end_time=end_time,
        duration=(end_time - start_time) / 1000 if start_time is not None else 0.0,
        llm_usage_stats=_sum_usage(model_usage),
        iteration_count=iterations,
        model_usage=model_usage,
        cost_details=calculator.total_cost(model_usage),
        task_count=len(state.tasks),
        agent_count=len(state.agents),
        team_name=state.name,
    )


