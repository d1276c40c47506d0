"""Workflow logging, usage/cost tracking and telemetry for agent-team."""

from .logs import WorkflowLogger, export_logs, snapshot_agent, snapshot_task
from .telemetry import OPT_OUT_ENV, TelemetrySink, telemetry_opted_out
from .usage import (
    DEFAULT_PRICING,
    CostCalculator,
    calculate_task_stats,
    calculate_workflow_stats,
    fold_agent_logs,
)

__all__ = [
    # Workflow log
    "WorkflowLogger",
    "export_logs",
    "snapshot_agent",
    "snapshot_task",
    # Usage and cost
    "CostCalculator",
    "DEFAULT_PRICING",
    "calculate_task_stats",
    "calculate_workflow_stats",
    "fold_agent_logs",
    # Telemetry
    "TelemetrySink",
    "OPT_OUT_ENV",
    "telemetry_opted_out",
]
