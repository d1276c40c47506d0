"""Configuration management for agent-team."""

from .loader import (
    expand_env_vars,
    format_validation_errors,
    load_config_file,
    load_team_config,
    parse_team_config,
)
from .schemas import (
    AgentConfig,
    LLMConfig,
    ModelPricing,
    StatusSettings,
    TaskConfig,
    TeamConfig,
    TelemetrySettings,
    WorkflowSettings,
    validate_agent_config,
    validate_team_config,
)

__all__ = [
    # Loader
    "load_config_file",
    "load_team_config",
    "parse_team_config",
    "expand_env_vars",
    "format_validation_errors",
    # Schemas
    "LLMConfig",
    "AgentConfig",
    "TaskConfig",
    "TeamConfig",
    "WorkflowSettings",
    "StatusSettings",
    "TelemetrySettings",
    "ModelPricing",
    "validate_agent_config",
    "validate_team_config",
]
