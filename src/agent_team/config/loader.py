"""Configuration loader for agent-team.

This module loads team definitions from YAML or JSON files, expanding
``${VAR}`` / ``${VAR:-default}`` references against the process
environment before validation.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..utils.errors import ValidationError
from .schemas import TeamConfig

# Pattern for environment variable substitution: ${VAR_NAME} or ${VAR_NAME:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def expand_env_vars(value: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively expand environment variables in a value.

    Args:
        value: The value to expand (str, dict or list)
        environ: Mapping to resolve names against (default: ``os.environ``)

    Returns:
        The value with environment variables expanded
    """
    env = os.environ if environ is None else environ

    if isinstance(value, str):

        def replace_env_var(match: re.Match[str]) -> str:
            default = match.group(2) if match.group(2) is not None else ""
            return env.get(match.group(1), default)

        return ENV_VAR_PATTERN.sub(replace_env_var, value)
    if isinstance(value, dict):
        return {k: expand_env_vars(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, env) for item in value]
    return value


def load_config_file(
    file_path: str | Path,
    config_type: str = "auto",
    expand_env: bool = True,
) -> dict[str, Any]:
    """Load a configuration file (YAML or JSON).

    Args:
        file_path: Path to the configuration file
        config_type: "yaml", "json", or "auto" to detect from the extension
        expand_env: Whether to expand environment variables

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file type is unsupported or the content is
            not a mapping
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_type == "auto":
        suffix = path.suffix.lower()
        if suffix in (".yaml", ".yml"):
            config_type = "yaml"
        elif suffix == ".json":
            config_type = "json"
        else:
            raise ValidationError(f"Cannot detect config type from extension: {suffix}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            if config_type == "yaml":
                config = yaml.safe_load(f) or {}
            elif config_type == "json":
                config = json.load(f)
            else:
                raise ValidationError(f"Unsupported config type: {config_type}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValidationError(f"Could not parse {path.name}", root_error=e) from e

    if not isinstance(config, dict):
        raise ValidationError(f"{path.name} must contain a mapping at the top level")

    return expand_env_vars(config) if expand_env else config


def format_validation_errors(error: PydanticValidationError) -> list[str]:
    """Render pydantic errors as ``location: message`` strings."""
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "<root>"
        messages.append(f"{location}: {detail.get('msg')}")
    return messages


def parse_team_config(data: dict[str, Any]) -> TeamConfig:
    """Validate a raw team mapping.

    Raises:
        ValidationError: Listing every problem pydantic found
    """
    try:
        return TeamConfig.model_validate(data)
    except PydanticValidationError as e:
        errors = format_validation_errors(e)
        raise ValidationError(
            f"Invalid team configuration ({len(errors)} problem(s))",
            errors=errors,
            root_error=e,
            recommended_action="Fix the listed fields and try again",
        ) from e


def load_team_config(file_path: str | Path) -> TeamConfig:
    """Load and validate a team configuration file.

    Args:
        file_path: Path to the team YAML/JSON file

    Returns:
        Validated TeamConfig object
    """
    return parse_team_config(load_config_file(file_path))
