"""ID generation utilities for agent-team.

Every entity carries a prefixed UUID v4 so log entries can be correlated
by eye as well as by code.
"""

import uuid


def generate_uuid() -> str:
    """Generate a UUID v4 as a string.

    Returns:
        UUID v4 string (without dashes)
    """
    return uuid.uuid4().hex


def generate_agent_id() -> str:
    """Generate a unique agent identifier.

    Returns:
        Agent ID prefixed with "agent_"
    """
    return f"agent_{generate_uuid()}"


def generate_task_id() -> str:
    """Generate a unique task identifier.

    Returns:
        Task ID prefixed with "task_"
    """
    return f"task_{generate_uuid()}"
