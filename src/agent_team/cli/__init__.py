"""CLI module for agent-team.

This module provides the command-line interface for running and
inspecting teams.
"""

from .main import main

__all__ = ["main"]
