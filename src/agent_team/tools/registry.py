"""Tool registry for agent-team.

This module provides the ToolRegistry class, which resolves the tool
references found in configuration files: either the name of a tool
registered in code, or a ``module.submodule:attribute`` import path.
"""

import importlib
import inspect
from typing import Any, Optional

from ..utils.errors import ValidationError
from .base import BaseTool, FunctionTool


class ToolRegistry:
    """Registry of named tools."""

    def __init__(self, tools: Optional[list[BaseTool]] = None) -> None:
        self._tools: dict[str, BaseTool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool: BaseTool) -> None:
        """Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_all(self) -> list[BaseTool]:
        return list(self._tools.values())

    def resolve(self, reference: str) -> BaseTool:
        """Resolve a configured tool reference.

        Args:
            reference: Registered tool name or ``module:attribute`` path.
                The attribute may be a tool instance, a ``BaseTool``
                subclass (instantiated without arguments) or a callable
                (wrapped in ``FunctionTool``).

        Returns:
            The tool instance

        Raises:
            ValidationError: If the reference cannot be resolved
        """
        if reference in self._tools:
            return self._tools[reference]
        if ":" not in reference:
            raise ValidationError(
                f"Unknown tool '{reference}'",
                recommended_action="Register the tool or use a 'module:attribute' path",
            )

        module_name, _, attribute = reference.partition(":")
        try:
            module = importlib.import_module(module_name)
            target: Any = getattr(module, attribute)
        except (ImportError, AttributeError) as e:
            raise ValidationError(f"Cannot import tool '{reference}'", root_error=e) from e

        if isinstance(target, BaseTool):
            return target
        if inspect.isclass(target) and issubclass(target, BaseTool):
            return target()
        if callable(target):
            return FunctionTool(target)
        raise ValidationError(f"'{reference}' is not a tool, tool class or callable")

    def resolve_all(self, references: list[str]) -> list[BaseTool]:
        return [self.resolve(ref) for ref in references]
