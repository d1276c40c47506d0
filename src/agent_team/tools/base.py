"""Tool interface for agent-team.

Tools expose a name, a description and a JSON schema for their input,
and run asynchronously. ``FunctionTool`` adapts plain (sync or async)
callables, optionally validating input with a pydantic model.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .result import ToolResult


class BaseTool(ABC):
    """Abstract base class for tools agents can call."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name; the model selects tools by exact name."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool does, shown to the model."""

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON schema of the tool input."""
        return {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Run the tool.

        Returns:
            ToolResult describing the outcome
        """

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.parameters

    async def invoke(self, tool_input: Any = None) -> ToolResult:
        """Run the tool with an ``actionInput`` value.

        Objects are passed as keyword arguments; any other value goes to
        the single ``input`` argument.
        """
        if tool_input is None:
            return await self.execute()
        if isinstance(tool_input, dict):
            return await self.execute(**tool_input)
        return await self.execute(input=tool_input)

    def describe(self) -> dict[str, Any]:
        """Name, description and input schema, as rendered in prompts."""
        return {"name": self.name, "description": self.description, "input_schema": self.parameters}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


ToolFunc = Callable[..., Union[Any, Awaitable[Any]]]


class FunctionTool(BaseTool):
    """Wrap a callable as a tool.

    Args:
        func: Sync or async callable receiving the input as keyword arguments
        name: Tool name (defaults to the function name)
        description: Tool description (defaults to the docstring)
        args_schema: Optional pydantic model validating the input

    Example:
        class SearchArgs(BaseModel):
            query: str

        search = FunctionTool(do_search, args_schema=SearchArgs)
    """

    def __init__(
        self,
        func: ToolFunc,
        name: Optional[str] = None,
        description: Optional[str] = None,
        args_schema: Optional[type[BaseModel]] = None,
    ) -> None:
        self._func = func
        self._name = name or func.__name__
        self._description = description or inspect.getdoc(func) or self._name
        self._args_schema = args_schema

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        if self._args_schema is not None:
            return self._args_schema.model_json_schema()
        return super().parameters

    async def execute(self, **kwargs: Any) -> ToolResult:
        if self._args_schema is not None:
            try:
                kwargs = self._args_schema.model_validate(kwargs).model_dump()
            except PydanticValidationError as e:
                return ToolResult.fail(f"Invalid input for {self.name}: {e.errors()[0].get('msg')}")

        if inspect.iscoroutinefunction(self._func):
            value = await self._func(**kwargs)
        else:
            value = await asyncio.to_thread(self._func, **kwargs)

        return value if isinstance(value, ToolResult) else ToolResult.ok(value)


def tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    args_schema: Optional[type[BaseModel]] = None,
) -> Callable[[ToolFunc], FunctionTool]:
    """Decorator turning a function into a ``FunctionTool``."""

    def decorator(func: ToolFunc) -> FunctionTool:
        return FunctionTool(func, name=name, description=description, args_schema=args_schema)

    return decorator
