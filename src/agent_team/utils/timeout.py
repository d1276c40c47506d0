"""Timeout utilities for agent-team.

Millisecond-based wrappers around ``asyncio.wait_for``; every timeout in
the configuration is expressed in milliseconds.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


class TimeoutError(Exception):
    """Exception raised when an awaited operation exceeds its budget."""

    def __init__(self, message: str, timeout_ms: float) -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms


async def wait_with_timeout(awaitable: Awaitable[T], timeout_ms: float | None, label: str = "Operation") -> T:
    """Await ``awaitable`` for at most ``timeout_ms`` milliseconds.

    Args:
        awaitable: Coroutine or future to wait for
        timeout_ms: Budget in milliseconds; ``None`` waits forever
        label: Name used in the error message

    Returns:
        Result of the awaitable

    Raises:
        TimeoutError: If the budget is exhausted; the awaitable is cancelled
    """
    if timeout_ms is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError:
        raise TimeoutError(f"{label} timed out after {timeout_ms}ms", timeout_ms) from None


async def maybe_await(value: Any) -> Any:
    """Return ``value``, awaiting it first when it is awaitable."""
    if asyncio.iscoroutine(value) or isinstance(value, asyncio.Future) or hasattr(value, "__await__"):
        return await value
    return value
