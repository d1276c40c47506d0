"""Retry utilities for agent-team.

This module provides an async retry decorator with exponential backoff,
used around language-model transport calls. Aborts raised by the
workflow control plane are never retried.
"""

import asyncio
import functools
import random
from typing import Any, Callable

from .errors import AbortError
from .logging import get_logger

logger = get_logger(__name__)


def async_retry_with_exponential_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    should_retry: Callable[[Exception], bool] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Async decorator for retry with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delay
        should_retry: Predicate deciding whether an error is retryable;
            defaults to ``is_retryable_error``

    Returns:
        Decorated async function with retry logic
    """
    predicate = should_retry or is_retryable_error

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            current_delay = base_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except AbortError:
                    raise
                except Exception as e:
                    attempt += 1
                    if attempt >= max_attempts or not predicate(e):
                        if attempt > 1:
                            logger.error(f"{func.__qualname__} failed after {attempt} attempts: {e}")
                        raise

                    delay = min(current_delay, max_delay)
                    if jitter:
                        delay = delay * (0.5 + random.random())

                    logger.warning(
                        f"{func.__qualname__} failed (attempt {attempt}/{max_attempts}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
                    current_delay *= exponential_base

        return wrapper

    return decorator


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is a transient transport failure.

    Retryable: connection errors, timeouts, rate limits (429) and
    server-side (5xx) failures.

    Args:
        error: The exception to check

    Returns:
        True if the error is retryable
    """
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        return status_code == 429 or status_code >= 500

    error_type = type(error).__name__.lower()
    error_message = str(error).lower()

    if "connection" in error_type or "connect" in error_message:
        return True
    if "timeout" in error_type or "timed out" in error_message:
        return True
    if "429" in error_message or "rate limit" in error_message:
        return True
    if "temporarily" in error_message or "unavailable" in error_message:
        return True

    return False
