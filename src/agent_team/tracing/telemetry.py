"""Telemetry sink for agent-team.

Workflow milestones (start, finish, errors) are reported as named
signals. The sink counts them and forwards them to registered handlers
in the background; it never blocks or raises into the workflow. Setting
``AGENT_TEAM_TELEMETRY_OPT_OUT=true`` (or disabling it in the team
configuration) turns it into a no-op.
"""

import asyncio
import os
from collections import defaultdict
from typing import Any, Callable, Optional

from ..utils.logging import get_logger

logger = get_logger(__name__)

OPT_OUT_ENV = "AGENT_TEAM_TELEMETRY_OPT_OUT"

TelemetryHandler = Callable[[str, dict[str, Any]], Any]


def telemetry_opted_out() -> bool:
    return os.environ.get(OPT_OUT_ENV, "").strip().lower() in ("1", "true", "yes")


class TelemetrySink:
    """Collects workflow signals.

    Attributes:
        enabled: Whether signals are recorded at all
    """

    def __init__(self, enabled: bool = True, handlers: Optional[list[TelemetryHandler]] = None) -> None:
        self.enabled = enabled and not telemetry_opted_out()
        self._handlers: list[TelemetryHandler] = list(handlers or [])
        self._counters: dict[str, int] = defaultdict(int)
        self._pending: set[asyncio.Task[Any]] = set()

    def add_handler(self, handler: TelemetryHandler) -> None:
        self._handlers.append(handler)

    def get_counter(self, event_name: str) -> int:
        return self._counters.get(event_name, 0)

    def signal(self, event_name: str, payload: Optional[dict[str, Any]] = None) -> None:
        """Record a signal; handlers run later, outside the caller's stack."""
        if not self.enabled:
            return
        self._counters[event_name] += 1
        data = dict(payload or {})
        logger.debug(f"Telemetry signal: {event_name}")

        for handler in self._handlers:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self._dispatch(handler, event_name, data)
                continue
            loop.call_soon(self._dispatch, handler, event_name, data)

    def _dispatch(self, handler: TelemetryHandler, event_name: str, data: dict[str, Any]) -> None:
        try:
            result = handler(event_name, data)
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_handler_done)
        except Exception as e:
            logger.debug(f"Telemetry handler failed for {event_name}: {e}")

    def _on_handler_done(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Telemetry handler failed: {task.exception()}")
