"""Status machines and state container for agent-team."""

from .machine import TransitionGraph, build_graphs
from .promises import ActivePromises, PromiseHandle, abort_error_for, workflow_guard
from .registry import StatusCallback, StatusChangeEvent, StatusRegistry
from .rules import (
    AGENT_ACTIVE_STATUSES,
    AGENT_SETTLED_STATUSES,
    TRANSITION_RULES,
    TransitionContext,
    TransitionRule,
    rule,
)
from .store import Store

__all__ = [
    # Registry
    "StatusRegistry",
    "StatusChangeEvent",
    "StatusCallback",
    # Rules
    "TransitionContext",
    "TransitionRule",
    "TRANSITION_RULES",
    "AGENT_ACTIVE_STATUSES",
    "AGENT_SETTLED_STATUSES",
    "rule",
    # Graphs
    "TransitionGraph",
    "build_graphs",
    # Store
    "Store",
    # Cancellation
    "ActivePromises",
    "PromiseHandle",
    "abort_error_for",
    "workflow_guard",
]
