"""Cancellable in-flight calls for agent-team.

Every language-model and tool call an agent makes is run through
``ActivePromises.run``, which registers a handle under the agent id in
``TeamState.active_promises``. Pausing or stopping the workflow rejects
those handles: the awaiting coroutine receives a ``PauseAbortError`` or
``StopAbortError`` and the underlying call is cancelled.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..models.status import WorkflowAction, WorkflowStatus
from ..models.team import TeamState
from ..utils.errors import AbortError, PauseAbortError, StopAbortError
from ..utils.logging import get_logger
from .store import Store

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class PromiseHandle:
    """Handle on one in-flight call.

    Attributes:
        agent_id: Agent that owns the call
        label: What is being awaited ("llm", "tool:<name>")
        future: Future the agent awaits
        reject: Fails ``future`` with the given error and cancels the call
    """

    agent_id: str
    label: str
    future: "asyncio.Future[Any]" = field(repr=False)
    reject: Callable[[BaseException], None] = field(repr=False)


def abort_error_for(action: WorkflowAction) -> AbortError:
    if action == WorkflowAction.PAUSE:
        return PauseAbortError()
    return StopAbortError()


class ActivePromises:
    """Tracks and aborts in-flight calls, stored copy-on-write in the team state."""

    def __init__(self, store: Store[TeamState]) -> None:
        self.store = store

    def get(self, agent_id: str) -> frozenset[PromiseHandle]:
        return self.store.get_state().active_promises.get(agent_id, frozenset())

    def count(self) -> int:
        return sum(len(handles) for handles in self.store.get_state().active_promises.values())

    def track(self, handle: PromiseHandle) -> None:
        def updater(state: TeamState) -> dict[str, Any]:
            current = state.active_promises.get(handle.agent_id, frozenset())
            return {"active_promises": {**state.active_promises, handle.agent_id: current | {handle}}}

        self.store.set_state(updater)

    def remove(self, handle: PromiseHandle) -> None:
        def updater(state: TeamState) -> dict[str, Any]:
            current = state.active_promises.get(handle.agent_id)
            if current is None or handle not in current:
                return {}
            promises = dict(state.active_promises)
            remaining = current - {handle}
            if remaining:
                promises[handle.agent_id] = remaining
            else:
                del promises[handle.agent_id]
            return {"active_promises": promises}

        self.store.set_state(updater)

    def abort_agent(self, agent_id: str, action: WorkflowAction) -> int:
        """Reject every in-flight call of an agent.

        Returns:
            Number of calls rejected
        """
        handles = self.get(agent_id)
        for handle in handles:
            handle.reject(abort_error_for(action))

        if handles:
            def updater(state: TeamState) -> dict[str, Any]:
                promises = dict(state.active_promises)
                promises.pop(agent_id, None)
                return {"active_promises": promises}

            self.store.set_state(updater)
            logger.debug(f"Aborted {len(handles)} call(s) of agent {agent_id} ({action.value})")
        return len(handles)

    def abort_all(self, action: WorkflowAction) -> int:
        return sum(self.abort_agent(agent_id, action) for agent_id in list(self.store.get_state().active_promises))

    async def run(
        self,
        agent_id: str,
        awaitable: Awaitable[T],
        label: str = "llm",
        guard: Optional[Callable[[], None]] = None,
    ) -> T:
        """Await ``awaitable`` as a tracked, abortable call.

        Args:
            agent_id: Owner of the call
            awaitable: Coroutine performing the call
            label: Description stored on the handle
            guard: Called first; raises an ``AbortError`` when the
                workflow no longer allows new calls

        Raises:
            AbortError: If the call is rejected by pause or stop
        """
        if guard is not None:
            try:
                guard()
            except BaseException:
                if asyncio.iscoroutine(awaitable):
                    awaitable.close()
                raise

        loop = asyncio.get_running_loop()
        inner = asyncio.ensure_future(awaitable)
        waiter: asyncio.Future[T] = loop.create_future()

        def relay(done: "asyncio.Future[T]") -> None:
            if done.cancelled():
                if not waiter.done():
                    waiter.cancel()
                return
            error = done.exception()
            if waiter.done():
                return
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(done.result())

        def reject(error: BaseException) -> None:
            if not waiter.done():
                waiter.set_exception(error)
            inner.cancel()

        inner.add_done_callback(relay)
        handle = PromiseHandle(agent_id=agent_id, label=label, future=waiter, reject=reject)
        self.track(handle)
        try:
            return await waiter
        finally:
            if not inner.done():
                inner.cancel()
            self.remove(handle)


def workflow_guard(store: Store[TeamState]) -> Callable[[], None]:
    """Guard that refuses new calls while the workflow is paused or stopping.

    Raises:
        PauseAbortError: If the workflow is PAUSED
        StopAbortError: If the workflow is STOPPING or STOPPED
    """

    def guard() -> None:
        status = store.get_state().team_workflow_status
        if status == WorkflowStatus.PAUSED:
            raise PauseAbortError()
        if status in (WorkflowStatus.STOPPING, WorkflowStatus.STOPPED):
            raise StopAbortError()

    return guard
