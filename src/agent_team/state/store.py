"""Observable state container for agent-team.

A minimal store holding one pydantic model. Updates are expressed as
updater functions returning the fields to replace; the store applies
them with ``model_copy`` so every write produces a new state value.
"""

from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from ..utils.logging import get_logger

logger = get_logger(__name__)

S = TypeVar("S", bound=BaseModel)

Updater = Callable[[S], dict[str, Any]]
Listener = Callable[[Any, Any], None]
Selector = Callable[[S], Any]


class Store(Generic[S]):
    """Holds a state value and notifies listeners of changes.

    Writes are synchronous, so an updater always sees the latest state
    and no other coroutine can interleave with it.

    Example:
        store = Store(TeamState(name="research"))
        store.set_state(lambda s: {"workflow_logs": [*s.workflow_logs, entry]})
    """

    def __init__(self, initial: S) -> None:
        self._state = initial
        self._listeners: list[tuple[Listener, Optional[Selector]]] = []

    def get_state(self) -> S:
        return self._state

    def set_state(self, updater: Updater) -> S:
        """Apply ``updater`` and notify listeners.

        Args:
            updater: Function receiving the current state and returning a
                dict of fields to replace

        Returns:
            The new state
        """
        old = self._state
        changes = updater(old)
        if not changes:
            return old
        new = old.model_copy(update=changes)
        self._state = new

        for listener, selector in list(self._listeners):
            try:
                if selector is None:
                    listener(new, old)
                    continue
                new_value, old_value = selector(new), selector(old)
                if new_value is not old_value and new_value != old_value:
                    listener(new_value, old_value)
            except Exception:
                logger.exception(f"State listener {listener!r} failed")
        return new

    def subscribe(self, listener: Listener, selector: Optional[Selector] = None) -> Callable[[], None]:
        """Register a listener.

        Args:
            listener: Called with ``(new, old)`` state, or with the new and
                old selected values when ``selector`` is given
            selector: Optional projection; the listener only fires when the
                projected value changes

        Returns:
            A function removing the listener
        """
        entry = (listener, selector)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe
