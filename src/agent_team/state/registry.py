"""Status registry for agent-team.

The registry is the single authority on status changes. Callers ask it
to approve a transition before mutating an entity; it checks the
transition tables, runs validators under a timeout, records accepted
changes in a bounded history and notifies subscribers. Refused
transitions are recorded as ``StatusError`` values and reported by
returning ``False``; they are never raised.
"""

from collections import deque
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..config.schemas import StatusSettings
from ..models.status import STATUS_ENUMS, StatusEntity
from ..models.task import now_ms
from ..utils.errors import StatusError, StatusErrorType
from ..utils.logging import get_logger
from ..utils.timeout import TimeoutError, maybe_await, wait_with_timeout
from .machine import TransitionGraph, build_graphs
from .rules import TransitionContext, TransitionRule

logger = get_logger(__name__)


class StatusChangeEvent(BaseModel):
    """An accepted status change.

    Attributes:
        entity: Entity kind
        entity_id: Id of the changed entity
        from_status: Previous status
        to_status: New status
        timestamp: Epoch ms of acceptance
        metadata: Metadata from the transition context
    """

    entity: StatusEntity
    entity_id: str
    from_status: str
    to_status: str
    timestamp: int = Field(default_factory=now_ms)
    metadata: dict[str, Any] = Field(default_factory=dict)


StatusCallback = Callable[[StatusChangeEvent], Any]


class StatusRegistry:
    """Validates and records status transitions for every entity kind.

    Args:
        validation_timeout_ms: Budget for rule validators
        max_history: Number of accepted changes (and errors) kept
        rules: Transition tables; the built-in tables when omitted

    Example:
        registry = StatusRegistry()
        ok = await registry.transition(TransitionContext(
            entity=StatusEntity.TASK, entity_id=task.id,
            current_status=TaskStatus.TODO, target_status=TaskStatus.DOING,
        ))
    """

    def __init__(
        self,
        validation_timeout_ms: int = 5_000,
        max_history: int = 1_000,
        rules: Optional[dict[StatusEntity, tuple[TransitionRule, ...]]] = None,
    ) -> None:
        self.validation_timeout_ms = validation_timeout_ms
        self._graphs = build_graphs(rules)
        self._history: deque[StatusChangeEvent] = deque(maxlen=max_history)
        self._errors: deque[StatusError] = deque(maxlen=max_history)
        self._subscribers: dict[StatusEntity, list[StatusCallback]] = {entity: [] for entity in StatusEntity}
        self._in_flight: set[tuple[StatusEntity, str]] = set()

    @classmethod
    def from_settings(cls, settings: StatusSettings) -> "StatusRegistry":
        return cls(validation_timeout_ms=settings.validation_timeout_ms, max_history=settings.max_history)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def graph(self, entity: StatusEntity) -> TransitionGraph:
        return self._graphs[entity]

    def is_valid_status(self, status: Any, entity: StatusEntity) -> bool:
        """Whether ``status`` belongs to the status set of ``entity``."""
        value = getattr(status, "value", status)
        return value in {member.value for member in STATUS_ENUMS[entity]}

    def get_available_transitions(self, status: Any, entity: StatusEntity) -> list[str]:
        """Statuses reachable in one step from ``status``."""
        return self._graphs[entity].successors(getattr(status, "value", status))

    def get_history(
        self,
        entity: Optional[StatusEntity] = None,
        entity_id: Optional[str] = None,
    ) -> list[StatusChangeEvent]:
        """Accepted changes, oldest first, optionally filtered."""
        return [
            event
            for event in self._history
            if (entity is None or event.entity == entity) and (entity_id is None or event.entity_id == entity_id)
        ]

    def get_errors(self) -> list[StatusError]:
        return list(self._errors)

    @property
    def last_error(self) -> Optional[StatusError]:
        return self._errors[-1] if self._errors else None

    def clear_history(self) -> None:
        self._history.clear()
        self._errors.clear()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def add_rule(self, entity: StatusEntity, transition_rule: TransitionRule) -> None:
        """Extend the table of ``entity`` with another rule (e.g. a validator)."""
        self._graphs[entity].add_rule(transition_rule)

    def subscribe(self, entity: StatusEntity, callback: StatusCallback) -> Callable[[], None]:
        """Call ``callback`` with every accepted change of ``entity``.

        Returns:
            A function removing the subscription
        """
        self._subscribers[entity].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[entity]:
                self._subscribers[entity].remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(self, context: TransitionContext) -> bool:
        """Validate and record a status change.

        Args:
            context: Requested change

        Returns:
            True if the change was accepted; False otherwise, with the
            reason available as ``last_error``
        """
        if not context.entity_id:
            return self._reject(context, StatusErrorType.VALIDATION_FAILED, "entity_id is required")

        graph = self._graphs[context.entity]
        for status in (context.current_status, context.target_status):
            if not graph.has_status(status):
                return self._reject(
                    context, StatusErrorType.INVALID_STATE, f"'{status}' is not a {context.entity.value} status"
                )

        if not graph.is_allowed(context.current_status, context.target_status):
            return self._reject(
                context,
                StatusErrorType.INVALID_TRANSITION,
                f"{context.current_status} -> {context.target_status} is not allowed",
            )

        key = (context.entity, context.entity_id)
        if key in self._in_flight:
            return self._reject(
                context, StatusErrorType.CONCURRENT_TRANSITION, "another transition is still being validated"
            )

        rules = graph.rules_for(context.current_status, context.target_status)
        validators = [r.validate_fn for r in rules if r.validate_fn is not None]
        if validators:
            self._in_flight.add(key)
            try:
                accepted = await wait_with_timeout(
                    self._run_validators(validators, context),
                    self.validation_timeout_ms,
                    label="Transition validation",
                )
            except TimeoutError as e:
                return self._reject(context, StatusErrorType.TIMEOUT, str(e))
            except Exception as e:
                return self._reject(context, StatusErrorType.VALIDATION_FAILED, f"validator raised: {e}", root_error=e)
            finally:
                self._in_flight.discard(key)
            if not accepted:
                return self._reject(context, StatusErrorType.VALIDATION_FAILED, "validator refused the transition")

        event = StatusChangeEvent(
            entity=context.entity,
            entity_id=context.entity_id,
            from_status=context.current_status,
            to_status=context.target_status,
            metadata=context.metadata,
        )
        self._history.append(event)
        logger.debug(
            f"{context.entity.value} {context.entity_id}: {context.current_status} -> {context.target_status}"
        )

        for r in rules:
            if r.side_effects is None:
                continue
            try:
                await maybe_await(r.side_effects(context))
            except Exception:
                logger.exception(f"Side effect failed for {context.current_status} -> {context.target_status}")

        await self._notify(event)
        return True

    async def _run_validators(self, validators: list[Any], context: TransitionContext) -> bool:
        for validator in validators:
            if not await maybe_await(validator(context)):
                return False
        return True

    async def _notify(self, event: StatusChangeEvent) -> None:
        for callback in list(self._subscribers[event.entity]):
            try:
                await maybe_await(callback(event))
            except Exception:
                logger.exception(f"Status subscriber {callback!r} failed")

    def _reject(
        self,
        context: TransitionContext,
        error_type: StatusErrorType,
        message: str,
        root_error: Optional[BaseException] = None,
    ) -> bool:
        error = StatusError(
            error_type,
            message,
            root_error=root_error,
            context={
                "entity": context.entity.value,
                "entity_id": context.entity_id,
                "current_status": context.current_status,
                "target_status": context.target_status,
            },
        )
        self._errors.append(error)
        logger.warning(f"Status transition refused ({error_type.value}) for {context.entity.value}: {message}")
        return False
