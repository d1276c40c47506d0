"""Unit tests for the status registry and transition graphs."""

import asyncio
import itertools

import pytest

from agent_team.models.status import STATUS_ENUMS, AgentStatus, StatusEntity, TaskStatus, WorkflowStatus
from agent_team.state import StatusRegistry
from agent_team.state.rules import TransitionContext, rule
from agent_team.utils.errors import StatusErrorType


def task_change(current, target, entity_id="task_1"):
    return TransitionContext(
        entity=StatusEntity.TASK,
        entity_id=entity_id,
        current_status=current,
        target_status=target,
    )


@pytest.mark.asyncio
class TestTransitions:
    """Tests for StatusRegistry.transition."""

    async def test_valid_transition_is_recorded(self, registry):
        """An allowed change is accepted and kept in the history."""
        assert await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))

        history = registry.get_history(StatusEntity.TASK, "task_1")
        assert len(history) == 1
        assert history[0].from_status == "TODO"
        assert history[0].to_status == "DOING"
        assert registry.get_errors() == []

    async def test_invalid_transition_is_refused(self, registry):
        """TODO -> DONE skips DOING and is refused without raising."""
        assert not await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DONE))

        assert registry.last_error.error_type == StatusErrorType.INVALID_TRANSITION
        assert registry.get_history() == []

    async def test_unknown_status_is_invalid_state(self, registry):
        """A status outside the entity's set is reported as INVALID_STATE."""
        assert not await registry.transition(task_change(TaskStatus.TODO, "SLEEPING"))
        assert registry.last_error.error_type == StatusErrorType.INVALID_STATE

    async def test_status_of_another_entity_is_invalid_state(self, registry):
        """Agent statuses are not task statuses."""
        assert not await registry.transition(task_change(TaskStatus.TODO, AgentStatus.THINKING))
        assert registry.last_error.error_type == StatusErrorType.INVALID_STATE

    async def test_missing_entity_id_fails_validation(self, registry):
        assert not await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING, entity_id=""))
        assert registry.last_error.error_type == StatusErrorType.VALIDATION_FAILED

    async def test_validator_can_refuse(self, registry):
        """A rule validator returning False refuses the change."""
        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=lambda ctx: False))

        assert not await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        assert registry.last_error.error_type == StatusErrorType.VALIDATION_FAILED

    async def test_async_validator_receives_context(self, registry):
        seen = []

        async def validate(ctx):
            seen.append((ctx.entity_id, ctx.metadata))
            return True

        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=validate))
        context = task_change(TaskStatus.TODO, TaskStatus.DOING)
        context.metadata["reason"] = "scheduled"

        assert await registry.transition(context)
        assert seen == [("task_1", {"reason": "scheduled"})]

    async def test_slow_validator_times_out(self):
        """Validators exceeding the budget are refused with TIMEOUT."""
        registry = StatusRegistry(validation_timeout_ms=20)

        async def slow(ctx):
            await asyncio.sleep(1)
            return True

        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=slow))

        assert not await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        assert registry.last_error.error_type == StatusErrorType.TIMEOUT

    async def test_raising_validator_fails_validation(self, registry):
        def broken(ctx):
            raise RuntimeError("boom")

        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=broken))

        assert not await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        error = registry.last_error
        assert error.error_type == StatusErrorType.VALIDATION_FAILED
        assert isinstance(error.root_error, RuntimeError)

    async def test_concurrent_transition_on_same_entity_is_refused(self, registry):
        """A second change while the first one is being validated is refused."""
        release = asyncio.Event()

        async def wait_for_release(ctx):
            await release.wait()
            return True

        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=wait_for_release))

        first = asyncio.create_task(registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING)))
        await asyncio.sleep(0)
        second = await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        release.set()

        assert second is False
        assert registry.last_error.error_type == StatusErrorType.CONCURRENT_TRANSITION
        assert await first is True

    async def test_other_entities_are_not_blocked(self, registry):
        """The in-flight guard is per entity id."""
        release = asyncio.Event()

        async def wait_for_release(ctx):
            await release.wait()
            return True

        registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, TaskStatus.DOING, validate=wait_for_release))

        first = asyncio.create_task(registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING, "task_1")))
        await asyncio.sleep(0)
        other = await registry.transition(task_change(TaskStatus.DOING, TaskStatus.DONE, "task_2"))
        release.set()

        assert other is True
        assert await first is True

    async def test_subscribers_and_side_effects_run(self, registry):
        events = []
        effects = []
        registry.subscribe(StatusEntity.WORKFLOW, events.append)
        registry.add_rule(
            StatusEntity.WORKFLOW,
            rule(WorkflowStatus.INITIAL, WorkflowStatus.RUNNING, side_effects=lambda ctx: effects.append(ctx.entity_id)),
        )

        accepted = await registry.transition(
            TransitionContext(
                entity=StatusEntity.WORKFLOW,
                entity_id="team",
                current_status=WorkflowStatus.INITIAL,
                target_status=WorkflowStatus.RUNNING,
            )
        )

        assert accepted
        assert [e.to_status for e in events] == ["RUNNING"]
        assert effects == ["team"]

    async def test_unsubscribe(self, registry):
        events = []
        unsubscribe = registry.subscribe(StatusEntity.TASK, events.append)
        unsubscribe()

        await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        assert events == []

    async def test_failing_subscriber_does_not_refuse(self, registry):
        def broken(event):
            raise RuntimeError("listener bug")

        events = []
        registry.subscribe(StatusEntity.TASK, broken)
        registry.subscribe(StatusEntity.TASK, events.append)

        assert await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING))
        assert [e.to_status for e in events] == ["DOING"]

    async def test_history_is_bounded(self):
        registry = StatusRegistry(max_history=2)
        for index in range(3):
            await registry.transition(task_change(TaskStatus.TODO, TaskStatus.DOING, f"task_{index}"))

        assert [e.entity_id for e in registry.get_history()] == ["task_1", "task_2"]


@pytest.mark.asyncio
class TestTransitionTable:
    """Every pair of statuses, for every entity kind."""

    @pytest.mark.parametrize("entity", list(StatusEntity))
    async def test_declared_pairs_only(self, registry, entity):
        """Declared pairs add exactly one history entry; other pairs add none."""
        graph = registry.graph(entity)
        statuses = list(STATUS_ENUMS[entity])

        for index, (current, target) in enumerate(itertools.product(statuses, repeat=2)):
            entity_id = f"{entity.value}_{index}"
            accepted = await registry.transition(
                TransitionContext(entity=entity, entity_id=entity_id, current_status=current, target_status=target)
            )

            expected = graph.is_allowed(current.value, target.value)
            assert accepted == expected, f"{current.value} -> {target.value}"
            assert len(registry.get_history(entity, entity_id)) == (1 if expected else 0)


class TestQueries:
    """Tests for status lookups and graph views."""

    def test_is_valid_status(self, registry):
        assert registry.is_valid_status(TaskStatus.DONE, StatusEntity.TASK)
        assert registry.is_valid_status("THINKING", StatusEntity.AGENT)
        assert not registry.is_valid_status("THINKING", StatusEntity.TASK)

    def test_available_transitions(self, registry):
        targets = registry.get_available_transitions(WorkflowStatus.PAUSED, StatusEntity.WORKFLOW)
        assert set(targets) == {"RUNNING", "STOPPING"}

    def test_stopping_only_leads_to_stopped(self, registry):
        assert registry.get_available_transitions("STOPPING", StatusEntity.WORKFLOW) == ["STOPPED"]

    def test_reachability(self, registry):
        graph = registry.graph(StatusEntity.TASK)
        assert graph.is_reachable("TODO", "DONE")
        assert graph.shortest_path("TODO", "DONE") == ["TODO", "DOING", "DONE"]

    def test_rule_with_unknown_status_is_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.add_rule(StatusEntity.TASK, rule(TaskStatus.TODO, "SLEEPING"))

    def test_visualize(self, registry):
        graph = registry.graph(StatusEntity.WORKFLOW)
        assert "RUNNING --> PAUSED" in graph.visualize("mermaid")
        assert '"STOPPING" -> "STOPPED";' in graph.visualize("dot")
        with pytest.raises(ValueError):
            graph.visualize("svg")
