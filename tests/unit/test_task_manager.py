"""Unit tests for the task lifecycle manager."""

import asyncio

import pytest

from agent_team.models import FeedbackStatus, Task, TaskStatus
from agent_team.models.status import LogType
from agent_team.utils.errors import TaskBlockError, TaskTimeoutError


@pytest.fixture
def team(team_factory):
    return team_factory()


@pytest.fixture
def agent(team, agent_config, scripted_client):
    return team.create_agent(agent_config(), llm_client=scripted_client())


@pytest.fixture
def task(team, agent):
    return team.add_task(Task(title="Outline", description="Outline the report", agent=agent))


def task_log_statuses(team, task):
    return [
        log.task_status
        for log in team.store.get_state().workflow_logs
        if log.log_type == LogType.TASK_STATUS_UPDATE and log.task.id == task.id
    ]


@pytest.mark.asyncio
class TestTaskTransitions:
    """Tests for the TaskManager handlers."""

    async def test_start_and_complete(self, team, agent, task):
        manager = team.task_manager

        assert await manager.handle_task_started(task)
        status = await manager.handle_task_completed(agent, task, "The outline")

        assert status == TaskStatus.DONE
        assert task.result == "The outline"
        assert task.stats is not None
        assert task_log_statuses(team, task) == [TaskStatus.DOING, TaskStatus.DONE]
        done_log = team.store.get_state().workflow_logs[-1]
        assert done_log.metadata["result"] == "The outline"
        assert done_log.metadata["agent"] == "writer"
        assert "cost_details" in done_log.metadata

    async def test_refused_transition_leaves_task_untouched(self, team, task):
        assert not await team.task_manager.set_status(task, TaskStatus.DONE, "Skip ahead")
        assert task.status == TaskStatus.TODO
        assert task_log_statuses(team, task) == []

    async def test_external_validation(self, team, agent, task):
        task.external_validation_required = True
        manager = team.task_manager

        await manager.handle_task_started(task)
        status = await manager.handle_task_completed(agent, task, "Draft")

        assert status == TaskStatus.AWAITING_VALIDATION
        assert await manager.handle_task_validated(task)
        assert task.status == TaskStatus.DONE
        assert task_log_statuses(team, task)[-2:] == [TaskStatus.VALIDATED, TaskStatus.DONE]

    async def test_blocked(self, team, task):
        await team.task_manager.handle_task_started(task)
        error = TaskBlockError("Missing data", blocked_by="writer", is_agent_decision=True)

        assert await team.task_manager.handle_task_blocked(task, error)
        assert task.status == TaskStatus.BLOCKED
        assert task.error == "Task blocked: Missing data"
        assert team.store.get_state().workflow_logs[-1].metadata["error"]["block_reason"] == "Missing data"

    async def test_error(self, team, task):
        await team.task_manager.handle_task_started(task)

        assert await team.task_manager.handle_task_error(task, ValueError("bad input"))
        assert task.status == TaskStatus.ERROR
        assert task.error == "bad input"
        assert team.store.get_state().workflow_logs[-1].metadata["error"] == {
            "name": "ValueError",
            "message": "bad input",
        }

    async def test_revision_marks_feedback(self, team, agent, task):
        manager = team.task_manager
        await manager.handle_task_started(task)
        await manager.handle_task_completed(agent, task, "v1")

        assert await manager.handle_task_revised(task, "Add a conclusion")
        assert task.status == TaskStatus.REVISE
        assert [f.status for f in task.feedback_history] == [FeedbackStatus.PENDING]

        await manager.handle_task_started(task)
        await manager.handle_task_completed(agent, task, "v2")
        assert [f.status for f in task.feedback_history] == [FeedbackStatus.PROCESSED]

    async def test_pause_and_resume(self, team, task):
        manager = team.task_manager
        await manager.handle_task_started(task)

        assert await manager.handle_task_paused(task)
        assert await manager.handle_task_resumed(task)
        assert await manager.handle_task_started(task, resumed=True)

        assert task_log_statuses(team, task) == [
            TaskStatus.DOING,
            TaskStatus.PAUSED,
            TaskStatus.RESUMED,
            TaskStatus.DOING,
        ]
        assert team.store.get_state().workflow_logs[-1].metadata == {"resumed": True}


@pytest.mark.asyncio
class TestResetTask:
    """Tests for TaskManager.reset_task."""

    async def test_running_task_is_aborted_then_reset(self, team, task):
        await team.task_manager.handle_task_started(task)

        await team.task_manager.reset_task(task)

        assert task.status == TaskStatus.TODO
        assert task_log_statuses(team, task)[-2:] == [TaskStatus.ABORTED, TaskStatus.TODO]

    async def test_done_task_is_kept(self, team, agent, task):
        await team.task_manager.handle_task_started(task)
        await team.task_manager.handle_task_completed(agent, task, "kept")

        await team.task_manager.reset_task(task)

        assert task.status == TaskStatus.DONE
        assert task.result == "kept"

    async def test_done_task_reset_on_restart(self, team, agent, task):
        await team.task_manager.handle_task_started(task)
        await team.task_manager.handle_task_completed(agent, task, "dropped")

        await team.task_manager.reset_task(task, keep_done=False)

        assert task.status == TaskStatus.TODO
        assert task.result is None
        assert task.stats is None

    async def test_todo_task_is_untouched(self, team, task):
        await team.task_manager.reset_task(task)
        assert task_log_statuses(team, task) == []


@pytest.mark.asyncio
class TestWatchdog:
    """Tests for TaskManager.run_with_watchdog."""

    async def test_returns_result_in_time(self, team, task):
        async def quick():
            return "fast"

        assert await team.task_manager.run_with_watchdog(task, quick(), 1_000) == "fast"

    async def test_timeout_moves_task_to_error(self, team, task):
        await team.task_manager.handle_task_started(task)

        async def slow():
            await asyncio.sleep(5)

        with pytest.raises(TaskTimeoutError) as exc_info:
            await team.task_manager.run_with_watchdog(task, slow(), 20)

        assert exc_info.value.task_id == task.id
        assert task.status == TaskStatus.ERROR
        assert "timed out" in task.error

    async def test_no_timeout(self, team, task):
        async def quick():
            return 1

        assert await team.task_manager.run_with_watchdog(task, quick(), None) == 1


@pytest.mark.asyncio
class TestTaskStats:
    """Tests for statistics recorded on tasks."""

    async def test_stats_cover_the_current_run(self, team, agent, task):
        await team.agent_manager.execute_task(agent, task)
        await team.task_manager.handle_task_started(task)
        await team.agent_manager.execute_task(agent, task)
        await team.task_manager.handle_task_completed(agent, task, "done")

        stats = team.get_task_stats(task.id)
        assert stats.iteration_count == 1
        assert stats.llm_usage_stats.calls_count == 1
        assert stats.llm_usage_stats.input_tokens == 100
        assert stats.model_usage["gpt-4o-mini"].output_tokens == 50
        assert stats.cost_details.total_cost == pytest.approx(100 / 1e6 * 0.15 + 50 / 1e6 * 0.6, abs=1e-6)
