"""Integration tests for pause, resume and stop with calls in flight."""

import asyncio

import pytest

from agent_team.models import AgentStatus, Task, TaskStatus
from agent_team.models.status import LogType, WorkflowStatus
from agent_team.utils.errors import WorkflowError


@pytest.fixture
def board(team_factory, agent_config, scripted_client):
    """Two gated agents: tasks a and b run in parallel, c depends on both."""
    gate = asyncio.Event()
    first = scripted_client({"finalAnswer": "A"}, {"finalAnswer": "C"}, gate=gate)
    second = scripted_client({"finalAnswer": "B"}, gate=gate)

    team = team_factory()
    alice = team.create_agent(agent_config("alice", "Researcher"), llm_client=first)
    bob = team.create_agent(agent_config("bob", "Analyst"), llm_client=second)
    team.add_task(Task(id="a", description="Collect sources", agent=alice))
    team.add_task(Task(id="b", description="Collect numbers", agent=bob))
    team.add_task(Task(id="c", description="Combine", agent=alice, depends_on=["a", "b"]))
    return team, gate, first, second


async def start_in_flight(team, *clients):
    run = asyncio.create_task(team.start())
    await asyncio.wait_for(asyncio.gather(*(client.started.wait() for client in clients)), 1)
    return run


def task_statuses(team):
    return {task.id: task.status for task in team.get_tasks()}


@pytest.mark.asyncio
class TestPause:
    """Tests for pausing a running workflow."""

    async def test_pause_rejects_calls_in_flight(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)
        assert team.promises.count() == 2

        await team.pause()

        assert team.get_workflow_status() == WorkflowStatus.PAUSED
        assert team.store.get_state().active_promises == {}
        assert task_statuses(team) == {"a": TaskStatus.PAUSED, "b": TaskStatus.PAUSED, "c": TaskStatus.TODO}
        assert team.get_agent("alice").status == AgentStatus.PAUSED
        assert team.get_agent("bob").status == AgentStatus.PAUSED
        assert not run.done()

        await team.stop()
        await asyncio.wait_for(run, 1)

    async def test_pause_does_not_record_the_aborted_exchange(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)

        await team.pause()

        assert team.get_agent("alice").messages == []
        assert team.get_agent("alice").last_feedback_message is not None
        await team.stop()
        await asyncio.wait_for(run, 1)

    async def test_resume_continues_to_finished(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)
        await team.pause()
        first_prompt = first.calls[0][-1]["content"]

        gate.set()
        await team.resume()
        result = await asyncio.wait_for(run, 2)

        assert result.status == WorkflowStatus.FINISHED
        assert result.result == "C"
        assert all(status == TaskStatus.DONE for status in task_statuses(team).values())
        # the paused call is replayed with the same message
        assert first.calls[1][-1]["content"] == first_prompt
        assert len(first.calls) == 3
        assert len(second.calls) == 2

    async def test_resume_logs_task_path(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)
        await team.pause()
        gate.set()
        await team.resume()
        await asyncio.wait_for(run, 2)

        statuses = [
            log.task_status
            for log in team.store.get_state().workflow_logs
            if log.log_type == LogType.TASK_STATUS_UPDATE and log.task.id == "a"
        ]
        assert statuses == [
            TaskStatus.DOING,
            TaskStatus.PAUSED,
            TaskStatus.RESUMED,
            TaskStatus.DOING,
            TaskStatus.DONE,
        ]

    async def test_pause_requires_running(self, team_factory):
        team = team_factory()

        with pytest.raises(WorkflowError, match="Cannot pause a workflow that is INITIAL"):
            await team.pause()

    async def test_resume_requires_paused(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)

        with pytest.raises(WorkflowError, match="Cannot resume"):
            await team.resume()

        gate.set()
        await asyncio.wait_for(run, 2)

    async def test_start_while_running_is_refused(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)

        with pytest.raises(WorkflowError, match="Cannot start"):
            await team.start()

        gate.set()
        await asyncio.wait_for(run, 2)


@pytest.mark.asyncio
class TestStop:
    """Tests for stopping a workflow."""

    @pytest.fixture
    def pipeline(self, team_factory, agent_config, scripted_client):
        """Task a answers at once, b hangs on a gate, c waits for b."""
        quick = scripted_client({"finalAnswer": "outline"})
        slow = scripted_client(gate=asyncio.Event())
        team = team_factory()
        alice = team.create_agent(agent_config("alice", "Planner"), llm_client=quick)
        bob = team.create_agent(agent_config("bob", "Writer"), llm_client=slow)
        team.add_task(Task(id="a", description="Outline", agent=alice))
        team.add_task(Task(id="b", description="Draft", agent=bob, depends_on=["a"]))
        team.add_task(Task(id="c", description="Polish", agent=alice, depends_on=["b"]))
        return team, slow

    async def test_stop_resets_unfinished_work(self, pipeline):
        team, slow = pipeline
        run = await start_in_flight(team, slow)

        await team.stop()
        result = await asyncio.wait_for(run, 1)

        assert result.status == WorkflowStatus.STOPPED
        assert team.get_workflow_status() == WorkflowStatus.STOPPED
        assert task_statuses(team) == {"a": TaskStatus.DONE, "b": TaskStatus.TODO, "c": TaskStatus.TODO}
        assert team.get_task("a").result == "outline"
        assert all(agent.status == AgentStatus.INITIAL for agent in team.store.get_state().agents)
        assert team.store.get_state().active_promises == {}

    async def test_stop_logs_abort_then_reset(self, pipeline):
        team, slow = pipeline
        run = await start_in_flight(team, slow)

        await team.stop()
        await asyncio.wait_for(run, 1)

        logs = team.store.get_state().workflow_logs
        b_statuses = [log.task_status for log in logs if log.log_type == LogType.TASK_STATUS_UPDATE and log.task.id == "b"]
        assert b_statuses == [TaskStatus.DOING, TaskStatus.ABORTED, TaskStatus.TODO]
        workflow = [log.workflow_status for log in logs if log.log_type == LogType.WORKFLOW_STATUS_UPDATE]
        assert workflow[-2:] == [WorkflowStatus.STOPPING, WorkflowStatus.STOPPED]

    async def test_stop_while_paused(self, board):
        team, gate, first, second = board
        run = await start_in_flight(team, first, second)
        await team.pause()

        await team.stop()
        result = await asyncio.wait_for(run, 1)

        assert result.status == WorkflowStatus.STOPPED
        assert all(status == TaskStatus.TODO for status in task_statuses(team).values())

    async def test_failed_reset_still_stops(self, pipeline, monkeypatch):
        team, slow = pipeline
        run = await start_in_flight(team, slow)

        async def broken_reset(task, keep_done=True):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(team.task_manager, "reset_task", broken_reset)

        with pytest.raises(WorkflowError, match="store unavailable"):
            await team.stop()
        result = await asyncio.wait_for(run, 1)

        assert team.get_workflow_status() == WorkflowStatus.STOPPED
        assert result.status == WorkflowStatus.STOPPED
        assert "store unavailable" in result.error
        assert team.store.get_state().active_promises == {}

    async def test_controls_after_stop(self, pipeline):
        team, slow = pipeline
        run = await start_in_flight(team, slow)
        await team.stop()
        await asyncio.wait_for(run, 1)

        with pytest.raises(WorkflowError, match="Cannot pause a workflow that is STOPPED"):
            await team.pause()
        with pytest.raises(WorkflowError, match="Cannot stop"):
            await team.stop()

    async def test_restart_after_stop(self, pipeline):
        team, slow = pipeline
        run = await start_in_flight(team, slow)
        await team.stop()
        await asyncio.wait_for(run, 1)

        slow.gate.set()
        result = await asyncio.wait_for(team.start(), 2)

        assert result.status == WorkflowStatus.FINISHED
        assert all(status == TaskStatus.DONE for status in task_statuses(team).values())
