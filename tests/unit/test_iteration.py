"""Unit tests for the agentic loop (iteration controller)."""

import pytest
from pydantic import BaseModel

from agent_team.agent import AgentExecutionOutcome, LoopOutcomeKind
from agent_team.llm.prompts import PromptTemplates
from agent_team.models import AgentStatus, Task
from agent_team.models.status import LogType, WorkflowAction, WorkflowStatus
from agent_team.tools import BlockTaskTool, FunctionTool
from agent_team.utils.errors import LLMInvocationError


def lookup(city: str) -> str:
    """Population lookup."""
    return f"{city}: 2.1 million"


class Report(BaseModel):
    title: str
    pages: int


def agent_statuses(team, agent):
    return [
        log.agent_status
        for log in team.store.get_state().workflow_logs
        if log.log_type == LogType.AGENT_STATUS_UPDATE and log.agent.id == agent.id
    ]


def agent_logs(team, status):
    return [log for log in team.store.get_state().workflow_logs if log.agent_status == status]


@pytest.fixture
def team(team_factory):
    return team_factory()


@pytest.fixture
def setup(team, agent_config, scripted_client):
    """Create an agent with a scripted client and a task for it."""

    def make(*responses, max_iterations=10, force_final_answer=True, tools=(), **client_kwargs):
        client = scripted_client(*responses, **client_kwargs)
        agent = team.create_agent(
            agent_config(max_iterations=max_iterations, force_final_answer=force_final_answer),
            tools=tools,
            llm_client=client,
        )
        task = team.add_task(Task(description="Write a haiku", expected_output="A haiku", agent=agent))
        agent.begin_task(task.id, "system prompt")
        return agent, task, client

    return make


@pytest.mark.asyncio
class TestIterationController:
    """Tests for IterationController.run."""

    async def test_final_answer_on_first_iteration(self, team, setup):
        agent, task, client = setup({"finalAnswer": "An old silent pond"})

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.FINAL_ANSWER
        assert outcome.final_answer == "An old silent pond"
        assert outcome.iterations == 1
        assert agent.status == AgentStatus.TASK_COMPLETED
        assert agent_statuses(team, agent) == [
            AgentStatus.ITERATION_START,
            AgentStatus.THINKING,
            AgentStatus.THINKING_END,
            AgentStatus.FINAL_ANSWER,
            AgentStatus.ITERATION_END,
            AgentStatus.TASK_COMPLETED,
        ]

    async def test_messages_sent_to_model(self, team, setup):
        agent, task, client = setup({"finalAnswer": "done"})

        await team.agent_manager.iteration.run(agent, task, "Go")

        assert client.calls[0] == [
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "Go"},
        ]
        assert [m.role for m in agent.messages] == ["user", "assistant"]

    async def test_tool_call_then_answer(self, team, setup):
        agent, task, client = setup(
            {"thought": "Need data", "action": "lookup", "actionInput": {"city": "Paris"}},
            {"finalAnswer": "Paris has 2.1 million people"},
            tools=[FunctionTool(lookup)],
        )

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.final_answer == "Paris has 2.1 million people"
        assert outcome.iterations == 2
        assert "Paris: 2.1 million" in client.last_prompt
        assert AgentStatus.USING_TOOL_END in agent_statuses(team, agent)

    async def test_thinking_end_metadata(self, team, setup):
        agent, task, client = setup({"finalAnswer": "done"}, usage=(120, 30))

        await team.agent_manager.iteration.run(agent, task, "Go")

        metadata = agent_logs(team, AgentStatus.THINKING_END)[0].metadata
        assert metadata["output"] == {"finalAnswer": "done"}
        assert metadata["parse_outcome"] == "parsed"
        assert metadata["usage"]["input_tokens"] == 120
        assert metadata["usage"]["output_tokens"] == 30
        assert metadata["usage"]["latency_ms"] >= 0
        assert metadata["model"] == "gpt-4o-mini"

    async def test_iteration_metadata(self, team, setup):
        agent, task, client = setup({"observation": "hmm"}, {"finalAnswer": "done"})

        await team.agent_manager.iteration.run(agent, task, "Go")

        starts = agent_logs(team, AgentStatus.ITERATION_START)
        assert [log.metadata for log in starts] == [
            {"iteration": 0, "max_agent_iterations": 10},
            {"iteration": 1, "max_agent_iterations": 10},
        ]

    async def test_max_iterations(self, team, setup):
        """The loop never runs more than max_iterations model calls."""
        agent, task, client = setup(default={"observation": "partial draft: roses are red"}, max_iterations=3)

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.MAX_ITERATIONS
        assert len(client.calls) == 3
        assert outcome.iterations == 3
        assert agent.status == AgentStatus.MAX_ITERATIONS_ERROR
        error_log = agent_logs(team, AgentStatus.MAX_ITERATIONS_ERROR)[0]
        assert error_log.metadata == {
            "iterations": 3,
            "max_agent_iterations": 3,
            "last_output": {"observation": "partial draft: roses are red"},
        }

    async def test_max_iterations_result_keeps_last_output(self, team, setup):
        agent, task, client = setup(default={"observation": "partial draft: roses are red"}, max_iterations=3)

        result = await team.agent_manager.execute_task(agent, task)

        assert result.outcome == AgentExecutionOutcome.MAX_ITERATIONS_ERROR
        assert result.last_output == {"observation": "partial draft: roses are red"}

    async def test_force_final_answer_two_before_cap(self, team, setup):
        agent, task, client = setup(default={"observation": "still thinking"}, max_iterations=4)

        await team.agent_manager.iteration.run(agent, task, "Go")

        forced = PromptTemplates().force_final_answer_feedback(agent, task, 2, 4)
        sent = [call[-1]["content"] for call in client.calls]
        assert sent[2] == forced
        assert forced not in (sent[0], sent[1], sent[3])

    async def test_force_final_answer_disabled(self, team, setup):
        agent, task, client = setup(default={"observation": "x"}, max_iterations=4, force_final_answer=False)

        await team.agent_manager.iteration.run(agent, task, "Go")

        forced = PromptTemplates().force_final_answer_feedback(agent, task, 2, 4)
        assert all(call[-1]["content"] != forced for call in client.calls)

    async def test_unparseable_output_gets_feedback(self, team, setup):
        agent, task, client = setup("I refuse to use JSON", {"finalAnswer": "fine"})

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.final_answer == "fine"
        assert client.last_prompt == PromptTemplates().invalid_json_feedback(agent, task, "")
        assert len(agent_logs(team, AgentStatus.ISSUES_PARSING_LLM_OUTPUT)) == 1

    async def test_self_question_with_thought(self, team, setup):
        agent, task, client = setup(
            {"thought": "Which syllables?", "action": "self_question", "actionInput": "What is a haiku?"},
            {"finalAnswer": "done"},
        )

        await team.agent_manager.iteration.run(agent, task, "Go")

        assert AgentStatus.THOUGHT in agent_statuses(team, agent)
        assert client.last_prompt == PromptTemplates().thought_with_self_question_feedback(
            agent, task, "What is a haiku?"
        )

    async def test_self_question_without_thought(self, team, setup):
        agent, task, client = setup({"action": "self_question", "actionInput": "Why?"}, {"finalAnswer": "done"})

        await team.agent_manager.iteration.run(agent, task, "Go")

        assert AgentStatus.SELF_QUESTION in agent_statuses(team, agent)

    async def test_weird_output(self, team, setup):
        agent, task, client = setup({"isFinalAnswerReady": False}, {"finalAnswer": "done"})

        await team.agent_manager.iteration.run(agent, task, "Go")

        assert AgentStatus.WEIRD_LLM_OUTPUT in agent_statuses(team, agent)

    async def test_structured_answer_is_serialized_without_schema(self, team, setup):
        agent, task, client = setup({"finalAnswer": {"lines": 3}})

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")
        assert outcome.final_answer == '{"lines": 3}'

    async def test_output_schema(self, team, setup):
        agent, task, client = setup({"finalAnswer": {"title": "Q3"}}, {"finalAnswer": {"title": "Q3", "pages": 4}})
        task.output_schema = Report

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.final_answer == {"title": "Q3", "pages": 4}
        assert len(agent_logs(team, AgentStatus.OUTPUT_SCHEMA_VALIDATION_ERROR)) == 1

    async def test_block_task(self, team, setup):
        agent, task, client = setup(
            {"thought": "Unsafe", "action": "block_task", "actionInput": {"reason": "Needs admin rights"}},
            tools=[BlockTaskTool()],
        )

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.BLOCKED
        assert outcome.block_reason == "Needs admin rights"
        assert agent.status == AgentStatus.DECIDED_TO_BLOCK_TASK
        assert len(client.calls) == 1

    async def test_model_failure_ends_loop(self, team, setup):
        agent, task, client = setup(LLMInvocationError("rate limited"))

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.ERROR
        assert outcome.error == "Execution stopped due to a critical error: rate limited"
        assert agent.status == AgentStatus.AGENTIC_LOOP_ERROR
        assert AgentStatus.THINKING_ERROR in agent_statuses(team, agent)
        assert agent.messages == []

    async def test_unexpected_client_exception_is_wrapped(self, team, setup):
        agent, task, client = setup(ConnectionError("reset by peer"))

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.ERROR
        assert "reset by peer" in outcome.error

    async def test_streaming_client(self, team, setup):
        agent, task, client = setup({"finalAnswer": "streamed answer"})
        agent.llm_config = agent.llm_config.model_copy(update={"streaming": True})

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.final_answer == "streamed answer"
        assert agent_logs(team, AgentStatus.THINKING_END)[0].metadata["usage"]["input_tokens"] == 100

    async def test_guard_aborts_before_next_iteration(self, team, setup):
        agent, task, client = setup({"finalAnswer": "never sent"})
        team.store.set_state(lambda s: {"team_workflow_status": WorkflowStatus.PAUSED})

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.ABORTED
        assert outcome.abort_action == WorkflowAction.PAUSE
        assert client.calls == []

    async def test_resumed_loop_keeps_counting(self, team, setup):
        agent, task, client = setup(default={"observation": "x"}, max_iterations=3)
        agent.current_iterations = 2

        outcome = await team.agent_manager.iteration.run(agent, task, "Go")

        assert outcome.kind == LoopOutcomeKind.MAX_ITERATIONS
        assert len(client.calls) == 1
