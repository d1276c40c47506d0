"""Agentic loop for agent-team.

This module implements the think -> parse -> classify -> act cycle an
agent runs for a task. Each iteration sends one feedback message to the
language model, parses the JSON answer, classifies it and produces the
feedback for the next iteration, until the agent gives a final answer,
blocks the task, hits its iteration cap or is aborted.
"""

import json
import time
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..llm.client import LLMResponse
from ..llm.parser import OutputParser
from ..llm.prompts import PromptTemplates
from ..models.agent import Agent
from ..models.message import Message
from ..models.output import LLMUsage, ParsedOutput, ThinkingResult
from ..models.status import AgentStatus, WorkflowAction
from ..models.task import Task
from ..state.promises import ActivePromises
from ..utils.errors import AbortError, LLMInvocationError, PauseAbortError
from ..utils.logging import get_logger
from .history import MessageHistory
from .invoker import ToolInvoker
from .transitions import AgentTransitions

logger = get_logger(__name__)

SELF_QUESTION_ACTION = "self_question"


class LoopOutcomeKind(str, Enum):
    """How an agentic loop ended."""

    FINAL_ANSWER = "final_answer"
    BLOCKED = "blocked"
    MAX_ITERATIONS = "max_iterations"
    ABORTED = "aborted"
    ERROR = "error"


class LoopOutcome(BaseModel):
    """Result of running the agentic loop for one task.

    Attributes:
        kind: How the loop ended
        final_answer: Answer (string, or dict when the task has an output schema)
        block_reason: Why the agent blocked the task
        error: Error description for ERROR and MAX_ITERATIONS
        abort_action: PAUSE or STOP when aborted
        iterations: Iterations used so far on the task
        max_iterations: The agent's cap
        last_output: Last parsed model output
    """

    kind: LoopOutcomeKind
    final_answer: Any = None
    block_reason: Optional[str] = None
    error: Optional[str] = None
    abort_action: Optional[WorkflowAction] = None
    iterations: int = 0
    max_iterations: int = 0
    last_output: Optional[ParsedOutput] = None


class _Step(BaseModel):
    """What one classified response produced."""

    feedback: Optional[str] = None
    final_answer: Any = None
    has_final_answer: bool = False
    block_reason: Optional[str] = None


class IterationController:
    """Runs the agentic loop of one agent on one task at a time."""

    def __init__(
        self,
        transitions: AgentTransitions,
        promises: ActivePromises,
        history: MessageHistory,
        guard: Optional[Callable[[], None]] = None,
        parser: Optional[OutputParser] = None,
        prompts: Optional[PromptTemplates] = None,
        tool_invoker: Optional[ToolInvoker] = None,
    ) -> None:
        """Initialize the iteration controller.

        Args:
            transitions: Agent status updater
            promises: Registry of abortable calls
            history: Conversation history writer
            guard: Raises an ``AbortError`` when the workflow is paused or stopped
            parser: Output parser
            prompts: Feedback templates
            tool_invoker: Tool runner (built from the other arguments if omitted)
        """
        self.transitions = transitions
        self.promises = promises
        self.history = history
        self.guard = guard or (lambda: None)
        self.parser = parser or OutputParser()
        self.prompts = prompts or PromptTemplates()
        self.tool_invoker = tool_invoker or ToolInvoker(transitions, promises, self.prompts, guard=self.guard)

    async def run(self, agent: Agent, task: Task, feedback_message: str) -> LoopOutcome:
        """Run the loop until it ends.

        Starts from ``agent.current_iterations``, so a resumed task keeps
        counting where it was paused.

        Args:
            agent: Agent working on the task
            task: The task
            feedback_message: First message to send

        Returns:
            LoopOutcome (the loop never raises for model or tool failures)
        """
        max_iterations = agent.max_iterations
        iterations = agent.current_iterations
        feedback = feedback_message
        last_output: Optional[ParsedOutput] = None
        step = _Step()

        def outcome(kind: LoopOutcomeKind, **kwargs: Any) -> LoopOutcome:
            return LoopOutcome(
                kind=kind,
                iterations=iterations,
                max_iterations=max_iterations,
                last_output=last_output,
                **kwargs,
            )

        try:
            while iterations < max_iterations:
                self.guard()

                if agent.force_final_answer and iterations == max_iterations - 2:
                    feedback = self.prompts.force_final_answer_feedback(agent, task, iterations, max_iterations)
                agent.last_feedback_message = feedback

                await self.transitions.update(
                    agent,
                    task,
                    AgentStatus.ITERATION_START,
                    f"Iteration {iterations + 1}/{max_iterations} started",
                    {"iteration": iterations, "max_agent_iterations": max_iterations},
                )

                thinking = await self._think(agent, task, feedback)
                last_output = thinking.output
                step = await self._handle_output(agent, task, thinking)

                await self.transitions.update(
                    agent,
                    task,
                    AgentStatus.ITERATION_END,
                    f"Iteration {iterations + 1}/{max_iterations} ended",
                    {"iteration": iterations, "max_agent_iterations": max_iterations},
                )
                iterations += 1
                agent.current_iterations = iterations

                if step.has_final_answer or step.block_reason:
                    break
                feedback = step.feedback or ""

        except AbortError as e:
            action = WorkflowAction.PAUSE if isinstance(e, PauseAbortError) else WorkflowAction.STOP
            logger.info(f"Agent {agent.name} aborted on task {task.id}: {e.message}")
            return outcome(LoopOutcomeKind.ABORTED, abort_action=action, error=e.message)

        except LLMInvocationError as e:
            error = f"Execution stopped due to a critical error: {e.message}"
            logger.error(f"Agent {agent.name} failed on task {task.id}: {e.message}")
            await self.transitions.update(
                agent,
                task,
                AgentStatus.AGENTIC_LOOP_ERROR,
                "Agentic loop error",
                {"error": e.to_dict(), "iterations": iterations},
            )
            return outcome(LoopOutcomeKind.ERROR, error=error)

        if step.has_final_answer:
            await self.transitions.update(
                agent,
                task,
                AgentStatus.TASK_COMPLETED,
                "Task completed",
                {"iterations": iterations, "max_agent_iterations": max_iterations},
            )
            return outcome(LoopOutcomeKind.FINAL_ANSWER, final_answer=step.final_answer)

        if step.block_reason:
            await self.transitions.update(
                agent,
                task,
                AgentStatus.DECIDED_TO_BLOCK_TASK,
                "Agent decided to block the task",
                {"block_reason": step.block_reason},
            )
            return outcome(LoopOutcomeKind.BLOCKED, block_reason=step.block_reason)

        logger.warning(f"Agent {agent.name} reached maximum iterations ({max_iterations}) on task {task.id}")
        await self.transitions.update(
            agent,
            task,
            AgentStatus.MAX_ITERATIONS_ERROR,
            f"Maximum iterations reached ({max_iterations})",
            {
                "iterations": iterations,
                "max_agent_iterations": max_iterations,
                "last_output": last_output.to_json_dict() if last_output else None,
            },
        )
        return outcome(
            LoopOutcomeKind.MAX_ITERATIONS,
            error=f"Agent {agent.name} reached the maximum number of iterations ({max_iterations})",
        )

    async def _think(self, agent: Agent, task: Task, feedback: str) -> ThinkingResult:
        """Send ``feedback`` to the model and parse the answer.

        Raises:
            LLMInvocationError: If the model call fails
            AbortError: If the call is aborted
        """
        await self.transitions.update(
            agent,
            task,
            AgentStatus.THINKING,
            "Agent is thinking...",
            {"messages_count": len(agent.messages) + 1, "model": agent.llm_config.model},
        )

        history = await self.history.get(agent)
        messages = [*agent.llm_messages(history), {"role": "user", "content": feedback}]
        start = time.perf_counter()
        try:
            response = await self.promises.run(
                agent.id,
                self._call_llm(agent, messages),
                label="llm",
                guard=self.guard,
            )
        except AbortError:
            raise
        except Exception as e:
            error = e if isinstance(e, LLMInvocationError) else LLMInvocationError(str(e), root_error=e)
            await self.transitions.update(
                agent,
                task,
                AgentStatus.THINKING_ERROR,
                "Error during thinking",
                {"error": error.to_dict(), "model": agent.llm_config.model},
            )
            if error is e:
                raise
            raise error from e

        latency_ms = (time.perf_counter() - start) * 1000
        usage = response.usage.model_copy(update={"latency_ms": latency_ms})
        model = response.model or agent.llm_config.model

        # The exchange is recorded only once the model has answered, so a
        # resumed task replays the same feedback without duplicating it.
        await self.history.add(
            agent,
            Message(role="user", content=feedback),
            Message(role="assistant", content=response.text),
        )

        parse = self.parser.parse(response.text)
        await self.transitions.update(
            agent,
            task,
            AgentStatus.THINKING_END,
            "Agent finished thinking",
            {
                "output": parse.output.to_json_dict() if parse.output else None,
                "parse_outcome": parse.outcome.value,
                "usage": {
                    "input_tokens": usage.input_tokens,
                    "output_tokens": usage.output_tokens,
                    "latency_ms": usage.latency_ms,
                },
                "model": model,
            },
        )
        return ThinkingResult(raw=response.text, parse=parse, usage=usage, model=model)

    async def _call_llm(self, agent: Agent, messages: list[dict[str, str]]) -> LLMResponse:
        client = agent.llm_client
        if client is None:
            raise LLMInvocationError(f"Agent {agent.name} has no language model client")

        if not agent.llm_config.streaming:
            return await client.generate(messages)

        parts: list[str] = []
        usage = LLMUsage()
        async for chunk in client.generate_stream(messages):
            parts.append(chunk.text)
            if chunk.usage is not None:
                usage = chunk.usage
        return LLMResponse(text="".join(parts), usage=usage, model=agent.llm_config.model)

    async def _handle_output(self, agent: Agent, task: Task, thinking: ThinkingResult) -> _Step:
        """Classify a parsed response, record it and build the next feedback."""
        parse = thinking.parse
        if not parse.ok:
            await self.transitions.update(
                agent,
                task,
                AgentStatus.ISSUES_PARSING_LLM_OUTPUT,
                "Agent output could not be parsed",
                {"raw": parse.raw, "error": parse.error, "model": thinking.model},
            )
            return _Step(feedback=self.prompts.invalid_json_feedback(agent, task, parse.raw))

        output = parse.output
        if output.final_answer is not None:
            answer, schema_error = self._coerce_final_answer(task, output.final_answer)
            if schema_error is not None:
                await self.transitions.update(
                    agent,
                    task,
                    AgentStatus.OUTPUT_SCHEMA_VALIDATION_ERROR,
                    "Final answer does not match the output schema",
                    {"error": schema_error, "final_answer": output.final_answer},
                )
                return _Step(feedback=self.prompts.invalid_output_schema_feedback(agent, task, schema_error))

            await self.transitions.update(
                agent,
                task,
                AgentStatus.FINAL_ANSWER,
                "Agent gave a final answer",
                {"final_answer": answer},
            )
            return _Step(final_answer=answer, has_final_answer=True)

        if output.action == SELF_QUESTION_ACTION:
            question = self._as_text(output.action_input)
            if output.thought:
                await self.transitions.update(
                    agent, task, AgentStatus.THOUGHT, "Agent thought", {"thought": output.thought, "question": question}
                )
                if question:
                    return _Step(feedback=self.prompts.thought_with_self_question_feedback(agent, task, question))
                return _Step(feedback=self.prompts.thought_feedback(agent, task, output.thought))

            await self.transitions.update(
                agent, task, AgentStatus.SELF_QUESTION, "Agent asked itself a question", {"question": question}
            )
            return _Step(feedback=self.prompts.self_question_feedback(agent, task, question))

        if output.action:
            await self.transitions.update(
                agent,
                task,
                AgentStatus.EXECUTING_ACTION,
                f"Executing action: {output.action}",
                {"action": output.action, "action_input": output.action_input, "thought": output.thought},
            )
            tool_outcome = await self.tool_invoker.execute_tool(agent, task, output.action, output.action_input)
            return _Step(feedback=tool_outcome.feedback_message, block_reason=tool_outcome.block_reason)

        if output.observation:
            await self.transitions.update(
                agent, task, AgentStatus.OBSERVATION, "Agent observed", {"observation": output.observation}
            )
            return _Step(feedback=self.prompts.observation_feedback(agent, task, output))

        await self.transitions.update(
            agent, task, AgentStatus.WEIRD_LLM_OUTPUT, "Unexpected agent output", {"output": output.to_json_dict()}
        )
        return _Step(feedback=self.prompts.weird_output_feedback(agent, task, output))

    @staticmethod
    def _coerce_final_answer(task: Task, final_answer: Any) -> tuple[Any, Optional[str]]:
        """Validate a final answer against the task's schema.

        Returns:
            (answer, None) on success, (None, error) on schema mismatch
        """
        if task.output_schema is None:
            if isinstance(final_answer, str):
                return final_answer, None
            return json.dumps(final_answer, default=str), None

        value = final_answer
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                return None, f"Final answer is not valid JSON: {e}"
        try:
            return task.output_schema.model_validate(value).model_dump(), None
        except PydanticValidationError as e:
            return None, str(e)

    @staticmethod
    def _as_text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)


__all__ = [
    "IterationController",
    "LoopOutcome",
    "LoopOutcomeKind",
    "SELF_QUESTION_ACTION",
]
