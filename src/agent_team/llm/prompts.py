"""Prompt and feedback templates for agent-team.

``PromptTemplates`` renders the system prompt, the initial task message
and the feedback messages the iteration controller sends after each
classified response. Subclass it (or pass overrides) to change wording.
"""

import json
from typing import Any, Callable, Optional

from ..models.agent import Agent
from ..models.output import ParsedOutput
from ..models.task import Task

OUTPUT_FORMAT = """\
You must answer with a single JSON object and nothing else, in one of these forms:

1. To think and use a tool:
{
  "thought": "your reasoning about what to do next",
  "action": "tool_name",
  "actionInput": {"argument": "value"}
}

2. To ask yourself a clarifying question:
{
  "thought": "your reasoning",
  "action": "self_question",
  "actionInput": "the question"
}

3. After reading a tool result:
{
  "observation": "what you learned",
  "isFinalAnswerReady": false
}

4. When you can answer:
{
  "finalAnswer": "your final answer"
}"""


class PromptTemplates:
    """Renders every message the agentic loop sends to the model.

    Args:
        overrides: Optional mapping from method name (e.g.
            ``"tool_error_feedback"``) to a callable with the same signature
    """

    def __init__(self, overrides: Optional[dict[str, Callable[..., str]]] = None) -> None:
        self._overrides = dict(overrides or {})

    def _override(self, name: str, *args: Any) -> Optional[str]:
        custom = self._overrides.get(name)
        return custom(*args) if custom else None

    def system_message(self, agent: Agent, task: Task) -> str:
        custom = self._override("system_message", agent, task)
        if custom is not None:
            return custom

        if agent.tools:
            tool_lines = "\n".join(
                f"- {t.name}: {t.description} Input schema: {json.dumps(t.parameters)}" for t in agent.tools
            )
        else:
            tool_lines = "No tools available. You must reason through the task yourself."

        schema_hint = ""
        if task.output_schema is not None:
            schema_hint = (
                "\n\nYour finalAnswer must be a JSON object matching this schema: "
                f"{json.dumps(task.output_schema.model_json_schema())}"
            )

        return (
            f"Hello, you are {agent.name}.\n"
            f"Your role is: {agent.role}.\n"
            f"Your background is: {agent.background}.\n"
            f"Your main goal is: {agent.goal}.\n\n"
            f"Tools available to you:\n{tool_lines}\n\n"
            f"{OUTPUT_FORMAT}{schema_hint}"
        )

    def initial_message(self, agent: Agent, task: Task, context: str = "") -> str:
        custom = self._override("initial_message", agent, task, context)
        if custom is not None:
            return custom
        message = (
            f"Hi {agent.name}, please complete the following task: {task.interpolated_description}. "
            f'Your expected output should be: "{task.expected_output}".'
        )
        if context:
            message += f" This is the context you are working with:\n{context}"
        return message

    def invalid_json_feedback(self, agent: Agent, task: Task, raw_output: str) -> str:
        return self._override("invalid_json_feedback", agent, task, raw_output) or (
            "You returned an invalid JSON object. Please format your answer as a valid JSON object. "
            'Just the JSON object not comments or anything else. E.g: {"finalAnswer": "The final answer"}'
        )

    def invalid_output_schema_feedback(self, agent: Agent, task: Task, error: str) -> str:
        return self._override("invalid_output_schema_feedback", agent, task, error) or (
            f"Your finalAnswer did not match the required output schema: {error}. "
            "Please correct it and respond in JSON format."
        )

    def thought_with_self_question_feedback(self, agent: Agent, task: Task, question: str) -> str:
        return self._override("thought_with_self_question_feedback", agent, task, question) or (
            f"Awesome, please answer yourself the question: {question}."
        )

    def thought_feedback(self, agent: Agent, task: Task, thought: str) -> str:
        return self._override("thought_feedback", agent, task, thought) or (
            "Your thoughts are great, let's keep going."
        )

    def self_question_feedback(self, agent: Agent, task: Task, question: str) -> str:
        return self._override("self_question_feedback", agent, task, question) or (
            f"Good question. Please proceed to answer: {question}. Remember to format your response as JSON."
        )

    def tool_result_feedback(self, agent: Agent, task: Task, tool_name: str, result: str) -> str:
        return self._override("tool_result_feedback", agent, task, tool_name, result) or (
            f"You got this result from the tool {tool_name}: {result}. "
            "What do you make of this result? Please respond in the correct JSON format."
        )

    def tool_error_feedback(self, agent: Agent, task: Task, tool_name: str, error: str) -> str:
        return self._override("tool_error_feedback", agent, task, tool_name, error) or (
            f"An error occurred while using the tool {tool_name}: {error}. "
            "Please try a different approach or tool. Remember to use JSON format for your response."
        )

    def tool_not_exist_feedback(self, agent: Agent, task: Task, tool_name: str) -> str:
        return self._override("tool_not_exist_feedback", agent, task, tool_name) or (
            f'The tool "{tool_name}" is not available to you. Please choose from the tools listed in your '
            "initial instructions. Respond with your new approach in JSON format."
        )

    def observation_feedback(self, agent: Agent, task: Task, output: ParsedOutput) -> str:
        return self._override("observation_feedback", agent, task, output) or (
            "Good observation. Based on this, what's your next step? Please continue in JSON format."
        )

    def weird_output_feedback(self, agent: Agent, task: Task, output: ParsedOutput) -> str:
        return self._override("weird_output_feedback", agent, task, output) or (
            "Your response format was incorrect. Please ensure you're providing a valid JSON object "
            "following the format specified in your instructions."
        )

    def force_final_answer_feedback(self, agent: Agent, task: Task, iterations: int, max_iterations: int) -> str:
        return self._override("force_final_answer_feedback", agent, task, iterations, max_iterations) or (
            f"You've used {iterations} out of {max_iterations} allowed iterations. "
            "Please provide your final answer now using the finalAnswer format in JSON."
        )

    def work_on_feedback_feedback(self, agent: Agent, task: Task, feedback: str) -> str:
        return self._override("work_on_feedback_feedback", agent, task, feedback) or (
            f'Please address this feedback: "{feedback}". '
            "Revise your approach accordingly and respond in JSON format."
        )
