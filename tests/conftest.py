"""Test configuration and fixtures for agent-team tests.

This module provides shared fixtures and configuration for all tests,
including a scripted language-model client so no test needs an API key.
"""

import asyncio
import json
import os
from typing import Any, Optional

import pytest
from dotenv import load_dotenv

from agent_team.execution import Team
from agent_team.llm.client import LLMChunk, LLMResponse
from agent_team.models.output import LLMUsage
from agent_team.models.team import TeamState
from agent_team.state import StatusRegistry, Store
from agent_team.tracing.telemetry import TelemetrySink

# Load environment variables
load_dotenv()

# Tests never report telemetry.
os.environ.setdefault("AGENT_TEAM_TELEMETRY_OPT_OUT", "true")


class ScriptedLLMClient:
    """Language-model client replaying scripted responses.

    Each response is a string (returned as is), a dict (returned as
    JSON) or an exception (raised). Once the script is exhausted the
    ``default`` response is repeated. When ``gate`` is set, every call
    waits for it before answering, which keeps calls in flight.
    """

    def __init__(
        self,
        responses: Optional[list[Any]] = None,
        default: Any = None,
        model: str = "gpt-4o-mini",
        usage: tuple[int, int] = (100, 50),
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.responses = list(responses or [])
        self.default = default if default is not None else {"finalAnswer": "done"}
        self.model = model
        self.usage = usage
        self.gate = gate
        self.calls: list[list[dict[str, str]]] = []
        self.started = asyncio.Event()
        self.closed = False

    async def generate(self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None) -> LLMResponse:
        self.calls.append(list(messages))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()

        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, BaseException):
            raise response
        text = response if isinstance(response, str) else json.dumps(response)
        return LLMResponse(
            text=text,
            usage=LLMUsage(input_tokens=self.usage[0], output_tokens=self.usage[1]),
            model=self.model,
        )

    async def generate_stream(self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None):
        response = await self.generate(messages, options)
        middle = len(response.text) // 2
        yield LLMChunk(text=response.text[:middle])
        yield LLMChunk(text=response.text[middle:], usage=response.usage)

    def validate_config(self) -> None:
        pass

    async def cleanup(self) -> None:
        self.closed = True

    @property
    def last_prompt(self) -> str:
        """Content of the last user message sent to the model."""
        return self.calls[-1][-1]["content"]


@pytest.fixture(scope="function")
def scripted_client():
    """Factory for scripted language-model clients."""

    def make(*responses: Any, **kwargs: Any) -> ScriptedLLMClient:
        return ScriptedLLMClient(list(responses), **kwargs)

    return make


@pytest.fixture(scope="function")
def agent_config():
    """Factory for raw agent configuration mappings."""

    def make(name: str = "writer", role: str = "Writer", **overrides: Any) -> dict[str, Any]:
        return {
            "name": name,
            "role": role,
            "goal": f"Deliver the {role.lower()}'s part of the work",
            "background": "Ten years of experience",
            **overrides,
        }

    return make


@pytest.fixture(scope="function")
def team_factory():
    """Factory for teams with telemetry disabled."""

    def make(name: str = "test-team", **kwargs: Any) -> Team:
        kwargs.setdefault("telemetry", TelemetrySink(enabled=False))
        return Team(name, **kwargs)

    return make


@pytest.fixture(scope="function")
def registry():
    """A status registry with the built-in transition tables."""
    return StatusRegistry()


@pytest.fixture(scope="function")
def store():
    """An empty team store."""
    return Store(TeamState(name="test-team"))


TEAM_YAML = """\
name: research-team
env:
  OPENAI_API_KEY: sk-test
inputs:
  topic: sorting algorithms
agents:
  - name: researcher
    role: Researcher
    goal: Find accurate information
    background: Librarian
    kanban_tools: [block_task]
  - name: writer
    role: Writer
    goal: Write clear summaries
    background: Technical writer
    llm_config:
      model: gpt-4o
tasks:
  - id: research
    title: Research
    description: Research {topic}
    expected_output: A list of facts
    agent: researcher
  - id: summary
    description: Summarize the research
    agent_role: writer
    depends_on: [research]
workflow:
  max_concurrency: 2
"""


@pytest.fixture(scope="function")
def team_yaml(tmp_path):
    """Path of a valid team configuration file."""
    path = tmp_path / "team.yaml"
    path.write_text(TEAM_YAML, encoding="utf-8")
    return path


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (whole workflows with scripted models)"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (no external dependencies)"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
