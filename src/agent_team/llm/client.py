"""Language-model clients for agent-team.

This module defines the ``LanguageModelClient`` protocol the agentic loop
depends on, and an implementation for OpenAI-compatible chat APIs
(OpenAI, DeepSeek, Ollama and custom endpoints).
"""

import os
from typing import Any, AsyncIterator, Mapping, Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from ..config.schemas import LLMConfig
from ..models.output import LLMUsage
from ..utils.errors import AbortError, LLMInvocationError, ValidationError
from ..utils.logging import get_logger
from ..utils.retry import async_retry_with_exponential_backoff

logger = get_logger(__name__)


class LLMResponse(BaseModel):
    """A complete model response."""

    text: str
    usage: LLMUsage = Field(default_factory=LLMUsage)
    model: str = ""


class LLMChunk(BaseModel):
    """One streamed piece of a model response; usage arrives with the last chunk."""

    text: str = ""
    usage: Optional[LLMUsage] = None


@runtime_checkable
class LanguageModelClient(Protocol):
    """Interface consumed by the iteration controller."""

    async def generate(self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None) -> LLMResponse:
        ...

    def generate_stream(
        self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None
    ) -> AsyncIterator[LLMChunk]:
        ...

    def validate_config(self) -> None:
        ...

    async def cleanup(self) -> None:
        ...


def resolve_api_key(config: LLMConfig, env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Find the API key: inline value, then team env, then process env."""
    if config.api_key:
        return config.api_key
    var = config.resolved_api_key_env
    if not var:
        return None
    if env and env.get(var):
        return env[var]
    return os.environ.get(var) or None


class OpenAIChatClient:
    """Client for OpenAI-compatible chat completion APIs.

    Args:
        config: LLM configuration
        env: Team environment consulted for the API key before ``os.environ``
    """

    def __init__(self, config: LLMConfig, env: Optional[Mapping[str, str]] = None) -> None:
        self.config = config
        self.api_key = resolve_api_key(config, env)
        self.client = AsyncOpenAI(
            base_url=config.resolved_endpoint,
            api_key=self.api_key or "not-needed",
            timeout=config.timeout_ms / 1000,
            max_retries=0,
        )
        self._retry = async_retry_with_exponential_backoff(max_attempts=config.max_retries)

    def validate_config(self) -> None:
        """Check the configuration can reach a provider.

        Raises:
            ValidationError: Listing every problem found
        """
        problems = []
        if self.config.provider in ("openai", "deepseek") and not self.api_key:
            problems.append(
                f"API key for provider '{self.config.provider}' not found "
                f"(set {self.config.resolved_api_key_env} in the team env or the environment)"
            )
        if self.config.provider == "custom" and not self.config.endpoint:
            problems.append("provider 'custom' requires an endpoint")
        if problems:
            raise ValidationError("Invalid LLM configuration", errors=problems)

    def _params(self, messages: list[dict[str, str]], options: Optional[dict[str, Any]]) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
        }
        if self.config.max_tokens:
            params["max_tokens"] = self.config.max_tokens
        params.update(options or {})
        return params

    async def generate(self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None) -> LLMResponse:
        """Request one completion.

        Raises:
            LLMInvocationError: If the provider call fails after retries
        """
        params = self._params(messages, options)
        try:
            response = await self._retry(self.client.chat.completions.create)(**params)
        except AbortError:
            raise
        except Exception as e:
            logger.error(f"LLM completion error ({self.config.model}): {e}")
            raise LLMInvocationError(
                f"Language model call failed: {e}",
                root_error=e,
                recommended_action="Check the provider endpoint, model name and API key",
                context={"model": self.config.model, "provider": self.config.provider},
            ) from e

        usage = LLMUsage()
        if response.usage is not None:
            usage = LLMUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )
        return LLMResponse(
            text=response.choices[0].message.content or "",
            usage=usage,
            model=getattr(response, "model", None) or self.config.model,
        )

    async def generate_stream(
        self, messages: list[dict[str, str]], options: Optional[dict[str, Any]] = None
    ) -> AsyncIterator[LLMChunk]:
        """Stream a completion chunk by chunk.

        Raises:
            LLMInvocationError: If the provider call fails
        """
        params = self._params(messages, options)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}
        try:
            stream = await self._retry(self.client.chat.completions.create)(**params)
            async for chunk in stream:
                text = ""
                if chunk.choices:
                    text = chunk.choices[0].delta.content or ""
                usage = None
                if getattr(chunk, "usage", None) is not None:
                    usage = LLMUsage(
                        input_tokens=chunk.usage.prompt_tokens,
                        output_tokens=chunk.usage.completion_tokens,
                    )
                if text or usage:
                    yield LLMChunk(text=text, usage=usage)
        except AbortError:
            raise
        except Exception as e:
            logger.error(f"LLM streaming error ({self.config.model}): {e}")
            raise LLMInvocationError(f"Language model stream failed: {e}", root_error=e) from e

    async def cleanup(self) -> None:
        await self.client.close()


def create_llm_client(config: LLMConfig, env: Optional[Mapping[str, str]] = None) -> OpenAIChatClient:
    """Build the client for ``config``."""
    return OpenAIChatClient(config, env=env)
