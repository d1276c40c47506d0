"""Language-model access for agent-team: clients, prompts and output parsing."""

from .client import (
    LanguageModelClient,
    LLMChunk,
    LLMResponse,
    OpenAIChatClient,
    create_llm_client,
    resolve_api_key,
)
from .parser import OutputParser, quote_bare_keys
from .prompts import PromptTemplates

__all__ = [
    # Clients
    "LanguageModelClient",
    "LLMResponse",
    "LLMChunk",
    "OpenAIChatClient",
    "create_llm_client",
    "resolve_api_key",
    # Parsing
    "OutputParser",
    "quote_bare_keys",
    # Prompts
    "PromptTemplates",
]
