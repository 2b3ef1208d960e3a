"""LLM provider factory."""

from ..config import Config
from .anthropic import AnthropicProvider
from .base import LLMProvider, ToolSpec
from .openai import OpenAIProvider, OpenRouterProvider

__all__ = [
    "AnthropicProvider",
    "LLMProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ToolSpec",
    "get_llm_provider",
]


def get_llm_provider(config: Config) -> LLMProvider:
    """Create and return the configured LLM provider."""
    if config.llm_provider == "claude":
        return AnthropicProvider(api_key=config.api_key, model=config.default_model)
    if config.llm_provider == "openai":
        return OpenAIProvider(api_key=config.api_key, model=config.default_model)
    return OpenRouterProvider(api_key=config.api_key, model=config.default_model)
