"""Abstract base class for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ToolSpec:
    """A function the model is forced to call, described by a JSON schema."""

    name: str
    description: str
    parameters: dict = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    @abstractmethod
    async def call_tool(
        self,
        prompt: str,
        tool: ToolSpec,
        max_output_tokens: Optional[int] = None,
    ) -> dict:
        """Force the model to call ``tool`` and return the call's arguments.

        Args:
            prompt: User-level content/request.
            tool: The tool the model must call.
            max_output_tokens: Override the default max output tokens.

        Raises LLMError on transport failures or when the response holds no
        usable call to ``tool``.
        """

    @property
    @abstractmethod
    def default_max_output_tokens(self) -> int:
        """Default maximum output tokens for this provider."""
