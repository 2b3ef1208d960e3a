"""Claude/Anthropic LLM provider."""

from typing import Optional

import anthropic

from ..exceptions import LLMError
from .base import LLMProvider, ToolSpec

_DEFAULT_MAX_OUTPUT = 1024


class AnthropicProvider(LLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5-20251001",
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model
        self._max_output = _DEFAULT_MAX_OUTPUT

    @property
    def default_max_output_tokens(self) -> int:
        return self._max_output

    async def call_tool(
        self,
        prompt: str,
        tool: ToolSpec,
        max_output_tokens: Optional[int] = None,
    ) -> dict:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_output_tokens or self._max_output,
                messages=[{"role": "user", "content": prompt}],
                tools=[{
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }],
                tool_choice={"type": "tool", "name": tool.name},
            )
        except anthropic.RateLimitError as e:
            raise LLMError(f"Anthropic rate limit exceeded: {e}") from e
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic API error: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "tool_use" and block.name == tool.name:
                if not isinstance(block.input, dict):
                    raise LLMError(f'Tool "{tool.name}" input is not an object')
                return block.input
        raise LLMError(f'No tool_use block in response for tool "{tool.name}"')
