"""OpenAI-compatible LLM providers (OpenAI and OpenRouter)."""

import json
from typing import Optional

import openai

from ..exceptions import LLMError
from .base import LLMProvider, ToolSpec

_DEFAULT_MAX_OUTPUT = 1024

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenAIProvider(LLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        default_headers: Optional[dict] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._client = client or openai.AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
        )
        self._model = model
        self._max_output = _DEFAULT_MAX_OUTPUT
        # Newer models (o1, o3, gpt-4.1, gpt-5, etc.) require
        # max_completion_tokens instead of max_tokens. We auto-detect
        # on the first call and cache the result.
        self._use_max_completion_tokens = not self._is_legacy_model(model)

    @property
    def default_max_output_tokens(self) -> int:
        return self._max_output

    @property
    def _label(self) -> str:
        return "OpenAI"

    async def call_tool(
        self,
        prompt: str,
        tool: ToolSpec,
        max_output_tokens: Optional[int] = None,
    ) -> dict:
        tokens = max_output_tokens or self._max_output
        request = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "tools": [{
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }],
            "tool_choice": {"type": "function", "function": {"name": tool.name}},
        }
        try:
            response = await self._call_api(tokens, request)
        except openai.RateLimitError as e:
            raise LLMError(f"{self._label} rate limit exceeded: {e}") from e
        except openai.APIError as e:
            raise LLMError(f"{self._label} API error: {e}") from e

        return self._extract_tool_arguments(response, tool.name)

    async def _call_api(self, tokens: int, request: dict):
        """Call the API, auto-detecting max_tokens vs max_completion_tokens."""
        token_param = (
            "max_completion_tokens"
            if self._use_max_completion_tokens
            else "max_tokens"
        )
        try:
            return await self._client.chat.completions.create(
                **request, **{token_param: tokens}
            )
        except openai.BadRequestError as e:
            # If the parameter is unsupported, toggle and retry once
            if "unsupported_parameter" in str(e).lower() or "Unsupported parameter" in str(e):
                self._use_max_completion_tokens = not self._use_max_completion_tokens
                alt_param = (
                    "max_completion_tokens"
                    if self._use_max_completion_tokens
                    else "max_tokens"
                )
                return await self._client.chat.completions.create(
                    **request, **{alt_param: tokens}
                )
            raise

    @staticmethod
    def _extract_tool_arguments(response, tool_name: str) -> dict:
        if not response.choices:
            raise LLMError("No choices in response")
        tool_calls = response.choices[0].message.tool_calls or []
        if not tool_calls:
            raise LLMError(f'No tool_calls in response for tool "{tool_name}"')
        call = next((tc for tc in tool_calls if tc.function.name == tool_name), None)
        if call is None:
            raise LLMError(f'No tool_call found for tool "{tool_name}"')
        try:
            arguments = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError as e:
            raise LLMError(f'Tool "{tool_name}" arguments are not valid JSON: {e}') from e
        if not isinstance(arguments, dict):
            raise LLMError(f'Tool "{tool_name}" arguments are not an object')
        return arguments

    @staticmethod
    def _is_legacy_model(model: str) -> bool:
        """Check if the model uses the legacy max_tokens parameter."""
        legacy_prefixes = ("gpt-3.5", "gpt-4o", "gpt-4-turbo", "gpt-4-")
        return "/" in model or any(model.startswith(p) for p in legacy_prefixes)


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter speaks the OpenAI chat-completions protocol."""

    def __init__(
        self,
        api_key: str,
        model: str = "google/gemini-2.0-flash-001",
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=OPENROUTER_BASE_URL,
            default_headers={"X-Title": "link2vault"},
            client=client,
        )

    @property
    def _label(self) -> str:
        return "OpenRouter"
