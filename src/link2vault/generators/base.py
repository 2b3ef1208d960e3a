"""Abstract base class for note generation stages."""

import logging
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from ..exceptions import LLMError, NoteGenerationError
from ..llm.base import LLMProvider, ToolSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NoteStage(ABC, Generic[T]):
    """One forced tool call against the LLM plus structural validation.

    Subclasses define stage, tool and _validate. Any transport failure or
    invalid output is raised as NoteGenerationError tagged with ``stage``;
    stages never retry on their own.
    """

    def __init__(self, llm: LLMProvider):
        self._llm = llm

    @property
    @abstractmethod
    def stage(self) -> str:
        """Identifier for this stage (summarization, categorization)."""

    @property
    @abstractmethod
    def tool(self) -> ToolSpec:
        """The tool the model must call."""

    @abstractmethod
    def _validate(self, arguments: dict, *context) -> T:
        """Turn tool arguments into a result. Raise ValueError when invalid.

        ``context`` is whatever the caller handed to ``_run`` for this call.
        """

    async def _run(self, prompt: str, *context) -> T:
        label = self.stage.capitalize()
        try:
            arguments = await self._llm.call_tool(prompt, self.tool)
        except LLMError as e:
            raise NoteGenerationError(
                f"{label} API call failed: {e}", self.stage, e
            ) from e

        try:
            result = self._validate(arguments, *context)
        except ValueError as e:
            raise NoteGenerationError(
                f"{label} result invalid: {e}", self.stage, e
            ) from e

        logger.debug("%s stage succeeded", label)
        return result


def require_string(arguments: dict, key: str, stage: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str):
        raise ValueError(f"Invalid {stage} result: {key} must be a string")
    return value


def require_string_list(arguments: dict, key: str, stage: str) -> list[str]:
    value = arguments.get(key)
    if not isinstance(value, list):
        raise ValueError(f"Invalid {stage} result: {key} must be an array")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"Invalid {stage} result: {key} must contain only strings")
    return value
