"""Summarization stage."""

from dataclasses import dataclass

from ..llm.base import LLMProvider, ToolSpec
from ..models import ExtractedContent
from .base import NoteStage, require_string, require_string_list

# detail level -> (summary guidance, max key takeaways)
DETAIL_LEVELS = {
    "brief": ("a 1-2 sentence summary", 3),
    "standard": ("a 2-3 sentence summary", 5),
    "detailed": ("a detailed summary of one or two paragraphs", 8),
}


@dataclass
class SummarizationResult:
    title: str
    summary: str
    key_takeaways: list[str]


def build_summarization_prompt(content: ExtractedContent, detail_level: str = "standard") -> str:
    guidance, max_takeaways = DETAIL_LEVELS[detail_level]
    parts = [
        f"Summarize this content for an Obsidian note. Write {guidance} and "
        f"up to {max_takeaways} key takeaways.",
        "",
        f"Title: {content.title}",
        f"Author: {content.author}" if content.author else None,
        f"Published: {content.date_published}" if content.date_published else None,
        f"URL: {content.url}",
        f"Type: {content.type} ({content.platform})",
        "",
        "Content:",
        content.content,
    ]
    return "\n".join(p for p in parts if p is not None)


class SummarizeStage(NoteStage[SummarizationResult]):
    def __init__(self, llm: LLMProvider, detail_level: str = "standard"):
        super().__init__(llm)
        self._detail_level = detail_level
        self._max_takeaways = DETAIL_LEVELS[detail_level][1]

    @property
    def stage(self) -> str:
        return "summarization"

    @property
    def tool(self) -> ToolSpec:
        return ToolSpec(
            name="summarize_content",
            description="Summarize web content into a structured format for an Obsidian note.",
            parameters={
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": "A concise, descriptive title for the note",
                    },
                    "summary": {
                        "type": "string",
                        "description": DETAIL_LEVELS[self._detail_level][0].capitalize(),
                    },
                    "keyTakeaways": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": (
                            f"Up to {self._max_takeaways} key takeaways or insights"
                        ),
                    },
                },
                "required": ["title", "summary", "keyTakeaways"],
            },
        )

    def _validate(self, arguments: dict) -> SummarizationResult:
        if not isinstance(arguments, dict) or not all(
            key in arguments for key in ("title", "summary", "keyTakeaways")
        ):
            raise ValueError("Invalid summarization result: missing required fields")
        title = require_string(arguments, "title", self.stage).strip()
        summary = require_string(arguments, "summary", self.stage).strip()
        takeaways = require_string_list(arguments, "keyTakeaways", self.stage)
        takeaways = [t.strip() for t in takeaways if t.strip()]
        return SummarizationResult(
            title=title,
            summary=summary,
            key_takeaways=takeaways[:self._max_takeaways],
        )

    async def summarize(self, content: ExtractedContent) -> SummarizationResult:
        return await self._run(build_summarization_prompt(content, self._detail_level))
