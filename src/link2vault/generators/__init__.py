"""Two-stage note generation: summarize, then categorize."""

from ..llm.base import LLMProvider
from ..models import ExtractedContent, ProcessedNote, VaultContext
from .categorize import CategorizationResult, CategorizeStage
from .summary import SummarizationResult, SummarizeStage

__all__ = [
    "CategorizationResult",
    "CategorizeStage",
    "SummarizationResult",
    "SummarizeStage",
    "generate_note",
]


def build_note(
    content: ExtractedContent,
    summarized: SummarizationResult,
    categorized: CategorizationResult,
) -> ProcessedNote:
    return ProcessedNote(
        title=summarized.title,
        summary=summarized.summary,
        key_takeaways=summarized.key_takeaways,
        suggested_folder=categorized.suggested_folder,
        suggested_tags=categorized.suggested_tags,
        type=content.type,
        platform=content.platform,
        source=content,
    )


async def generate_note(
    content: ExtractedContent,
    llm: LLMProvider,
    vault_context: VaultContext,
    detail_level: str = "standard",
) -> ProcessedNote:
    """Run both stages back to back and assemble the note."""
    summarized = await SummarizeStage(llm, detail_level).summarize(content)
    categorized = await CategorizeStage(llm).categorize(summarized, content, vault_context)
    return build_note(content, summarized, categorized)
