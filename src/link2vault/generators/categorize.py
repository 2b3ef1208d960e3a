"""Categorization stage: pick a vault folder and tags for a summary."""

import logging
from dataclasses import dataclass

from ..llm.base import ToolSpec
from ..models import ExtractedContent, VaultContext
from ..utils import normalize_tag
from .base import NoteStage, require_string, require_string_list
from .summary import SummarizationResult

logger = logging.getLogger(__name__)

MAX_EXAMPLE_NOTES = 20
MAX_TAGS = 7

PARA_DESCRIPTIONS = {
    "Projects": "Short-term efforts with a clear goal and deadline",
    "Areas": "Ongoing responsibilities you manage over time",
    "Resources": "Topics or interests you want to reference later",
    "Archive": "Inactive items from the other three categories",
}

CATEGORIZE_TOOL = ToolSpec(
    name="categorize_content",
    description=(
        "Choose the best folder and tags for this content based on the "
        "user's vault structure."
    ),
    parameters={
        "type": "object",
        "properties": {
            "suggestedFolder": {
                "type": "string",
                "description": "The most appropriate existing folder path for this content",
            },
            "suggestedTags": {
                "type": "array",
                "items": {"type": "string"},
                "description": (
                    "3-7 relevant tags, preferring existing vault tags when appropriate"
                ),
            },
        },
        "required": ["suggestedFolder", "suggestedTags"],
    },
)


@dataclass
class CategorizationResult:
    suggested_folder: str
    suggested_tags: list[str]


def build_categorization_prompt(
    summarized: SummarizationResult,
    content: ExtractedContent,
    vault_context: VaultContext,
) -> str:
    if vault_context.folders:
        if vault_context.organization == "para":
            folder_list = "\n".join(
                f"{f} - {PARA_DESCRIPTIONS[f]}" if f in PARA_DESCRIPTIONS else f
                for f in vault_context.folders
            )
        else:
            folder_list = "\n".join(vault_context.folders)
    else:
        folder_list = "(no folders yet)"

    tag_list = ", ".join(vault_context.tags) if vault_context.tags else "(no tags yet)"

    examples = vault_context.recent_notes[:MAX_EXAMPLE_NOTES]
    if examples:
        note_examples = "\n".join(
            f"  - {n.folder}/{n.title} [{', '.join(n.tags)}]" for n in examples
        )
    else:
        note_examples = "(no existing notes)"

    lines = [
        "Categorize this content into the user's Obsidian vault.",
        "",
        f"Title: {summarized.title}",
        f"Summary: {summarized.summary}",
        f"Type: {content.type} ({content.platform})",
        f"URL: {content.url}",
        "",
        "Available folders:",
        folder_list,
        "",
        "Existing tags:",
        tag_list,
    ]
    if vault_context.tag_groups:
        lines += ["", "Preferred tag groups:"]
        lines += [f"  {g.name}: {', '.join(g.tags)}" for g in vault_context.tag_groups]
    lines += [
        "",
        "Example notes in vault:",
        note_examples,
        "",
        "Choose the best existing folder for this content. Suggest tags that are relevant,",
        "preferring existing tags when they fit. You may suggest new tags if needed.",
    ]
    return "\n".join(lines)


class CategorizeStage(NoteStage[CategorizationResult]):
    """An unknown folder suggestion falls back to the first known vault
    folder, or is kept when the vault has none."""

    @property
    def stage(self) -> str:
        return "categorization"

    @property
    def tool(self) -> ToolSpec:
        return CATEGORIZE_TOOL

    def _validate(self, arguments: dict, folders: list[str]) -> CategorizationResult:
        if not isinstance(arguments, dict) or not all(
            key in arguments for key in ("suggestedFolder", "suggestedTags")
        ):
            raise ValueError("Invalid categorization result: missing required fields")
        folder = require_string(arguments, "suggestedFolder", self.stage).strip().strip("/")
        raw_tags = require_string_list(arguments, "suggestedTags", self.stage)

        if folders and folder not in folders:
            logger.debug("Unknown folder %r suggested; using %r", folder, folders[0])
            folder = folders[0]

        tags: list[str] = []
        for tag in raw_tags:
            tag = normalize_tag(tag)
            if tag and tag not in tags:
                tags.append(tag)
        return CategorizationResult(suggested_folder=folder, suggested_tags=tags[:MAX_TAGS])

    async def categorize(
        self,
        summarized: SummarizationResult,
        content: ExtractedContent,
        vault_context: VaultContext,
    ) -> CategorizationResult:
        return await self._run(
            build_categorization_prompt(summarized, content, vault_context),
            list(vault_context.folders),
        )
