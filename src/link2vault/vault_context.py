"""Vault context sampling for categorization.

Builds a bounded snapshot of the vault (folders, tags and a few notes per
folder) once per batch. The LLM categorization stage uses the folders and
tags as the allowed vocabulary and the sampled notes as examples.
"""

import asyncio
import logging
from typing import Optional

from .models import TagGroup, VaultContext
from .vault import VaultClient

logger = logging.getLogger(__name__)

MAX_SAMPLED_FOLDERS = 10
NOTES_PER_FOLDER = 5

PARA_FOLDERS = ("Projects", "Areas", "Resources", "Archive")


async def build_vault_context(
    client: VaultClient,
    tag_groups: Optional[list[TagGroup]] = None,
    organization: str = "custom",
) -> VaultContext:
    """Sample the vault. Any failure here is a batch-level failure."""
    folders, tags = await asyncio.gather(client.list_folders(), client.list_tags())

    if organization == "para" and not folders:
        # An empty PARA vault still has a known set of destinations
        folders = list(PARA_FOLDERS)
        sampled: list[str] = []
    else:
        sampled = folders[:MAX_SAMPLED_FOLDERS]

    note_lists = await asyncio.gather(
        *(client.sample_notes(folder, NOTES_PER_FOLDER) for folder in sampled)
    )
    recent_notes = [note for notes in note_lists for note in notes]

    logger.info(
        "Vault context: %d folders, %d tags, %d sample notes",
        len(folders), len(tags), len(recent_notes),
    )
    return VaultContext(
        folders=folders,
        tags=tags,
        recent_notes=recent_notes,
        tag_groups=list(tag_groups or []),
        organization=organization,
    )
