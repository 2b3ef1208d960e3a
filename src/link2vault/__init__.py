"""link2vault: turn bookmarked URLs into Obsidian notes."""

__version__ = "0.1.0"
