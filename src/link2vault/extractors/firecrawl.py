"""Firecrawl SDK wrapper as an alternative static backend."""

import asyncio
import logging

from firecrawl import FirecrawlApp

from ..models import ExtractedContent
from ..retry import exponential_backoff, retry_with_policy
from ..utils import count_words, truncate_at_boundary
from .static import MAX_CONTENT_CHARS, create_failed_extraction

logger = logging.getLogger(__name__)


def _field(obj, name: str, default=None):
    """Firecrawl returns Pydantic documents or plain dicts depending on version."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _metadata_dict(result) -> dict:
    metadata_obj = _field(result, "metadata", {})
    # Convert Pydantic model to dict if needed
    if hasattr(metadata_obj, "model_dump"):
        return metadata_obj.model_dump()
    if hasattr(metadata_obj, "dict"):
        return metadata_obj.dict()
    return metadata_obj if isinstance(metadata_obj, dict) else {}


class FirecrawlExtractor:
    """Scrape pages through Firecrawl and return ExtractedContent."""

    def __init__(self, api_key: str, max_attempts: int = 3, base_delay: float = 2.0, sleep=asyncio.sleep):
        self._app = FirecrawlApp(api_key=api_key)
        self._max_attempts = max_attempts
        self._policy = exponential_backoff(base_delay)
        self._sleep = sleep

    async def __call__(self, url: str) -> ExtractedContent:
        async def scrape(attempt: int):
            return await asyncio.to_thread(self._app.scrape, url, formats=["markdown"])

        try:
            result = await retry_with_policy(
                scrape, self._policy, self._max_attempts, sleep=self._sleep
            )
        except Exception as e:
            logger.debug("Firecrawl scrape of %s failed: %s", url, e)
            return create_failed_extraction(url, f"Fetch failed: {e}")

        if not result:
            return create_failed_extraction(url, f"Empty response from Firecrawl for {url}")

        markdown = _field(result, "markdown", "") or ""
        if not markdown.strip():
            return create_failed_extraction(url, "Extracted content is empty")

        metadata = _metadata_dict(result)
        status_code = metadata.get("status_code") or metadata.get("statusCode")
        if isinstance(status_code, int) and status_code >= 400:
            return create_failed_extraction(url, f"HTTP {status_code}")

        content = truncate_at_boundary(markdown.strip(), MAX_CONTENT_CHARS)
        return ExtractedContent(
            url=url,
            title=metadata.get("title") or metadata.get("og_title") or "",
            content=content,
            author=metadata.get("author"),
            date_published=metadata.get("published_time") or metadata.get("publishedTime"),
            word_count=count_words(content),
            type="article",
            platform="web",
            status="success",
        )
