"""Content acquisition: route each URL to static fetch or a rendered tab."""

import logging
from typing import Awaitable, Callable, Optional

from ..config import Config
from ..models import ExtractedContent
from ..router import RENDERED, classify_url
from .firecrawl import FirecrawlExtractor
from .static import create_failed_extraction, extract_article, fetch_and_extract

logger = logging.getLogger(__name__)

__all__ = [
    "ContentRouter",
    "FirecrawlExtractor",
    "create_failed_extraction",
    "extract_article",
    "fetch_and_extract",
    "make_static_extractor",
]

Extractor = Callable[[str], Awaitable[ExtractedContent]]


def make_static_extractor(config: Config) -> Extractor:
    """Pick the static backend named by ``config.static_backend``."""
    if config.static_backend == "firecrawl":
        return FirecrawlExtractor(config.firecrawl_api_key)
    return fetch_and_extract


class ContentRouter:
    """Callable extractor: rendered-class URLs go to the tab pool, the rest
    to the static backend.

    Without a tab pool, rendered URLs fall back to static fetching, which
    usually yields a login wall the quality check then flags.
    """

    def __init__(
        self,
        static_extract: Extractor = fetch_and_extract,
        tab_pool=None,
        on_retry: Optional[Callable[[str, int, int], None]] = None,
    ):
        self._static_extract = static_extract
        self._tab_pool = tab_pool
        self._on_retry = on_retry

    async def __call__(self, url: str) -> ExtractedContent:
        if classify_url(url) == RENDERED:
            if self._tab_pool is not None:
                return await self._tab_pool.extract_via_dom(url, self._retry_callback(url))
            logger.warning("No browser available for %s; falling back to static fetch", url)
        return await self._static_extract(url)

    def _retry_callback(self, url: str) -> Optional[Callable[[int, int], None]]:
        if self._on_retry is None:
            return None
        on_retry = self._on_retry
        return lambda attempt, total: on_retry(url, attempt, total)
