"""Direct HTTP fetch plus readability extraction for ordinary web pages.

Failures are reported through ``ExtractedContent(status="failed")`` with a
human-readable error; these functions never raise for a bad page.
"""

import asyncio
import logging
from typing import Optional

import httpx
import trafilatura

from ..models import ExtractedContent
from ..utils import count_words, truncate_at_boundary

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 32_000
MAX_RESPONSE_BYTES = 10 * 1024 * 1024
FETCH_TIMEOUT = 10.0
USER_AGENT = (
    "Mozilla/5.0 (compatible; link2vault/0.1; "
    "+https://github.com/link2vault/link2vault)"
)


def create_failed_extraction(url: str, error: str, platform: str = "web") -> ExtractedContent:
    return ExtractedContent(
        url=url,
        title="",
        content="",
        word_count=0,
        type="article" if platform == "web" else "social-media",
        platform=platform,
        status="failed",
        error=error,
    )


def extract_article(html: str, url: str) -> ExtractedContent:
    """Extract the main article from raw HTML as Markdown."""
    try:
        text = trafilatura.extract(
            html,
            url=url,
            output_format="markdown",
            include_comments=False,
            include_tables=True,
            include_formatting=True,
        )
        if text is None:
            return create_failed_extraction(url, "Readability could not parse content")
        if not text.strip():
            return create_failed_extraction(url, "Extracted content is empty")

        metadata = trafilatura.extract_metadata(html, default_url=url)
    except Exception as e:
        return create_failed_extraction(url, f"Extraction failed: {e}")

    content = truncate_at_boundary(text.strip(), MAX_CONTENT_CHARS)
    return ExtractedContent(
        url=url,
        title=(metadata.title if metadata and metadata.title else "") or "",
        content=content,
        author=metadata.author if metadata and metadata.author else None,
        date_published=metadata.date if metadata and metadata.date else None,
        word_count=count_words(content),
        type="article",
        platform="web",
        status="success",
    )


async def _download(url: str, client: httpx.AsyncClient) -> tuple[Optional[str], Optional[str]]:
    """Return (html, None) or (None, error)."""
    async with client.stream("GET", url, headers={"User-Agent": USER_AGENT}) as response:
        if not response.is_success:
            return None, f"HTTP {response.status_code} {response.reason_phrase}".strip()

        length = response.headers.get("content-length", "")
        if length.isdigit() and int(length) > MAX_RESPONSE_BYTES:
            return None, f"Response too large: {length} bytes (max {MAX_RESPONSE_BYTES})"

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type and "application/xhtml" not in content_type:
            return None, f"Non-HTML content-type: {content_type or 'unknown'}"

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > MAX_RESPONSE_BYTES:
                return None, f"Response too large: over {MAX_RESPONSE_BYTES} bytes"

        html = body.decode(response.encoding or "utf-8", errors="replace")
        if not html.strip():
            return None, "Empty response body"
        return html, None


async def fetch_and_extract(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
) -> ExtractedContent:
    """Fetch ``url`` directly and extract its article content."""
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=FETCH_TIMEOUT, follow_redirects=True)

    try:
        html, error = await _download(url, client)
    except httpx.TimeoutException:
        return create_failed_extraction(url, "Request timed out")
    except httpx.HTTPError as e:
        return create_failed_extraction(url, f"Fetch failed: {str(e) or type(e).__name__}")
    finally:
        if owns_client:
            await client.aclose()

    if error:
        logger.debug("Static fetch of %s failed: %s", url, error)
        return create_failed_extraction(url, error)

    return await asyncio.to_thread(extract_article, html, url)
