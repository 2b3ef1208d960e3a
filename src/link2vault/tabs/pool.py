"""Bounded pool of background tabs for rendered-page extraction.

Tabs are either preloaded (opened ahead of time, keyed by URL, at most
``max_preload`` at once) or created on demand when a URL is extracted
(at most ``max_concurrent`` at once). A URL holds at most one tab, and a
claimed tab is closed exactly once whatever the outcome.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Callable, Optional

from ..exceptions import (
    ExtractionError,
    NoReceiverError,
    TabClosedError,
    TabCreationError,
    TabError,
)
from ..extractors.static import create_failed_extraction
from ..models import ExtractedContent, PreloadedTab
from ..retry import extraction_backoff, retry_with_policy
from ..router import detect_platform, is_rendered_url
from .base import EXTRACT_CONTENT, EXTRACTION_RESULT, TabBrowser

logger = logging.getLogger(__name__)

REINJECT_ATTEMPTS = 3
REINJECT_DELAY = 0.5
CREATE_ATTEMPTS = 3
CREATE_RETRY_DELAY = 1.0


class TabPool:
    """Owns every background tab opened for a batch."""

    def __init__(
        self,
        browser: TabBrowser,
        max_concurrent: int = 2,
        max_preload: int = 5,
        load_timeout: float = 30.0,
        message_timeout: float = 15.0,
        max_attempts: int = 8,
        sleep=asyncio.sleep,
    ):
        self._browser = browser
        self._max_preload = max_preload
        self._load_timeout = load_timeout
        self._message_timeout = message_timeout
        self._max_attempts = max_attempts
        self._sleep = sleep

        self._preloaded: dict[str, PreloadedTab] = {}
        self._preloading: dict[str, asyncio.Task] = {}
        self._claimed: dict[str, int] = {}
        # claimed tabs that came from a preload slot; they hold it until released
        self._held_slots: set[str] = set()
        self._candidates: list[str] = []
        self._on_demand = asyncio.Semaphore(max_concurrent)
        self._url_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Bumped on clear; creations finishing under an older generation
        # close their tab instead of registering it.
        self._generation = 0

    @property
    def tracked_urls(self) -> frozenset[str]:
        return frozenset(self._preloaded) | frozenset(self._preloading) | frozenset(self._claimed)

    @property
    def preloaded_count(self) -> int:
        return len(self._preloaded)

    @property
    def active_count(self) -> int:
        return len(self._claimed)

    async def __aenter__(self) -> "TabPool":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # Preloading

    def preload_tabs(self, urls: list[str]) -> list[asyncio.Task]:
        """Start opening tabs for rendered URLs, up to the preload ceiling.

        URLs beyond the ceiling wait as candidates and are opened as slots
        free up. Returns the creation tasks started by this call.
        """
        tracked = self.tracked_urls
        for url in urls:
            if not is_rendered_url(url):
                continue
            if url in tracked or url in self._candidates:
                continue
            self._candidates.append(url)
        return self._fill_preload_slots()

    def _fill_preload_slots(self) -> list[asyncio.Task]:
        started = []
        while self._candidates and self._slots_in_use() < self._max_preload:
            url = self._candidates.pop(0)
            if url in self.tracked_urls:
                continue
            task = asyncio.create_task(self._preload_one(url, self._generation))
            self._preloading[url] = task
            started.append(task)
        return started

    def _slots_in_use(self) -> int:
        return len(self._preloaded) + len(self._preloading) + len(self._held_slots)

    async def _preload_one(self, url: str, generation: int) -> None:
        try:
            tab_id = await self._browser.create_tab(url)
        except TabError as e:
            logger.warning("Could not preload tab for %s: %s", url, e)
            if self._preloading.get(url) is asyncio.current_task():
                del self._preloading[url]
            self._fill_preload_slots()
            return

        if generation != self._generation or self._preloading.get(url) is not asyncio.current_task():
            logger.debug("Preloaded tab %d for %s is stale; closing it", tab_id, url)
            await self._close_quietly(tab_id)
            return

        del self._preloading[url]
        self._preloaded[url] = PreloadedTab(url=url, tab_id=tab_id)
        logger.debug("Preloaded tab %d for %s", tab_id, url)

    # Extraction

    async def extract_via_dom(
        self,
        url: str,
        on_retry: Optional[Callable[[int, int], None]] = None,
    ) -> ExtractedContent:
        """Extract ``url`` through an in-page agent.

        Never raises for a bad page; failures come back as a failed
        ExtractedContent.
        """
        platform = detect_platform(url)
        async with self._url_locks[url]:
            if url in self._candidates:
                self._candidates.remove(url)
            preload = self._preloading.get(url)
            if preload is not None:
                await asyncio.wait({preload})

            if url in self._preloaded:
                tab = self._preloaded.pop(url)
                self._claimed[url] = tab.tab_id
                self._held_slots.add(url)
                logger.debug("Claimed preloaded tab %d for %s", tab.tab_id, url)
                try:
                    return await self._extract_from_tab(url, tab.tab_id, platform, on_retry)
                finally:
                    await self.release(url)
                    self._held_slots.discard(url)
                    self._fill_preload_slots()

            async with self._on_demand:
                try:
                    tab_id = await self._create_with_retry(url)
                except TabCreationError as e:
                    return create_failed_extraction(url, f"Could not open tab: {e}", platform)
                self._claimed[url] = tab_id
                try:
                    return await self._extract_from_tab(url, tab_id, platform, on_retry)
                finally:
                    await self.release(url)

    async def _create_with_retry(self, url: str) -> int:
        for attempt in range(1, CREATE_ATTEMPTS + 1):
            try:
                return await self._browser.create_tab(url)
            except TabCreationError as e:
                if attempt == CREATE_ATTEMPTS:
                    raise
                logger.debug("Tab creation for %s refused (%s); retrying", url, e)
                await self._sleep(CREATE_RETRY_DELAY)
        raise AssertionError("unreachable")

    async def _extract_from_tab(
        self,
        url: str,
        tab_id: int,
        platform: str,
        on_retry: Optional[Callable[[int, int], None]],
    ) -> ExtractedContent:
        try:
            await self._browser.wait_for_load(tab_id, self._load_timeout)
        except asyncio.TimeoutError:
            logger.warning("Tab %d for %s did not finish loading; extracting anyway", tab_id, url)
        except TabClosedError as e:
            return create_failed_extraction(url, f"Tab closed during extraction: {e}", platform)
        except TabError as e:
            return create_failed_extraction(url, f"Navigation failed: {e}", platform)

        async def attempt(number: int) -> ExtractedContent:
            response = await self._request_extraction(tab_id, platform)
            return self._parse_response(response, url, platform)

        def should_retry(outcome: object) -> bool:
            if isinstance(outcome, TabClosedError):
                return False
            if isinstance(outcome, Exception):
                return True
            return not outcome.ok

        try:
            result = await retry_with_policy(
                attempt,
                extraction_backoff,
                self._max_attempts,
                should_retry=should_retry,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except TabClosedError as e:
            return create_failed_extraction(url, f"Tab closed during extraction: {e}", platform)
        except (TabError, ExtractionError, asyncio.TimeoutError) as e:
            detail = str(e) or type(e).__name__
            return create_failed_extraction(
                url, f"Timed out after {self._max_attempts} attempts ({detail})", platform
            )

        if not result.ok:
            return create_failed_extraction(
                url,
                f"Timed out after {self._max_attempts} attempts ({result.error or 'extraction failed'})",
                platform,
            )
        return result

    async def _request_extraction(self, tab_id: int, platform: str) -> dict:
        message = {"type": EXTRACT_CONTENT}
        try:
            return await self._browser.send_message(tab_id, message, self._message_timeout)
        except NoReceiverError as e:
            logger.info("No extraction agent in tab %d; re-injecting", tab_id)
            last_error = e

        for _ in range(REINJECT_ATTEMPTS):
            await self._browser.inject_agent(tab_id, platform)
            await self._sleep(REINJECT_DELAY)
            try:
                return await self._browser.send_message(tab_id, message, self._message_timeout)
            except NoReceiverError as e:
                last_error = e
        raise last_error

    @staticmethod
    def _parse_response(response: dict, url: str, platform: str) -> ExtractedContent:
        if not isinstance(response, dict) or response.get("type") != EXTRACTION_RESULT:
            raise ExtractionError("Unexpected response from extraction agent")
        data = response.get("data")
        if not isinstance(data, dict):
            raise ExtractionError("Extraction agent returned no data")

        data = dict(data)
        data.setdefault("url", url)
        if not data.get("platform"):
            data["platform"] = platform
        if not data.get("type"):
            data["type"] = "article" if data["platform"] == "web" else "social-media"
        if data.get("status") not in ("success", "failed"):
            # Agents report partial extractions as "review"; the quality
            # assessor judges those.
            data["status"] = "success" if data.get("content") else "failed"
        return ExtractedContent.from_dict(data)

    # Cleanup

    async def release(self, url: str) -> None:
        """Close and forget the tab tracked for ``url``, if any."""
        tab_id = self._claimed.pop(url, None)
        if tab_id is None:
            preloaded = self._preloaded.pop(url, None)
            tab_id = preloaded.tab_id if preloaded else None
        if tab_id is not None:
            await self._close_quietly(tab_id)

    async def clear_all_processing_tabs(self) -> None:
        """Force-close every tracked tab and reset the bookkeeping."""
        self._generation += 1
        self._candidates.clear()
        self._preloading.clear()
        tab_ids = [tab.tab_id for tab in self._preloaded.values()]
        tab_ids.extend(self._claimed.values())
        self._preloaded.clear()
        self._claimed.clear()
        self._held_slots.clear()
        if tab_ids:
            logger.info("Closing %d tab(s)", len(tab_ids))
        await asyncio.gather(*(self._close_quietly(tab_id) for tab_id in tab_ids))

    async def close(self) -> None:
        await self.clear_all_processing_tabs()
        await self._browser.close()

    async def _close_quietly(self, tab_id: int) -> None:
        try:
            await self._browser.close_tab(tab_id)
        except TabError as e:
            logger.debug("Closing tab %d failed: %s", tab_id, e)
