"""TabBrowser backed by a single Playwright Chromium context."""

import asyncio
import itertools
import logging
from importlib import resources
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from ..exceptions import NoReceiverError, TabClosedError, TabCreationError, TabError
from .base import TabBrowser

logger = logging.getLogger(__name__)

AGENT_GLOBAL = "__link2vaultAgent"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def load_agent_script(platform: str, agent_dir: Optional[Path] = None) -> str:
    """Return the agent source for ``platform``.

    ``{agent_dir}/{platform}.js`` wins when present; otherwise the bundled
    generic agent is used.
    """
    if agent_dir is not None:
        candidate = Path(agent_dir) / f"{platform}.js"
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8")
    return resources.files("link2vault.tabs").joinpath("agents/generic.js").read_text(encoding="utf-8")


class PlaywrightBrowser(TabBrowser):
    """Background tabs are pages of one browser context, keyed by int id."""

    def __init__(self, headless: bool = True, agent_dir: Optional[Path] = None):
        self._headless = headless
        self._agent_dir = agent_dir
        self._playwright = None
        self._browser = None
        self._context = None
        self._pages: dict = {}
        self._navigations: dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    async def start(self) -> "PlaywrightBrowser":
        """Launch Chromium. Any startup failure is raised as TabError."""
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            # Agents are injected with evaluate; bypass_csp keeps strict sites
            # from blocking them.
            self._context = await self._browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1280, "height": 900},
                bypass_csp=True,
            )
        except Exception as e:
            await self._stop_quietly()
            raise TabError(
                f"Could not launch Chromium: {e}. Run: playwright install chromium"
            ) from e
        logger.debug("Chromium started (headless=%s)", self._headless)
        return self

    async def _stop_quietly(self) -> None:
        try:
            await self.close()
        except Exception as e:
            logger.debug("Cleanup after failed launch raised: %s", e)
        self._context = None
        self._browser = None
        self._playwright = None

    async def __aenter__(self) -> "PlaywrightBrowser":
        return await self.start()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    def _page(self, tab_id: int):
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            raise TabClosedError(f"Tab {tab_id} is closed")
        return page

    async def create_tab(self, url: str) -> int:
        if self._context is None:
            raise TabCreationError("Browser is not started")
        try:
            page = await self._context.new_page()
        except PlaywrightError as e:
            raise TabCreationError(str(e)) from e

        tab_id = next(self._ids)
        self._pages[tab_id] = page
        page.on("close", lambda _page: self._pages.pop(tab_id, None))
        self._navigations[tab_id] = asyncio.create_task(
            page.goto(url, wait_until="domcontentloaded", timeout=0)
        )
        logger.debug("Opened tab %d for %s", tab_id, url)
        return tab_id

    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        page = self._page(tab_id)
        navigation = self._navigations.get(tab_id)
        try:
            if navigation is not None:
                await asyncio.wait_for(asyncio.shield(navigation), timeout)
            await page.wait_for_load_state("load", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise asyncio.TimeoutError(str(e)) from e
        except PlaywrightError as e:
            if page.is_closed():
                raise TabClosedError(f"Tab {tab_id} closed while loading") from e
            raise TabError(str(e)) from e

    async def send_message(self, tab_id: int, message: dict, timeout: float) -> dict:
        page = self._page(tab_id)
        try:
            has_agent = await page.evaluate(f"() => typeof window.{AGENT_GLOBAL} === 'function'")
            if not has_agent:
                raise NoReceiverError(f"No extraction agent in tab {tab_id}")
            return await asyncio.wait_for(
                page.evaluate(f"(message) => window.{AGENT_GLOBAL}(message)", message),
                timeout,
            )
        except PlaywrightError as e:
            if page.is_closed():
                raise TabClosedError(f"Tab {tab_id} closed") from e
            if "Execution context was destroyed" in str(e):
                # The page navigated and took the agent with it
                raise NoReceiverError(str(e)) from e
            raise TabError(str(e)) from e

    async def inject_agent(self, tab_id: int, platform: str) -> None:
        page = self._page(tab_id)
        script = load_agent_script(platform, self._agent_dir)
        try:
            await page.evaluate(script)
        except PlaywrightError as e:
            if page.is_closed():
                raise TabClosedError(f"Tab {tab_id} closed") from e
            raise TabError(f"Agent injection failed: {e}") from e
        logger.debug("Injected %s agent into tab %d", platform, tab_id)

    async def close_tab(self, tab_id: int) -> None:
        navigation = self._navigations.pop(tab_id, None)
        if navigation is not None and not navigation.done():
            navigation.cancel()
        page = self._pages.pop(tab_id, None)
        if page is None or page.is_closed():
            return
        try:
            await page.close()
        except PlaywrightError as e:
            raise TabError(str(e)) from e

    async def close(self) -> None:
        for tab_id in list(self._pages):
            try:
                await self.close_tab(tab_id)
            except TabError as e:
                logger.debug("Closing tab %d failed: %s", tab_id, e)
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
