"""Browser tab interface used by the tab pool."""

from abc import ABC, abstractmethod

EXTRACT_CONTENT = "EXTRACT_CONTENT"
EXTRACTION_RESULT = "EXTRACTION_RESULT"


class TabBrowser(ABC):
    """A browser that can open background tabs and talk to an in-page agent.

    Tabs are addressed by integer ids handed out by ``create_tab``. Only the
    tab pool calls these methods.
    """

    @abstractmethod
    async def create_tab(self, url: str) -> int:
        """Open a background tab navigating to ``url``; return its id.

        Raises TabCreationError when the browser refuses.
        """

    @abstractmethod
    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        """Return once the tab finished loading, waiting at most ``timeout`` s.

        Raises TabClosedError if the tab is gone, TabError if navigation
        failed.
        """

    @abstractmethod
    async def send_message(self, tab_id: int, message: dict, timeout: float) -> dict:
        """Deliver ``message`` to the extraction agent and return its reply.

        Raises NoReceiverError when no agent is installed in the tab and
        TabClosedError when the tab is gone.
        """

    @abstractmethod
    async def inject_agent(self, tab_id: int, platform: str) -> None:
        """(Re)install the extraction agent for ``platform`` in the tab."""

    @abstractmethod
    async def close_tab(self, tab_id: int) -> None:
        """Close a tab. Closing an unknown or closed tab is a no-op."""

    async def close(self) -> None:
        """Release the browser itself."""
