"""Shared fixtures: fake browser, fake LLM, mock vault transport."""

from typing import Optional
from urllib.parse import unquote

import httpx
import pytest

from link2vault.config import Config
from link2vault.exceptions import NoReceiverError, TabClosedError, TabCreationError
from link2vault.llm.base import LLMProvider, ToolSpec
from link2vault.models import ExtractedContent
from link2vault.tabs.base import EXTRACTION_RESULT, TabBrowser
from link2vault.vault import VaultClient

ARTICLE_TEXT = (
    "Rust ownership rules let the compiler prove memory safety without a garbage "
    "collector. Every value has a single owner and borrows are checked statically, "
    "which removes whole classes of bugs from systems code."
)


def make_content(url="https://example.com/post", **overrides) -> ExtractedContent:
    fields = dict(
        url=url,
        title="Understanding Ownership",
        content=ARTICLE_TEXT,
        author="Jane Doe",
        date_published="2024-05-01",
        word_count=len(ARTICLE_TEXT.split()),
        type="article",
        platform="web",
        status="success",
    )
    fields.update(overrides)
    return ExtractedContent(**fields)


def agent_reply(url: str, **overrides) -> dict:
    data = make_content(url=url, platform="x", type="social-media").to_dict()
    data.update(overrides)
    return {"type": EXTRACTION_RESULT, "data": data}


class FakeTabBrowser(TabBrowser):
    """In-memory browser. ``replies`` is consumed one item per send_message;
    an item may be a dict or an exception to raise."""

    def __init__(self, replies=None, create_failures: int = 0, agent_installed: bool = True):
        self.replies = list(replies or [])
        self.create_failures = create_failures
        self.agent_installed = agent_installed
        self.created: list[str] = []
        self.closed: list[int] = []
        self.injections: list[tuple[int, str]] = []
        self.sent: list[int] = []
        self.open_tabs: dict[int, str] = {}
        self.browser_closed = False
        self._next_id = 1

    async def create_tab(self, url: str) -> int:
        if self.create_failures > 0:
            self.create_failures -= 1
            raise TabCreationError("Tab limit reached")
        tab_id = self._next_id
        self._next_id += 1
        self.created.append(url)
        self.open_tabs[tab_id] = url
        return tab_id

    async def wait_for_load(self, tab_id: int, timeout: float) -> None:
        if tab_id not in self.open_tabs:
            raise TabClosedError(f"Tab {tab_id} is closed")

    async def send_message(self, tab_id: int, message: dict, timeout: float) -> dict:
        if tab_id not in self.open_tabs:
            raise TabClosedError(f"Tab {tab_id} is closed")
        self.sent.append(tab_id)
        if not self.agent_installed:
            raise NoReceiverError("Could not establish connection. Receiving end does not exist.")
        reply = self.replies.pop(0) if self.replies else agent_reply(self.open_tabs[tab_id])
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def inject_agent(self, tab_id: int, platform: str) -> None:
        self.injections.append((tab_id, platform))
        self.agent_installed = True

    async def close_tab(self, tab_id: int) -> None:
        self.closed.append(tab_id)
        self.open_tabs.pop(tab_id, None)

    async def close(self) -> None:
        self.browser_closed = True


class FakeLLM(LLMProvider):
    """Returns canned tool arguments keyed by tool name."""

    def __init__(self, responses: Optional[dict] = None):
        self.responses = responses or {
            "summarize_content": {
                "title": "Understanding Ownership",
                "summary": "Rust proves memory safety at compile time.",
                "keyTakeaways": ["Single owner per value", "Borrows are checked statically"],
            },
            "categorize_content": {
                "suggestedFolder": "Resources/Programming",
                "suggestedTags": ["rust", "Memory Safety"],
            },
        }
        self.calls: list[tuple[str, str]] = []

    async def call_tool(self, prompt: str, tool: ToolSpec, max_output_tokens=None) -> dict:
        self.calls.append((tool.name, prompt))
        response = self.responses[tool.name]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def default_max_output_tokens(self) -> int:
        return 1024


class FakeVault:
    """Minimal in-memory Local REST API served through httpx.MockTransport."""

    def __init__(self, files: Optional[dict] = None, fail_puts: bool = False):
        self.files = dict(files or {})
        self.fail_puts = fail_puts
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.raw_path.decode().split("?")[0]

        if path == "/":
            return httpx.Response(200, json={"status": "OK", "authenticated": True})
        if path == "/tags/":
            return httpx.Response(200, json={"tags": [{"name": "rust", "count": 2}]})
        if path == "/search/simple/":
            query = request.url.params.get("query", "")
            hits = [
                {"filename": name, "score": 1.0}
                for name, text in self.files.items()
                if query and query in text
            ]
            return httpx.Response(200, json=hits)
        if not path.startswith("/vault/"):
            return httpx.Response(404, json={"message": "Not Found"})

        vault_path = unquote(path[len("/vault/"):])
        if request.method == "GET" and (vault_path == "" or vault_path.endswith("/")):
            prefix = vault_path
            entries = set()
            for name in self.files:
                if name.startswith(prefix):
                    rest = name[len(prefix):]
                    head, sep, _ = rest.partition("/")
                    entries.add(head + "/" if sep else head)
            if prefix and not entries:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json={"files": sorted(entries)})
        if request.method == "GET":
            if vault_path not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, text=self.files[vault_path])
        if request.method == "PUT":
            if self.fail_puts:
                return httpx.Response(500, text="Internal Server Error")
            self.files[vault_path] = request.content.decode("utf-8")
            return httpx.Response(204)
        return httpx.Response(405)

    def client(self) -> VaultClient:
        return VaultClient(
            "http://vault.test", "secret", transport=httpx.MockTransport(self.handler)
        )


@pytest.fixture
def fake_vault():
    return FakeVault({
        "Resources/Programming/existing-note.md": "---\nsource: https://other.com/a\n---\n# Existing\n",
        "Areas/Health/sleep.md": "# Sleep\n",
    })


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def config(tmp_path):
    return Config(
        api_key="test-key",
        vault_url="http://vault.test",
        vault_api_key="secret",
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def sleeps():
    """An injectable sleep that records delays instead of waiting."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    fake_sleep.delays = delays
    return fake_sleep


