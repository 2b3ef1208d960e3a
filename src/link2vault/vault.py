"""Async client for the Obsidian Local REST API.

Vault paths are addressed segment by segment: every segment is
percent-encoded on its own and the segments are rejoined with a literal
``/``. Encoding the whole path as one unit would turn separators into
``%2F`` and the API would look for a single file with slashes in its name.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlparse

import httpx

from .exceptions import VaultClientError, VaultTimeoutError
from .models import NotePreview
from .utils import normalize_url

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10.0
MAX_FOLDERS = 50
MAX_TAGS = 100

_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---", re.DOTALL)
_SOURCE_RE = re.compile(r'^source:\s*"?([^"\n]+?)"?\s*$', re.MULTILINE)


def encode_vault_path(path: str) -> str:
    """Percent-encode each segment of a vault path and rejoin with '/'."""
    segments = [s for s in path.strip("/").split("/") if s]
    return "/".join(quote(segment, safe="") for segment in segments)


def vault_endpoint(path: str = "", directory: bool = False) -> str:
    """Endpoint for a note (``/vault/a/b.md``) or a listing (``/vault/a/``)."""
    encoded = encode_vault_path(path)
    if not encoded:
        return "/vault/"
    return f"/vault/{encoded}/" if directory else f"/vault/{encoded}"


def _is_hidden(path: str) -> bool:
    return any(segment.startswith(".") for segment in path.split("/"))


def _folders_from_entries(entries: list[str], parent: str = "") -> set[str]:
    """Derive every folder prefix from a listing.

    Listings contain files (``a/b.md``) and directories (``a/``). Entries of
    a sub-listing may be relative to ``parent`` or full vault paths.
    """
    folders: set[str] = set()
    for entry in entries:
        if parent and not entry.startswith(parent + "/"):
            entry = f"{parent}/{entry}"
        if entry.endswith("/"):
            parts = entry.rstrip("/").split("/")
        else:
            parts = entry.split("/")[:-1]
        for i in range(1, len(parts) + 1):
            folder = "/".join(parts[:i])
            if folder and not _is_hidden(folder):
                folders.add(folder)
    return folders


@dataclass
class SearchResult:
    filename: str
    score: float = 0.0


class VaultClient:
    """REST wrapper around an Obsidian vault.

    Every call carries ``Authorization: Bearer <api_key>`` and a bounded
    timeout. Non-2xx responses raise VaultClientError with the status and
    endpoint; timeouts raise VaultTimeoutError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        verify: bool = True,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
            verify=verify,
        )

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        check: bool = True,
        **kwargs,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.TimeoutException as e:
            raise VaultTimeoutError(
                f"Vault request timed out after {self._timeout:g}s ({method})",
                endpoint=endpoint,
            ) from e
        except httpx.HTTPError as e:
            raise VaultClientError(
                f"Network error: vault unreachable at {self._base_url} "
                f"({type(e).__name__})",
                endpoint=endpoint,
            ) from e

        if check and not response.is_success:
            # the message never carries the path or the body
            logger.debug(
                "Vault API error %d on %s %s: %s",
                response.status_code, method, endpoint, response.text[:200],
            )
            raise VaultClientError(
                f"Vault API error {response.status_code} on {method}",
                status_code=response.status_code,
                endpoint=endpoint,
            )
        return response

    async def _list(self, folder: str = "") -> list[str]:
        response = await self._request("GET", vault_endpoint(folder, directory=True))
        return list(response.json().get("files") or [])

    # -- health ---------------------------------------------------------------

    async def health(self) -> dict:
        response = await self._request("GET", "/")
        return response.json()

    async def test_connection(self) -> bool:
        """True when the API answers OK and accepts our key."""
        try:
            data = await self.health()
        except VaultClientError as e:
            logger.debug("Vault health check failed: %s", e)
            return False
        return data.get("status") == "OK" and bool(data.get("authenticated"))

    # -- discovery ------------------------------------------------------------

    async def list_folders(self) -> list[str]:
        """Folders up to one level below the top-level folders, sorted and capped."""
        root_entries = await self._list()
        folders = _folders_from_entries(root_entries)

        top_level = sorted({f.split("/")[0] for f in folders})
        listings = await asyncio.gather(
            *(self._list(folder) for folder in top_level),
            return_exceptions=True,
        )
        for folder, entries in zip(top_level, listings):
            if isinstance(entries, BaseException):
                logger.warning("Could not list vault folder %s: %s", folder, entries)
                continue
            folders |= _folders_from_entries(entries, parent=folder)

        return sorted(folders)[:MAX_FOLDERS]

    async def list_tags(self) -> list[str]:
        """Tags known to the vault. Older API versions have no tags endpoint."""
        try:
            response = await self._request("GET", "/tags/")
            data = response.json()
        except (VaultClientError, ValueError) as e:
            logger.debug("Tag discovery unavailable: %s", e)
            return []

        raw = data.get("tags", []) if isinstance(data, dict) else data
        tags = []
        for item in raw or []:
            name = item.get("name") if isinstance(item, dict) else item
            if isinstance(name, str) and name:
                tags.append(name.lstrip("#"))
        return sorted(set(tags))[:MAX_TAGS]

    async def sample_notes(self, folder: str, limit: int) -> list[NotePreview]:
        entries = await self._list(folder)
        notes = []
        for entry in entries:
            if entry.endswith("/") or not entry.lower().endswith(".md"):
                continue
            name = entry.rsplit("/", 1)[-1]
            notes.append(NotePreview(folder=folder, title=name[:-3], tags=[]))
            if len(notes) >= limit:
                break
        return notes

    # -- notes ----------------------------------------------------------------

    async def create_note(self, path: str, content: str) -> None:
        """Create or overwrite a note."""
        await self._request(
            "PUT",
            vault_endpoint(path),
            content=content.encode("utf-8"),
            headers={"Content-Type": "text/markdown"},
        )

    async def read_note(self, path: str) -> str:
        response = await self._request(
            "GET", vault_endpoint(path), headers={"Accept": "text/markdown"}
        )
        return response.text

    async def note_exists(self, path: str) -> bool:
        endpoint = vault_endpoint(path)
        response = await self._request("GET", endpoint, check=False)
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise VaultClientError(
            f"Vault API error {response.status_code} on GET",
            status_code=response.status_code,
            endpoint=endpoint,
        )

    async def append_to_note(self, path: str, content: str) -> None:
        """Append by read-then-overwrite. A failed read writes nothing."""
        existing = await self.read_note(path)
        await self.create_note(path, existing + content)

    async def search_notes(self, query: str) -> list[SearchResult]:
        response = await self._request(
            "POST", "/search/simple/", params={"query": query, "contextLength": 100}
        )
        results = []
        for item in response.json() or []:
            filename = item.get("filename")
            if filename:
                results.append(SearchResult(filename=filename, score=item.get("score", 0.0)))
        return results


def extract_source(note_text: str) -> Optional[str]:
    """The ``source:`` value from a note's YAML frontmatter."""
    fm = _FRONTMATTER_RE.match(note_text)
    if not fm:
        return None
    match = _SOURCE_RE.search(fm.group(1))
    return match.group(1).strip() if match else None


async def check_duplicate(url: str, client: VaultClient) -> bool:
    """True when a note whose frontmatter source matches ``url`` exists.

    Searches by host and path (query strings confuse the simple search),
    then confirms each hit by comparing normalized URLs.
    """
    normalized = normalize_url(url)
    parsed = urlparse(url)
    query = f"{parsed.hostname}{parsed.path}" if parsed.hostname else url

    for result in await client.search_notes(query):
        try:
            text = await client.read_note(result.filename)
        except VaultClientError as e:
            logger.debug("Skipping unreadable search hit %s: %s", result.filename, e)
            continue
        source = extract_source(text)
        if source and normalize_url(source) == normalized:
            logger.info("Duplicate of %s found at %s", url, result.filename)
            return True
    return False
