import httpx
import pytest

from link2vault.exceptions import VaultClientError, VaultTimeoutError
from link2vault.vault import (
    VaultClient,
    check_duplicate,
    encode_vault_path,
    extract_source,
    vault_endpoint,
)


def _client(handler):
    return VaultClient("http://vault.test", "secret", transport=httpx.MockTransport(handler))


def test_encode_vault_path_keeps_separators():
    encoded = encode_vault_path("Resources/My Notes/C# & .NET.md")
    assert encoded == "Resources/My%20Notes/C%23%20%26%20.NET.md"
    assert "%2F" not in encoded


def test_vault_endpoint():
    assert vault_endpoint("") == "/vault/"
    assert vault_endpoint("Projects", directory=True) == "/vault/Projects/"
    assert vault_endpoint("/Projects/plan.md") == "/vault/Projects/plan.md"


@pytest.mark.asyncio
async def test_create_note_sends_markdown_with_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    async with _client(handler) as client:
        await client.create_note("Resources/Deep Work/notes.md", "# Hi")

    request = seen[0]
    assert request.method == "PUT"
    assert request.url.raw_path == b"/vault/Resources/Deep%20Work/notes.md"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["Content-Type"] == "text/markdown"
    assert request.content == b"# Hi"


@pytest.mark.asyncio
async def test_note_exists_is_idempotent(fake_vault):
    async with fake_vault.client() as client:
        first = await client.note_exists("Areas/Health/sleep.md")
        second = await client.note_exists("Areas/Health/sleep.md")
        missing = await client.note_exists("Areas/Health/nope.md")

    assert first is True and second is True
    assert missing is False
    assert all(r.method == "GET" for r in fake_vault.requests)


@pytest.mark.asyncio
async def test_note_exists_raises_on_server_error():
    async with _client(lambda request: httpx.Response(500)) as client:
        with pytest.raises(VaultClientError) as exc_info:
            await client.note_exists("a.md")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_missing_root_listing_raises_with_endpoint():
    async with _client(lambda request: httpx.Response(404, json={})) as client:
        with pytest.raises(VaultClientError) as exc_info:
            await client.list_folders()
    assert exc_info.value.status_code == 404
    assert exc_info.value.endpoint == "/vault/"


@pytest.mark.asyncio
async def test_network_error_has_no_status():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    async with _client(handler) as client:
        with pytest.raises(VaultClientError) as exc_info:
            await client.health()
    assert exc_info.value.status_code is None
    assert "Network error" in str(exc_info.value)


@pytest.mark.asyncio
async def test_timeout_raises_vault_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow")

    async with _client(handler) as client:
        with pytest.raises(VaultTimeoutError, match="timed out"):
            await client.read_note("a.md")


@pytest.mark.asyncio
async def test_list_folders_sorted_without_hidden(fake_vault):
    fake_vault.files[".obsidian/app.json"] = "{}"
    fake_vault.files["Projects/Launch/plan.md"] = "# Plan"

    async with fake_vault.client() as client:
        folders = await client.list_folders()

    assert folders == sorted(folders)
    assert "Resources" in folders and "Resources/Programming" in folders
    assert "Projects/Launch" in folders
    assert not any(f.startswith(".") for f in folders)


@pytest.mark.asyncio
async def test_list_folders_capped_at_fifty():
    def handler(request):
        if request.url.raw_path == b"/vault/":
            return httpx.Response(200, json={"files": [f"Folder{i:03d}/" for i in range(80)]})
        return httpx.Response(200, json={"files": []})

    async with _client(handler) as client:
        folders = await client.list_folders()
    assert len(folders) == 50


@pytest.mark.asyncio
async def test_sample_notes_only_markdown(fake_vault):
    fake_vault.files["Resources/Programming/diagram.png"] = "png"
    async with fake_vault.client() as client:
        notes = await client.sample_notes("Resources/Programming", 5)
    assert [n.title for n in notes] == ["existing-note"]


@pytest.mark.asyncio
async def test_append_to_note(fake_vault):
    async with fake_vault.client() as client:
        await client.append_to_note("Areas/Health/sleep.md", "\n- [[new]]")
    assert fake_vault.files["Areas/Health/sleep.md"] == "# Sleep\n\n- [[new]]"


@pytest.mark.asyncio
async def test_append_to_missing_note_writes_nothing(fake_vault):
    async with fake_vault.client() as client:
        with pytest.raises(VaultClientError):
            await client.append_to_note("Tags/nope.md", "\n- [[x]]")
    assert "Tags/nope.md" not in fake_vault.files


@pytest.mark.asyncio
async def test_list_tags_tolerates_missing_endpoint():
    async with _client(lambda request: httpx.Response(404)) as client:
        assert await client.list_tags() == []


def test_extract_source():
    assert extract_source('---\nsource: "https://a.com/x"\ntags:\n  - a\n---\n# T') == "https://a.com/x"
    assert extract_source("# No frontmatter") is None


@pytest.mark.asyncio
async def test_check_duplicate_matches_normalized_source(fake_vault):
    fake_vault.files["Resources/post.md"] = "---\nsource: https://www.example.com/post/\n---\n# Post"

    async with fake_vault.client() as client:
        assert await check_duplicate("https://example.com/post?utm_source=feed", client)
        assert not await check_duplicate("https://example.com/other", client)
