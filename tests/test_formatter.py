from datetime import date

from link2vault.formatter import format_frontmatter, format_note, format_tag_hub_note
from link2vault.models import ProcessedNote

from conftest import make_content


def _note(**overrides):
    fields = dict(
        title="Understanding Ownership",
        summary="Rust proves memory safety at compile time.",
        key_takeaways=["Single owner", "Static borrows"],
        suggested_folder="Resources",
        suggested_tags=["rust", "memory-safety"],
        type="article",
        platform="web",
        source=make_content(),
    )
    fields.update(overrides)
    return ProcessedNote(**fields)


def test_frontmatter_fields():
    fm = format_frontmatter(_note(), saved=date(2024, 6, 1))
    lines = fm.split("\n")
    assert lines[0] == "---" and lines[-1] == "---"
    assert 'source: "https://example.com/post"' in lines
    assert "author: Jane Doe" in lines
    assert "date_saved: 2024-06-01" in lines
    assert "  - rust" in lines
    assert "type: article" in lines
    assert "status: unread" in lines
    assert not any(line.startswith("platform:") for line in lines)


def test_article_body():
    text = format_note(_note(), saved=date(2024, 6, 1))
    assert "# Understanding Ownership" in text
    assert "## Key Takeaways\n\n- Single owner\n- Static borrows" in text
    assert "## Original Content" not in text
    assert text.rstrip().endswith("[Understanding Ownership](https://example.com/post)")


def test_social_post_quotes_original():
    source = make_content(url="https://x.com/u/status/1", content="line one\nline two",
                          platform="x", type="social-media")
    text = format_note(_note(type="social-media", platform="x", source=source))
    assert "platform: x" in text
    assert "## Key Points" in text
    assert "> line one\n> line two" in text


def test_tag_hub_note():
    hub = format_tag_hub_note("rust", ["understanding-ownership"])
    assert "type: tag-hub" in hub
    assert "# rust" in hub
    assert hub.endswith("- [[understanding-ownership]]\n")
