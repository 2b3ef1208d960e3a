from link2vault.utils import (
    generate_filename,
    normalize_tag,
    normalize_url,
    slugify,
    truncate_at_boundary,
)


def test_slugify():
    assert slugify("Hello, World! Rust & Go") == "hello-world-rust-go"
    assert slugify("   ") == ""


def test_slugify_cuts_long_titles_at_a_hyphen():
    title = "A very long title that keeps going well past the sixty character filename limit"
    slug = slugify(title)
    assert len(slug) <= 60
    assert not slug.endswith("-")
    assert title.lower().replace(" ", "-").startswith(slug)


def test_generate_filename():
    assert generate_filename("Understanding Ownership") == "understanding-ownership.md"
    assert generate_filename("") == "untitled.md"
    assert generate_filename("!!!") == "untitled.md"


def test_normalize_tag():
    assert normalize_tag("#Machine Learning") == "machine-learning"
    assert normalize_tag("  python  ") == "python"


def test_normalize_url_strips_noise():
    assert normalize_url("http://www.example.com/post/?utm_source=x&id=3#top") == "https://example.com/post?id=3"
    assert normalize_url("https://old.reddit.com/r/python/") == "https://reddit.com/r/python"
    assert normalize_url("https://x.com/user/status/1?s=20") == "https://x.com/user/status/1"


def test_normalize_url_leaves_garbage_alone():
    assert normalize_url("not a url") == "not a url"


def test_truncate_prefers_paragraph_boundary():
    text = "a" * 90 + "\n\n" + "b" * 50
    assert truncate_at_boundary(text, 100) == "a" * 90


def test_truncate_hard_cut_without_boundary():
    text = "x" * 150
    assert truncate_at_boundary(text, 100) == "x" * 100


def test_truncate_short_text_untouched():
    assert truncate_at_boundary("short", 100) == "short"
