"""Utility functions for link2vault."""

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

# Query parameters stripped when comparing URLs for duplicates
TRACKING_PARAMS = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "s", "ref_src", "ref_url", "fbclid", "gclid", "twclid",
    "mc_cid", "mc_eid",
})


def slugify(text: str, max_length: int = 60) -> str:
    """Convert text to a lowercase ASCII slug.

    Long slugs are cut back to the last hyphen when that keeps at least
    two thirds of the allowed length.
    """
    text = text.lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    if len(text) > max_length:
        truncated = text[:max_length]
        last_hyphen = truncated.rfind("-")
        if last_hyphen > max_length * 2 // 3:
            text = truncated[:last_hyphen]
        else:
            text = truncated.rstrip("-")
    return text


def generate_filename(title: str) -> str:
    """Markdown filename for a note title."""
    slug = slugify(title) if title.strip() else ""
    return f"{slug or 'untitled'}.md"


def normalize_tag(tag: str) -> str:
    """Lowercase, hyphenated tag without a leading '#'."""
    tag = tag.strip().lstrip("#").lower()
    tag = re.sub(r"[^\w/-]+", "-", tag)
    return re.sub(r"-{2,}", "-", tag).strip("-")


def normalize_url(raw_url: str) -> str:
    """Normalize a URL for duplicate comparison.

    Forces https, drops ``www.``, folds old.reddit.com into reddit.com,
    strips tracking parameters, the fragment and a trailing slash.
    """
    try:
        parsed = urlparse(raw_url.strip())
    except ValueError:
        return raw_url
    if not parsed.scheme or not parsed.netloc:
        return raw_url

    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    if host == "old.reddit.com":
        host = "reddit.com"
    if parsed.port:
        host = f"{host}:{parsed.port}"

    query = urlencode([
        (k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ])

    path = parsed.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunparse(("https", host, path, parsed.params, query, ""))


def count_words(text: str) -> int:
    return len(text.split())


def truncate_at_boundary(text: str, max_length: int) -> str:
    """Cut text to max_length, preferring a paragraph, sentence or line break.

    A boundary is only used when it falls in the last 20% of the window.
    """
    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    floor = max_length * 0.8

    last_paragraph = truncated.rfind("\n\n")
    if last_paragraph > floor:
        return truncated[:last_paragraph]

    last_sentence = truncated.rfind(". ")
    if last_sentence > floor:
        return truncated[:last_sentence + 1]

    last_newline = truncated.rfind("\n")
    if last_newline > floor:
        return truncated[:last_newline]

    return truncated
