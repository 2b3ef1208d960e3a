"""URL classification for content acquisition.

Social platforms only reveal their content after in-page JavaScript runs, so
their URLs are "rendered" and go through the tab pool. Everything else is
"static" and is fetched directly.
"""

import re
from urllib.parse import urlparse

RENDERED = "rendered"
STATIC = "static"

# host pattern -> platform id
_PLATFORM_HOSTS = (
    (re.compile(r"^(?:[\w-]+\.)?(?:x|twitter)\.com$"), "x"),
    (re.compile(r"^(?:[\w-]+\.)?linkedin\.com$"), "linkedin"),
    (re.compile(r"^(?:[\w-]+\.)?reddit\.com$"), "reddit"),
)


def _hostname(url: str) -> str:
    try:
        return (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        return ""


def detect_platform(url: str) -> str:
    """Return the platform id for a URL, "web" when it is not a social platform."""
    host = _hostname(url)
    if not host:
        return "web"
    for pattern, platform in _PLATFORM_HOSTS:
        if pattern.match(host):
            return platform
    return "web"


def classify_url(url: str) -> str:
    return STATIC if detect_platform(url) == "web" else RENDERED


def is_rendered_url(url: str) -> bool:
    return classify_url(url) == RENDERED
