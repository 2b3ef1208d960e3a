"""Content quality assessment for extracted pages.

Checks run in strict priority order and the first match wins:

1. too few words
2. bot-protection interstitials (checked before login walls, since
   Cloudflare pages can contain login-like text)
3. login walls
4. soft 404s
5. deleted content, then error pages (social platforms only)

Web articles are exempt from the last two checks: articles *about* a deleted
tweet or a rate limit are common and legitimate.
"""

from typing import Optional

from .models import ContentQuality, ExtractedContent, QualityReason

MIN_WORD_COUNT = 10

BOT_PROTECTION_PATTERNS = (
    "checking your browser",
    "attention required",
    "ddos protection by",
    "cf-browser-verification",
    "please verify you are a human",
    "just a moment",
    "enable javascript and cookies",
    "hcaptcha",
    "recaptcha",
)

LOGIN_WALL_PATTERNS = (
    "sign in to continue",
    "log in to continue",
    "please sign in",
    "please log in",
    "create an account",
    "subscribe to continue reading",
    "this content is for subscribers",
    "you must be logged in",
    "members only",
)

SOFT_404_PATTERNS = (
    "page not found",
    "404 not found",
    "this page doesn't exist",
    "no longer available",
    "has been removed",
)

DELETED_CONTENT_PATTERNS = (
    "this tweet has been deleted",
    "this post has been deleted",
    "this account has been suspended",
    "content not available",
)

ERROR_PAGE_PATTERNS = (
    "something went wrong",
    "this post is from a suspended account",
    "rate limit",
)


def _match(lowered: str, patterns: tuple[str, ...]) -> Optional[str]:
    for pattern in patterns:
        if pattern in lowered:
            return pattern
    return None


def assess_content_quality(content: ExtractedContent) -> ContentQuality:
    """Classify extracted content as usable or low quality."""
    if content.word_count < MIN_WORD_COUNT:
        return ContentQuality(
            is_low_quality=True,
            reason=QualityReason.INSUFFICIENT_CONTENT,
            detail=(
                f"Only {content.word_count} words extracted "
                f"(minimum {MIN_WORD_COUNT})"
            ),
        )

    lowered = content.content.lower()

    checks = [
        (BOT_PROTECTION_PATTERNS, QualityReason.BOT_PROTECTION, "bot protection"),
        (LOGIN_WALL_PATTERNS, QualityReason.LOGIN_WALL, "login wall"),
        (SOFT_404_PATTERNS, QualityReason.SOFT_404, "soft 404"),
    ]
    if content.platform != "web":
        checks += [
            (DELETED_CONTENT_PATTERNS, QualityReason.DELETED_CONTENT, "deleted content"),
            (ERROR_PAGE_PATTERNS, QualityReason.ERROR_PAGE, "error page"),
        ]

    for patterns, reason, label in checks:
        matched = _match(lowered, patterns)
        if matched:
            return ContentQuality(
                is_low_quality=True,
                reason=reason,
                detail=f'Detected {label}: "{matched}"',
            )

    return ContentQuality(is_low_quality=False)
