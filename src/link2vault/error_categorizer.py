"""Map raw failures onto a closed error taxonomy.

Each category carries retryability, a suggested user action and guidance
text. Explicit HTTP statuses win over everything else. Vault client failures
are classified by type; for other errors message heuristics win over
exception types.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import httpx

from .exceptions import LLMError, VaultClientError, VaultTimeoutError
from .models import QualityReason


class ErrorCategory(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    EXTRACTION = "extraction"
    LLM = "llm"
    VAULT = "vault"
    UNKNOWN = "unknown"
    LOGIN_REQUIRED = "login-required"
    BOT_PROTECTION = "bot-protection"
    PAGE_NOT_FOUND = "page-not-found"


_NOT_RETRYABLE = frozenset({
    ErrorCategory.LOGIN_REQUIRED,
    ErrorCategory.BOT_PROTECTION,
    ErrorCategory.PAGE_NOT_FOUND,
})

_NETWORK_PHRASES = (
    "failed to fetch",
    "fetch failed",
    "network request failed",
    "err_internet_disconnected",
    "err_name_not_resolved",
    "err_connection",
    "connection refused",
    "connection reset",
    "name or service not known",
    "dns",
    "ssl",
    "tls",
)
_TIMEOUT_PHRASES = ("timeout", "timed out", "aborted")
_BOT_PHRASES = ("cloudflare", "captcha", "bot protection", "access denied", "blocked")
_LOGIN_PHRASES = ("sign in", "log in", "authentication required", "unauthorized")
_EXTRACTION_PHRASES = (
    "readability could not parse",
    "extracted content is empty",
    "extraction failed",
    "non-html content",
    "empty response",
)
_VAULT_PHRASES = ("vault", "obsidian", "rest api")
_LLM_PHRASES = (
    "openrouter",
    "anthropic",
    "openai",
    "api key",
    "rate limit",
    "quota exceeded",
    "model",
    "llm",
)
_SERVER_ERROR_STATUSES = ("http 500", "http 502", "http 503", "http 504")


def _contains(text: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def _category_for_status(status: Optional[int]) -> Optional[ErrorCategory]:
    if status in (401, 403):
        return ErrorCategory.LOGIN_REQUIRED
    if status in (404, 410):
        return ErrorCategory.PAGE_NOT_FOUND
    return None


def categorize_error(
    err: object,
    http_status: Optional[int] = None,
    error_message: Optional[str] = None,
) -> ErrorCategory:
    """Categorize an exception (or message) into an ErrorCategory."""
    if http_status is None and isinstance(err, VaultClientError):
        http_status = err.status_code
    by_status = _category_for_status(http_status)
    if by_status is not None:
        return by_status

    if isinstance(err, VaultTimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(err, VaultClientError):
        return ErrorCategory.VAULT

    message = error_message if error_message is not None else str(err)
    lowered = message.lower()

    if isinstance(err, (httpx.NetworkError, ConnectionError)):
        return ErrorCategory.NETWORK
    if _contains(lowered, _NETWORK_PHRASES):
        return ErrorCategory.NETWORK

    if isinstance(err, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorCategory.TIMEOUT
    if _contains(lowered, _TIMEOUT_PHRASES):
        return ErrorCategory.TIMEOUT

    if "http 401" in lowered or "http 403" in lowered:
        return ErrorCategory.LOGIN_REQUIRED
    if "http 404" in lowered or "http 410" in lowered:
        return ErrorCategory.PAGE_NOT_FOUND
    if _contains(lowered, _SERVER_ERROR_STATUSES):
        # server errors mean the page is unavailable
        return ErrorCategory.PAGE_NOT_FOUND

    if _contains(lowered, _BOT_PHRASES):
        return ErrorCategory.BOT_PROTECTION
    if _contains(lowered, _LOGIN_PHRASES):
        return ErrorCategory.LOGIN_REQUIRED
    if _contains(lowered, _EXTRACTION_PHRASES):
        return ErrorCategory.EXTRACTION

    if isinstance(err, LLMError):
        return ErrorCategory.LLM
    if _contains(lowered, _VAULT_PHRASES):
        return ErrorCategory.VAULT
    if _contains(lowered, _LLM_PHRASES):
        return ErrorCategory.LLM

    return ErrorCategory.UNKNOWN


def categorize_extraction_error(message: str) -> ErrorCategory:
    """Categorize the error string of a failed ExtractedContent.

    Unrecognized messages default to EXTRACTION rather than UNKNOWN.
    """
    lowered = message.lower()

    if "http 401" in lowered or "http 403" in lowered:
        return ErrorCategory.LOGIN_REQUIRED
    if "http 404" in lowered or "http 410" in lowered:
        return ErrorCategory.PAGE_NOT_FOUND
    if _contains(lowered, _SERVER_ERROR_STATUSES):
        return ErrorCategory.PAGE_NOT_FOUND
    if "timed out" in lowered or "timeout" in lowered:
        return ErrorCategory.TIMEOUT
    if "network" in lowered or "connection" in lowered or _contains(lowered, _NETWORK_PHRASES):
        return ErrorCategory.NETWORK
    return ErrorCategory.EXTRACTION


_QUALITY_CATEGORIES = {
    QualityReason.LOGIN_WALL: ErrorCategory.LOGIN_REQUIRED,
    QualityReason.BOT_PROTECTION: ErrorCategory.BOT_PROTECTION,
    QualityReason.SOFT_404: ErrorCategory.PAGE_NOT_FOUND,
    QualityReason.DELETED_CONTENT: ErrorCategory.PAGE_NOT_FOUND,
    QualityReason.INSUFFICIENT_CONTENT: ErrorCategory.EXTRACTION,
    QualityReason.ERROR_PAGE: ErrorCategory.EXTRACTION,
}


def categorize_quality_reason(reason: QualityReason) -> ErrorCategory:
    return _QUALITY_CATEGORIES[QualityReason(reason)]


def is_retryable(category: ErrorCategory) -> bool:
    return ErrorCategory(category) not in _NOT_RETRYABLE


_SUGGESTED_ACTIONS = {
    ErrorCategory.NETWORK: "retry",
    ErrorCategory.TIMEOUT: "retry",
    ErrorCategory.EXTRACTION: "retry",
    ErrorCategory.UNKNOWN: "retry",
    ErrorCategory.LOGIN_REQUIRED: "open",
    ErrorCategory.BOT_PROTECTION: "open",
    ErrorCategory.PAGE_NOT_FOUND: "skip",
    ErrorCategory.LLM: "settings",
    ErrorCategory.VAULT: "settings",
}


def suggested_action(category: ErrorCategory) -> str:
    return _SUGGESTED_ACTIONS[ErrorCategory(category)]


_USER_MESSAGES = {
    ErrorCategory.NETWORK: (
        "Your device couldn't reach the URL. This usually means your internet "
        "connection is offline or unstable, the website is temporarily down, "
        "or the URL is invalid."
    ),
    ErrorCategory.LOGIN_REQUIRED: (
        "This webpage requires you to be logged in. Content behind a login "
        "wall can't be accessed."
    ),
    ErrorCategory.BOT_PROTECTION: (
        "This website uses security technology (Cloudflare, reCAPTCHA, etc.) "
        "that blocked automated access."
    ),
    ErrorCategory.PAGE_NOT_FOUND: (
        "The URL doesn't exist or was deleted. The link is probably broken and "
        "trying again won't help."
    ),
    ErrorCategory.EXTRACTION: (
        "The page was downloaded but no readable content could be extracted. "
        "It may rely on heavy JavaScript or unusual formatting."
    ),
    ErrorCategory.LLM: (
        "The content couldn't be processed by the LLM provider. The API key may "
        "be invalid, the account may be out of credits or rate limited, or the "
        "service may be temporarily down."
    ),
    ErrorCategory.VAULT: (
        "The Obsidian vault couldn't be reached. Obsidian may not be running, "
        "the Local REST API plugin may be disabled, or the vault URL/API key "
        "may be wrong."
    ),
    ErrorCategory.TIMEOUT: (
        "The webpage took too long to load. The website may be slow, "
        "temporarily down, or heavy on JavaScript."
    ),
    ErrorCategory.UNKNOWN: "Something unexpected happened.",
}

ERROR_SUGGESTIONS = {
    ErrorCategory.NETWORK: "Check your internet connection or try again later",
    ErrorCategory.LOGIN_REQUIRED: (
        "This page requires login. Try opening it in your browser and saving from there"
    ),
    ErrorCategory.BOT_PROTECTION: (
        "This page blocked automated access. Try again with --headed and solve the challenge"
    ),
    ErrorCategory.PAGE_NOT_FOUND: (
        "This page no longer exists. Check the URL or try the Wayback Machine"
    ),
    ErrorCategory.EXTRACTION: "This page may require login or block automated access",
    ErrorCategory.LLM: "Check your LLM API key or try again",
    ErrorCategory.VAULT: "Verify Obsidian is running with the Local REST API plugin enabled",
    ErrorCategory.TIMEOUT: (
        "The page took too long to load. This often happens with rate-limited sites. "
        "Try again later"
    ),
    ErrorCategory.UNKNOWN: "An unexpected error occurred. Try again or check the error details",
}

QUALITY_SUGGESTIONS = {
    QualityReason.LOGIN_WALL: (
        "This page requires login. Try opening it in your browser and saving from there"
    ),
    QualityReason.BOT_PROTECTION: (
        "This page blocked automated access. Try again with --headed and solve the challenge"
    ),
    QualityReason.SOFT_404: "This page appears to no longer exist",
    QualityReason.DELETED_CONTENT: "The original content appears to have been deleted",
    QualityReason.INSUFFICIENT_CONTENT: (
        "Very little content was extracted. The page may require JavaScript or login"
    ),
    QualityReason.ERROR_PAGE: (
        "The page returned an error instead of the expected content. Try again later"
    ),
}


def build_error_metadata(
    category: ErrorCategory,
    technical_details: str,
    retry_count: Optional[int] = None,
) -> dict:
    """Everything a UI needs to present one failure."""
    category = ErrorCategory(category)
    return {
        "category": category.value,
        "userMessage": _USER_MESSAGES[category],
        "technicalDetails": technical_details,
        "suggestedAction": suggested_action(category),
        "isRetryable": is_retryable(category),
        "retryCount": retry_count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
