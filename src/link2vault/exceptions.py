"""Custom exceptions for link2vault."""

from typing import Optional


class Link2VaultError(Exception):
    """Base exception for link2vault."""


class ConfigError(Link2VaultError):
    """Raised when configuration is missing or invalid."""


class ExtractionError(Link2VaultError):
    """Raised when content extraction fails outside the result contract."""


class LLMError(Link2VaultError):
    """Raised when LLM API calls fail."""


class NoteGenerationError(LLMError):
    """Raised when a note generation stage fails or returns invalid output."""

    def __init__(self, message: str, stage: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.stage = stage
        self.cause = cause


class VaultClientError(Link2VaultError):
    """Raised when a vault REST call fails.

    ``status_code`` is None for transport failures (network, timeout).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class VaultTimeoutError(VaultClientError):
    """Raised when a vault request exceeds its timeout."""


class TabError(Link2VaultError):
    """Base class for browser tab failures."""


class NoReceiverError(TabError):
    """Raised when no extraction agent is listening in a tab."""


class TabClosedError(TabError):
    """Raised when a tab disappeared while it was in use."""


class TabCreationError(TabError):
    """Raised when the browser refuses to open a tab."""


class BatchAlreadyActiveError(Link2VaultError):
    """Raised when a batch is started while another one is running."""
