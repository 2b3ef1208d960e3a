"""Background browser tabs for rendered-page extraction."""

from .base import TabBrowser
from .pool import TabPool

__all__ = ["TabBrowser", "TabPool"]
