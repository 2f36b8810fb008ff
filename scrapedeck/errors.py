"""Error types shared across scrapedeck layers."""

from __future__ import annotations


class ScrapeDeckError(Exception):
    """Base class for scrapedeck failures."""


class InvalidInput(ScrapeDeckError, ValueError):
    """Raised when operation parameters are rejected before any browser work."""


class SessionAcquisitionExhausted(ScrapeDeckError):
    """Raised when no healthy browser session could be obtained."""


class NavigationFailed(ScrapeDeckError):
    """Raised when page navigation fails after the allowed attempts."""

    def __init__(self, message: str, *, retryable: bool = False, attempts: int = 1):
        super().__init__(message)
        self.retryable = retryable
        self.attempts = attempts


class OperationTimeout(ScrapeDeckError):
    """Raised when a browser operation exceeds its deadline."""

    def __init__(self, message: str = "Operation timeout", *, timeout_ms: int | None = None):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class EngineBlocked(ScrapeDeckError):
    """Raised when a search engine serves a verification or CAPTCHA page."""


class StorageUnavailable(ScrapeDeckError):
    """Raised when artifact storage is requested but not configured or failing."""
