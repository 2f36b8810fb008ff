"""Page navigation with bounded retries on transient network failures."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from scrapedeck.errors import NavigationFailed

_RETRYABLE_PATTERNS = (
    "ERR_CONNECTION_CLOSED",
    "ERR_NETWORK_CHANGED",
    "ERR_CONNECTION_RESET",
    "ERR_TIMED_OUT",
    "timeout",
    "net::ERR",
)


def is_retryable_navigation_error(exc: BaseException) -> bool:
    """Detect navigation failures caused by transient network conditions."""
    text = str(exc).lower()
    return any(pattern.lower() in text for pattern in _RETRYABLE_PATTERNS)


async def goto_with_retry(
    page: Any,
    url: str,
    *,
    wait_until: str = "domcontentloaded",
    timeout_ms: int = 30000,
    max_attempts: int = 3,
    backoff_ms: int = 1000,
) -> Any:
    """Navigate ``page`` to ``url``, retrying allow-listed failures with exponential backoff.

    Non-transient errors and the last failed attempt are raised as ``NavigationFailed``
    chained to the original exception.
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except Exception as e:
            retryable = is_retryable_navigation_error(e)
            if not retryable or attempt == attempts:
                raise NavigationFailed(str(e), retryable=retryable, attempts=attempt) from e
            delay_ms = backoff_ms * 2 ** (attempt - 1)
            logger.warning(
                "Navigation attempt {}/{} to {} failed, retrying in {}ms: {}",
                attempt,
                attempts,
                url,
                delay_ms,
                e,
            )
            await asyncio.sleep(delay_ms / 1000)
    raise NavigationFailed(f"Navigation to {url} exhausted {attempts} attempts")
