"""Request interception helpers layered on top of page hardening."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from scrapedeck.browser.safety import request_url_block_reason

HEAVY_RESOURCES = frozenset({"image", "stylesheet", "font", "media"})
PDF_BLOCKED_RESOURCES = frozenset({"image", "media", "font", "stylesheet", "xhr", "fetch"})


async def block_resources(page: Any, resource_types: Iterable[str]) -> None:
    """Abort requests of the given resource types; hand everything else to earlier routes."""
    blocked = frozenset(resource_types)

    async def _handler(route: Any, request: Any) -> None:
        if request.resource_type in blocked:
            await route.abort()
            return
        await route.fallback()

    await page.route("**/*", _handler)


async def guard_requests(page: Any, *, allow_private_network: bool, block_file_scheme: bool) -> None:
    """Abort sub-requests that target private hosts or disallowed schemes."""

    async def _handler(route: Any, request: Any) -> None:
        reason = request_url_block_reason(
            request.url,
            allow_private_network=allow_private_network,
            block_file_scheme=block_file_scheme,
        )
        if reason:
            await route.abort("blockedbyclient")
            return
        await route.fallback()

    await page.route("**/*", _handler)
