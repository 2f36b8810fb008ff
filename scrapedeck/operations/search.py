"""Web search operation."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from scrapedeck.errors import InvalidInput
from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    success,
    utc_timestamp,
)

if TYPE_CHECKING:
    from scrapedeck.search.orchestrator import MultiEngineSearch


def clamp_limit(limit: int | None, *, default: int, maximum: int) -> int:
    if limit is None:
        limit = default
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidInput("limit must be an integer")
    return max(1, min(limit, maximum))


async def run_search(
    ctx: OperationContext,
    searcher: "MultiEngineSearch",
    *,
    query: str,
    limit: int | None = None,
    client_ip: str | None = None,
    include_debug: bool = True,
) -> dict[str, Any]:
    """Search all engines for ``query`` and return ranked, de-duplicated results."""
    try:
        query = (query or "").strip()
        if not query:
            raise InvalidInput("query is required")
        settings = ctx.config.search
        count = clamp_limit(limit, default=settings.default_limit, maximum=settings.max_limit)

        started_at = time.monotonic()
        outcome = await ctx.run(lambda page: searcher.search(page, query, count, client_ip=client_ip))
        results = [result.to_dict() for result in outcome.results]

        metadata: dict[str, Any] = {
            "query": query,
            "totalResults": len(results),
            "searchTime": int((time.monotonic() - started_at) * 1000),
            "sources": sorted({result["source"] for result in results}),
            "timestamp": utc_timestamp(),
        }
        if include_debug:
            metadata["debug"] = outcome.debug
        return success("search", {"results": results, "metadata": metadata})
    except Exception as e:
        return failure_from_exception("search", e, ctx.redactor)
