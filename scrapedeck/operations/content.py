"""Raw HTML content retrieval."""

from __future__ import annotations

import re
from typing import Any

from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    success,
    utc_timestamp,
)

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)


def strip_scripts(html: str) -> str:
    return _SCRIPT_RE.sub("", html)


async def capture_content(ctx: OperationContext, page: Any, url: str, wait_time: int | None) -> dict[str, str]:
    await open_target(ctx, page, url, wait_until="domcontentloaded", timeout_ms=15000, wait_ms=wait_time)
    return {"html": await page.content(), "title": await page.title()}


async def get_content(
    ctx: OperationContext,
    *,
    url: str,
    wait_time: int | None = None,
) -> dict[str, Any]:
    """Return the rendered HTML of ``url`` with script blocks removed."""
    try:
        target = ctx.check_url(url)
        captured = await ctx.run(lambda page: capture_content(ctx, page, target, wait_time))
        content = strip_scripts(captured["html"])
        return success(
            "content",
            {
                "content": content,
                "metadata": {
                    "url": target,
                    "timestamp": utc_timestamp(),
                    "title": captured["title"],
                    "contentType": "text/html",
                    "size": len(content.encode("utf-8")),
                },
            },
        )
    except Exception as e:
        return failure_from_exception("content", e, ctx.redactor)
