"""Link extraction with internal/external classification."""

from __future__ import annotations

import re
from typing import Any, Literal
from urllib.parse import urlparse

from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    success,
    utc_timestamp,
)

LinkType = Literal["internal", "external"]

_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)

_COLLECT_LINKS_SCRIPT = """
(visibleOnly) => {
  const isVisible = (el) => {
    const rect = el.getBoundingClientRect();
    const style = window.getComputedStyle(el);
    return rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden' && style.display !== 'none';
  };
  return Array.from(document.querySelectorAll('a[href]'))
    .filter((el) => !visibleOnly || isVisible(el))
    .map((a) => ({ href: a.href, text: (a.textContent || '').trim() }))
    .filter((l) => l.href.startsWith('https://') || l.href.startsWith('http://'));
}
"""


def _bare_host(url: str) -> str:
    return _WWW_RE.sub("", (urlparse(url).hostname or "").lower())


def classify_links(
    raw_links: list[dict[str, Any]],
    page_url: str,
    *,
    include_external: bool = True,
) -> list[dict[str, str]]:
    """Tag each link as internal when its host (sans ``www.``) matches the page's."""
    base = _bare_host(page_url)
    links: list[dict[str, str]] = []
    for item in raw_links:
        href = str(item.get("href") or "")
        if not href.startswith(("http://", "https://")):
            continue
        try:
            link_type: LinkType = "internal" if _bare_host(href) == base else "external"
        except ValueError:
            link_type = "internal"
        if link_type == "external" and not include_external:
            continue
        text = str(item.get("text") or "").strip()
        links.append({"url": href, "text": text or href, "type": link_type})
    return links


async def collect_links(
    ctx: OperationContext,
    page: Any,
    url: str,
    *,
    wait_time: int | None,
    visible_only: bool,
) -> list[dict[str, Any]]:
    await open_target(ctx, page, url, wait_until="networkidle", timeout_ms=30000, wait_ms=wait_time)
    return await page.evaluate(_COLLECT_LINKS_SCRIPT, visible_only)


async def extract_links(
    ctx: OperationContext,
    *,
    url: str,
    include_external: bool = True,
    visible_links_only: bool = False,
    wait_time: int | None = None,
) -> dict[str, Any]:
    try:
        target = ctx.check_url(url)
        raw = await ctx.run(
            lambda page: collect_links(ctx, page, target, wait_time=wait_time, visible_only=visible_links_only)
        )
        links = classify_links(raw or [], target, include_external=include_external)
        internal = sum(1 for link in links if link["type"] == "internal")
        return success(
            "links",
            {
                "links": links,
                "metadata": {
                    "url": target,
                    "timestamp": utc_timestamp(),
                    "totalLinks": len(links),
                    "internalLinks": internal,
                    "externalLinks": len(links) - internal,
                },
            },
        )
    except Exception as e:
        return failure_from_exception("links", e, ctx.redactor)
