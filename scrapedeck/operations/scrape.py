"""CSS-selector element scraping."""

from __future__ import annotations

import re
from typing import Any

from bs4 import BeautifulSoup, Comment

from scrapedeck.browser.hardening import EXTRA_HEADERS
from scrapedeck.errors import InvalidInput
from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    success,
    utc_timestamp,
)

MAX_NODES_PER_SELECTOR = 50

_BLOCK_TAGS = frozenset(
    {
        "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt", "figcaption", "figure",
        "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6", "header", "hr", "li", "main", "nav",
        "ol", "p", "pre", "section", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
    }
)

_COLLECT_SCRIPT = """
(params) => params.map(({ selector, attributes, limit }) => {
  const nodes = Array.from(document.querySelectorAll(selector)).slice(0, limit);
  return {
    selector,
    results: nodes.map((el) => {
      const rect = el.getBoundingClientRect();
      return {
        html: el.outerHTML,
        text: '',
        top: rect.top,
        left: rect.left,
        width: rect.width,
        height: rect.height,
        attributes: Array.from(el.attributes)
          .filter((attr) => (attributes && attributes.length > 0 ? attributes.includes(attr.name) : true))
          .map((attr) => ({ name: attr.name, value: attr.value })),
      };
    }),
  };
})
"""


def html_to_text(html: str) -> str:
    """Flatten an element's HTML into one line per block, joined with ``", "``."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for text in soup.find_all(string=True):
        if isinstance(text, Comment):
            text.extract()
            continue
        text.replace_with(re.sub(r"\s+", " ", str(text)))
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")

    lines = (line.strip() for line in re.split(r"\n+", soup.get_text()))
    return ", ".join(line for line in lines if line)


def _normalize_elements(elements: Any) -> list[dict[str, Any]]:
    if not isinstance(elements, list) or not elements:
        raise InvalidInput("elements must be a non-empty list of {selector, attributes?}")
    normalized: list[dict[str, Any]] = []
    for index, item in enumerate(elements):
        selector = item.get("selector") if isinstance(item, dict) else None
        if not isinstance(selector, str) or not selector.strip():
            raise InvalidInput(f"elements[{index}].selector must be a non-empty string")
        attributes = item.get("attributes") or []
        if not isinstance(attributes, list) or not all(isinstance(a, str) for a in attributes):
            raise InvalidInput(f"elements[{index}].attributes must be a list of strings")
        normalized.append(
            {"selector": selector.strip(), "attributes": attributes, "limit": MAX_NODES_PER_SELECTOR}
        )
    return normalized


async def scrape_elements(
    ctx: OperationContext,
    *,
    url: str,
    elements: list[dict[str, Any]],
    wait_time: int | None = None,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Capture HTML, geometry, attributes and flattened text for each selector."""
    try:
        target = ctx.check_url(url)
        requested = _normalize_elements(elements)

        async def _operation(page: Any) -> list[dict[str, Any]]:
            if headers:
                await page.set_extra_http_headers({**EXTRA_HEADERS, **headers})
            await open_target(ctx, page, target, wait_until="networkidle", wait_ms=wait_time)
            return await page.evaluate(_COLLECT_SCRIPT, requested)

        scraped = await ctx.run(_operation)
        for element in scraped:
            for node in element["results"]:
                node["text"] = html_to_text(node["html"])

        return success(
            "scrape",
            {
                "elements": scraped,
                "metadata": {
                    "url": target,
                    "timestamp": utc_timestamp(),
                    "elementsFound": sum(len(element["results"]) for element in scraped),
                },
            },
        )
    except Exception as e:
        return failure_from_exception("scrape", e, ctx.redactor)
