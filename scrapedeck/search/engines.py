"""Per-engine search handlers and the shared result-page flow."""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

from loguru import logger

from scrapedeck.browser.routing import HEAVY_RESOURCES, block_resources
from scrapedeck.errors import EngineBlocked
from scrapedeck.search.models import EngineName, EngineSearchOutcome, RawSearchLink

_BLOCK_KEYWORDS = ("verification", "captcha", "blocked")
_BASE64_RE = re.compile(r"^[A-Z0-9+/]+=*$", re.IGNORECASE)

_DDG_EXTRACT = """
(links) => links.map((a) => {
  const title = (a.textContent || '').trim();
  const url = a.href;
  const snippet = (() => {
    const result = a.closest('.result, .web-result, .result__body') || a.parentElement;
    if (!result) return '';
    const snippetSelectors = ['.result__snippet', '.web-result__snippet', '.result__description', '.snippet'];
    for (const sel of snippetSelectors) {
      const el = result.querySelector(sel);
      if (el && el.textContent && el.textContent.trim()) return el.textContent.trim();
    }
    const texts = Array.from(result.querySelectorAll('*'))
      .map((el) => (el.textContent || '').trim())
      .filter((text) => text.length > 20 && text !== title)
      .sort((x, y) => y.length - x.length);
    return texts[0] || '';
  })();
  return { title, url, snippet };
})
"""

_STARTPAGE_EXTRACT = """
(elements) => elements.map((element) => {
  const linkEl = element.querySelector('a[href^="http"]');
  if (!linkEl || !linkEl.href) return null;
  const url = linkEl.href;
  let title = '';
  const titleEl = element.querySelector('h3, .title, .result-title') || linkEl;
  if (titleEl && titleEl.textContent && titleEl.textContent.trim()) {
    title = titleEl.textContent.trim();
    if (title.length <= 3 || title.includes('css-')) title = '';
  }
  if (!title) {
    try {
      title = new URL(url).hostname.replace('www.', '');
    } catch (e) {
      title = 'Search Result';
    }
  }
  let snippet = '';
  const snippetEl = element.querySelector('.w-gl__description, .result-snippet, .description, p');
  const snippetText = snippetEl && snippetEl.textContent ? snippetEl.textContent.trim() : '';
  snippet = snippetText.length > 10 ? snippetText : `Search result from ${title}`;
  return { title, url, snippet };
}).filter((r) => r !== null && r.title.length > 3)
"""

_BING_EXTRACT = """
(elements) => elements.map((element) => {
  let title = '';
  let url = '';
  let snippet = '';
  for (const sel of ['h2 a', '.b_algoheader a', '.b_title a']) {
    const el = element.querySelector(sel);
    if (el && el.textContent && el.textContent.trim() && el.href) {
      title = el.textContent.trim();
      url = el.href;
      break;
    }
  }
  if (!title || !url || !url.startsWith('http')) return null;
  for (const sel of ['.b_caption p', '.b_snippet', '.b_descript']) {
    const el = element.querySelector(sel);
    if (el && el.textContent && el.textContent.trim()) {
      snippet = el.textContent.trim();
      break;
    }
  }
  if (!snippet) snippet = `Search result from ${title.toLowerCase()}`;
  return { title, url, snippet };
}).filter((r) => r !== null)
"""


@dataclass(frozen=True, slots=True)
class EngineHandler:
    """One search engine variant: URL building, DOM extraction, redirect decoding, block detection."""

    name: EngineName
    build_search_url: Callable[[str, int], str]
    result_selectors: tuple[str, ...]
    extract_script: str
    clean_url: Callable[[str], str]
    is_blocked: Callable[[str, str | None], bool]

    async def extract_results(self, page: Any, selector: str) -> list[RawSearchLink]:
        raw = await page.eval_on_selector_all(selector, self.extract_script)
        return [RawSearchLink.from_dict(item) for item in raw or [] if isinstance(item, dict)]


def _title_blocked(title: str) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in _BLOCK_KEYWORDS)


# DuckDuckGo


def _duckduckgo_url(query: str, limit: int) -> str:
    return f"https://html.duckduckgo.com/html/?q={quote(query, safe='')}&s={limit}"


def clean_duckduckgo_url(url: str) -> str:
    """Unwrap ``duckduckgo.com/l/?uddg=`` redirects and normalize the protocol."""
    if "duckduckgo.com/l/?uddg=" in url:
        param = url.split("uddg=", 1)[1].split("&", 1)[0]
        if param:
            decoded = unquote(param)
            if decoded.startswith("//"):
                return f"https:{decoded}"
            if not decoded.startswith(("http://", "https://")):
                return f"https://{decoded}"
            return decoded

    if url.startswith("//"):
        return f"https:{url}"
    return url


def _duckduckgo_blocked(title: str, html: str | None = None) -> bool:
    return _title_blocked(title) or (html is not None and len(html) < 1000)


# Startpage


def _startpage_url(query: str, limit: int) -> str:
    return f"https://www.startpage.com/sp/search?query={quote(query, safe='')}&cat=web&pl=opensearch"


def clean_startpage_url(url: str) -> str:
    return url


def _startpage_blocked(title: str, html: str | None = None) -> bool:
    return _title_blocked(title)


# Bing


def _bing_url(query: str, limit: int) -> str:
    return f"https://www.bing.com/search?q={quote(query, safe='')}&count={limit}"


def _b64decode_text(value: str) -> str:
    padded = value + "=" * (-len(value) % 4)
    return base64.b64decode(padded).decode("latin-1")


def _decode_bing_ck_value(raw: str) -> str:
    decoded = unquote(raw)
    if decoded.startswith("http") or not _BASE64_RE.match(decoded):
        return decoded

    try:
        start = decoded.find("aHR0cHM")
        if start != -1:
            part = decoded[start:]
            for delimiter in ("#On", "#:", "?utm", "&utm", "#utm", "#%3A"):
                index = part.find(delimiter)
                if index != -1:
                    part = part[:index]
                    break
            candidate = _b64decode_text(part)
            if "#:~:" in candidate:
                candidate = candidate.split("#:~:", 1)[0]
            elif "#" in candidate:
                fragment = candidate.split("#", 1)[1]
                if fragment and any(marker in fragment for marker in ("text=", "utm", "source=")):
                    candidate = candidate.split("#", 1)[0]
            return candidate

        candidate = base64.b64decode(decoded).decode("latin-1")
        if "%" in candidate:
            candidate = unquote(candidate)
        if candidate.startswith("http"):
            candidate = candidate.split("#", 1)[0].split("?", 1)[0]
        return candidate
    except (binascii.Error, ValueError) as e:
        logger.debug("Failed to base64-decode bing redirect value: {}", e)
        return decoded


def _decode_bing_simple(url: str, pattern: str) -> str:
    match = re.search(pattern, url)
    if not match:
        return url
    decoded = unquote(match.group(1))
    if not decoded.startswith("http") and _BASE64_RE.match(decoded):
        try:
            decoded = unquote(base64.b64decode(decoded).decode("latin-1"))
        except (binascii.Error, ValueError) as e:
            logger.debug("Failed to base64-decode bing redirect value: {}", e)
    return decoded if decoded.startswith("http") else url


def clean_bing_url(url: str) -> str:
    """Unwrap Bing ``/ck/a``, ``/cr`` and ``target=`` redirects, which may be base64 encoded."""
    if "bing.com" not in url:
        return url

    if "/ck/a?" in url:
        for pattern in (r"[&?]u=([^&]+)", r"[&?]url=([^&]+)", r"[&?]p=([^&]+)"):
            match = re.search(pattern, url)
            if not match:
                continue
            decoded = _decode_bing_ck_value(match.group(1))
            if decoded.startswith("http"):
                return decoded
        return url

    if "/cr?" in url and "&r=" in url:
        return _decode_bing_simple(url, r"[&?]r=([^&]+)")

    if "target=" in url:
        return _decode_bing_simple(url, r"[&?]target=([^&]+)")

    return url


def _bing_blocked(title: str, html: str | None = None) -> bool:
    return _title_blocked(title)


ENGINES: dict[EngineName, EngineHandler] = {
    "duckduckgo": EngineHandler(
        name="duckduckgo",
        build_search_url=_duckduckgo_url,
        result_selectors=(
            ".result__title a",
            ".web-result__title a",
            ".result__a",
            'h3 a[href^="http"]',
        ),
        extract_script=_DDG_EXTRACT,
        clean_url=clean_duckduckgo_url,
        is_blocked=_duckduckgo_blocked,
    ),
    "startpage": EngineHandler(
        name="startpage",
        build_search_url=_startpage_url,
        result_selectors=(
            ".result",
            ".w-gl__result",
            ".result-item",
            ".search-result",
            '[data-testid="result"]',
        ),
        extract_script=_STARTPAGE_EXTRACT,
        clean_url=clean_startpage_url,
        is_blocked=_startpage_blocked,
    ),
    "bing": EngineHandler(
        name="bing",
        build_search_url=_bing_url,
        result_selectors=(".b_algo", ".b_result", ".b_algoheader"),
        extract_script=_BING_EXTRACT,
        clean_url=clean_bing_url,
        is_blocked=_bing_blocked,
    ),
}


async def perform_search(
    handler: EngineHandler,
    page: Any,
    query: str,
    limit: int,
    *,
    navigation_timeout_ms: int = 10000,
    selector_wait_ms: int = 1500,
    extra_wait_ms: int = 400,
) -> EngineSearchOutcome:
    """Load one engine's result page and extract raw links from the first selector that yields any."""
    started_at = time.monotonic()
    url = handler.build_search_url(query, limit)

    await block_resources(page, HEAVY_RESOURCES)
    await page.goto(url, wait_until="domcontentloaded", timeout=navigation_timeout_ms)

    selectors = handler.result_selectors
    try:
        await page.wait_for_selector(", ".join(selectors), timeout=selector_wait_ms)
    except Exception:
        logger.debug("{} selectors not visible after {}ms", handler.name, selector_wait_ms)
        await asyncio.sleep(extra_wait_ms / 1000)

    results: list[RawSearchLink] = []
    used_selector = ""
    for selector in selectors:
        try:
            found = await handler.extract_results(page, selector)
        except Exception as e:
            logger.debug("{} selector {} failed: {}", handler.name, selector, e)
            continue
        if found:
            results = found
            used_selector = selector
            break

    page_title = await page.title()
    html = await page.content()
    if handler.is_blocked(page_title, html):
        raise EngineBlocked("Page blocked or CAPTCHA detected")

    logger.debug(
        "{} returned {} raw results via {} in {}ms",
        handler.name,
        len(results),
        used_selector or "<none>",
        int((time.monotonic() - started_at) * 1000),
    )
    return EngineSearchOutcome(
        results=results,
        used_selector=used_selector,
        page_title=page_title,
        page_url=page.url,
    )
