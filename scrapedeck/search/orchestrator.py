"""Tiered multi-engine search with deduplication and relevance ranking."""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

from loguru import logger

from scrapedeck.browser.hardening import harden_page
from scrapedeck.search.engines import ENGINES, EngineHandler, perform_search
from scrapedeck.search.models import EngineName, MultiSearchOutcome, RawSearchLink, SearchResult
from scrapedeck.search.rate_limit import EngineRateLimiter
from scrapedeck.search.scoring import DEFAULT_WEIGHTS, ScoringWeights, calculate_score

if TYPE_CHECKING:
    from scrapedeck.config.schema import SearchConfig

PRIMARY_ENGINES: tuple[EngineName, ...] = ("duckduckgo", "bing")
FALLBACK_ENGINES: tuple[EngineName, ...] = ("startpage",)
ALL_ENGINES: tuple[EngineName, ...] = ("duckduckgo", "startpage", "bing")

_SEARCH_PAGE_MARKERS = (
    "duckduckgo.com/html",
    "startpage.com/sp/search",
    "bing.com/search",
    "privacy",
)


def per_engine_limit(limit: int) -> int:
    return max(3, math.ceil(limit * 0.8))


def fast_tier_threshold(limit: int) -> int:
    return max(5, math.ceil(limit * 0.7))


def normalize_url_key(url: str) -> str:
    """Dedup key ``scheme://host/path`` in lower case; the raw URL when it does not parse."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url
    host = parsed.netloc.rsplit("@", 1)[-1]
    return f"{parsed.scheme}://{host}{parsed.path or '/'}".lower()


def dedupe(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Keep the first result seen for each normalized URL key."""
    unique: dict[str, SearchResult] = {}
    for result in results:
        unique.setdefault(normalize_url_key(result.url), result)
    return list(unique.values())


def filter_results(handler: EngineHandler, raw: list[RawSearchLink]) -> list[SearchResult]:
    """Drop unusable links and links back into search pages, then unwrap engine redirects."""
    kept: list[SearchResult] = []
    for link in raw:
        if not link.url or not link.url.startswith("http") or len(link.title) <= 3:
            continue
        if any(marker in link.url for marker in _SEARCH_PAGE_MARKERS):
            continue
        kept.append(
            SearchResult(
                title=link.title,
                url=handler.clean_url(link.url),
                snippet=link.snippet or "",
                source=handler.name,
            )
        )
    return kept


class MultiEngineSearch:
    """Run engine handlers in tiers on one browser and merge their results."""

    def __init__(
        self,
        config: "SearchConfig | None" = None,
        *,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        engines: dict[EngineName, EngineHandler] | None = None,
        hardener: Callable[[Any], Awaitable[Any]] = harden_page,
        rate_limiter: EngineRateLimiter | None = None,
    ):
        from scrapedeck.config.schema import SearchConfig

        self.config = config or SearchConfig()
        self.weights = weights
        self.engines = engines or ENGINES
        self.hardener = hardener
        self.rate_limiter = rate_limiter

    async def search(
        self,
        page: Any,
        query: str,
        limit: int,
        *,
        client_ip: str | None = None,
        now: datetime | None = None,
    ) -> MultiSearchOutcome:
        started_at = time.monotonic()
        collected: list[SearchResult] = []
        engine_meta: dict[str, dict[str, Any]] = {}

        try:
            results, meta = await self._run_engines(page, PRIMARY_ENGINES, query, limit, client_ip)
            collected.extend(results)
            engine_meta.update(meta)

            unique_count = len({normalize_url_key(r.url) for r in collected})
            threshold = fast_tier_threshold(limit)
            logger.info(
                "Fast engines returned {} unique results (threshold {})",
                unique_count,
                threshold,
            )
            if unique_count < threshold:
                results, meta = await self._run_engines(page, FALLBACK_ENGINES, query, limit, client_ip)
                collected.extend(results)
                engine_meta.update(meta)
            else:
                for engine in FALLBACK_ENGINES:
                    engine_meta[engine] = {
                        "success": True,
                        "skipped": True,
                        "reason": "Sufficient results from fast engines",
                        "count": 0,
                        "rawCount": 0,
                        "searchTime": 0,
                    }
        except Exception as e:
            logger.error("Tiered search failed, running all engines: {}", e)
            collected, meta = await self._run_engines(page, ALL_ENGINES, query, limit, client_ip)
            engine_meta.update(meta)

        unique = dedupe(collected)
        now = now or datetime.now(timezone.utc)
        scored = [
            (calculate_score(result, query, weights=self.weights, now=now), result)
            for result in unique
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        final = [result for _, result in scored[:limit]]

        logger.debug(
            "Search for {!r} ranked {} of {} results in {}ms",
            query,
            len(final),
            len(collected),
            int((time.monotonic() - started_at) * 1000),
        )
        return MultiSearchOutcome(
            query=query,
            results=final,
            debug={
                "engines": engine_meta,
                "totalEngines": len(PRIMARY_ENGINES) + len(FALLBACK_ENGINES),
                "successfulEngines": sum(1 for meta in engine_meta.values() if "error" not in meta),
                "deduplicationStats": {
                    "rawResults": len(collected),
                    "uniqueResults": len(unique),
                    "finalResults": len(final),
                },
            },
        )

    async def _run_engines(
        self,
        page: Any,
        engines: Iterable[EngineName],
        query: str,
        limit: int,
        client_ip: str | None,
    ) -> tuple[list[SearchResult], dict[str, dict[str, Any]]]:
        meta: dict[str, dict[str, Any]] = {}
        runnable: list[EngineName] = []
        for engine in engines:
            if engine not in self.engines:
                meta[engine] = {"success": False, "error": "No handler found", "count": 0, "rawCount": 0, "searchTime": 0}
                continue
            if client_ip and self.rate_limiter is not None:
                verdict = self.rate_limiter.hit(client_ip, engine)
                if not verdict.allowed:
                    logger.warning("Rate limit reached for {} on {}", client_ip, engine)
                    meta[engine] = {
                        "success": False,
                        "rateLimited": True,
                        "error": f"{engine} rate limit exceeded",
                        "count": 0,
                        "rawCount": 0,
                        "searchTime": 0,
                    }
                    continue
            runnable.append(engine)

        if not runnable:
            return [], meta

        extra_pages: list[Any] = []
        try:
            for _ in runnable[1:]:
                extra = await page.context.new_page()
                extra_pages.append(extra)
                await self.hardener(extra)

            pages = [page, *extra_pages]
            count = per_engine_limit(limit)
            outcomes = await asyncio.gather(
                *(
                    self._run_one(self.engines[engine], engine_page, query, count)
                    for engine, engine_page in zip(runnable, pages)
                )
            )
        finally:
            for extra in extra_pages:
                try:
                    if not extra.is_closed():
                        await extra.close()
                except Exception as e:
                    logger.warning("Failed to close auxiliary search page: {}", e)

        results: list[SearchResult] = []
        for engine, found, engine_meta in outcomes:
            results.extend(found)
            meta[engine] = engine_meta
        return results, meta

    async def _run_one(
        self,
        handler: EngineHandler,
        page: Any,
        query: str,
        count: int,
    ) -> tuple[EngineName, list[SearchResult], dict[str, Any]]:
        started_at = time.monotonic()
        timeout_s = self.config.engine_timeout_ms / 1000
        try:
            try:
                outcome = await asyncio.wait_for(
                    perform_search(
                        handler,
                        page,
                        query,
                        count,
                        navigation_timeout_ms=self.config.navigation_timeout_ms,
                        selector_wait_ms=self.config.selector_wait_ms,
                        extra_wait_ms=self.config.extra_wait_ms,
                    ),
                    timeout=timeout_s,
                )
            except asyncio.TimeoutError as e:
                raise TimeoutError(f"{handler.name} search timeout after {timeout_s:g} seconds") from e
        except Exception as e:
            elapsed = int((time.monotonic() - started_at) * 1000)
            logger.warning("{} search failed after {}ms: {}", handler.name, elapsed, e)
            return handler.name, [], {
                "success": False,
                "error": str(e) or type(e).__name__,
                "searchTime": elapsed,
                "count": 0,
                "rawCount": 0,
            }

        filtered = filter_results(handler, outcome.results)
        elapsed = int((time.monotonic() - started_at) * 1000)
        logger.info("{}: {} results ({} raw)", handler.name, len(filtered), len(outcome.results))
        return handler.name, filtered, {
            "success": True,
            "count": len(filtered),
            "rawCount": len(outcome.results),
            "pageTitle": outcome.page_title,
            "searchTime": elapsed,
        }
