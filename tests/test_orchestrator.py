import asyncio
from datetime import datetime, timezone

import pytest

from fakes import FakePage
from scrapedeck.config.schema import SearchConfig
from scrapedeck.search import orchestrator as orchestrator_module
from scrapedeck.search.models import EngineSearchOutcome, RawSearchLink
from scrapedeck.search.orchestrator import MultiEngineSearch, dedupe, normalize_url_key
from scrapedeck.search.rate_limit import EngineRateLimiter
from scrapedeck.search.scoring import calculate_score

NOW = datetime(2025, 6, 15, tzinfo=timezone.utc)


def _links(*pairs: tuple[str, str], snippet: str = "") -> list[RawSearchLink]:
    return [RawSearchLink(title=title, url=url, snippet=snippet) for title, url in pairs]


class EngineScript:
    """Replaces the per-engine page flow with canned outcomes and records calls."""

    def __init__(self, outcomes: dict[str, object]):
        self.outcomes = outcomes
        self.calls: list[tuple[str, int]] = []

    async def __call__(self, handler, page, query, count, **kwargs):
        self.calls.append((handler.name, count))
        outcome = self.outcomes[handler.name]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return await outcome()
        return EngineSearchOutcome(results=outcome, used_selector="x", page_title="ok", page_url="")

    @property
    def engines(self) -> set[str]:
        return {name for name, _ in self.calls}


async def _noop_hardener(page) -> None:
    return None


def _searcher(**kwargs) -> MultiEngineSearch:
    return MultiEngineSearch(SearchConfig(), hardener=_noop_hardener, **kwargs)


@pytest.mark.asyncio
async def test_fallback_tier_skipped_when_fast_engines_suffice(monkeypatch) -> None:
    script = EngineScript(
        {
            "duckduckgo": _links(
                ("Result one", "https://one.example/a"),
                ("Result two", "https://two.example/b"),
                ("Result three", "https://three.example/c"),
            ),
            "bing": _links(
                ("Result four", "https://four.example/d"),
                ("Result five", "https://five.example/e"),
                ("Result six", "https://six.example/f"),
            ),
            "startpage": _links(("Never", "https://never.example/")),
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)

    outcome = await _searcher().search(FakePage(), "result", 5, now=NOW)

    assert script.engines == {"duckduckgo", "bing"}
    assert {count for _, count in script.calls} == {4}
    startpage = outcome.debug["engines"]["startpage"]
    assert startpage["skipped"] is True
    assert startpage["reason"] == "Sufficient results from fast engines"
    assert outcome.debug["totalEngines"] == 3
    assert outcome.debug["successfulEngines"] == 3
    assert len(outcome.results) == 5


@pytest.mark.asyncio
async def test_failing_engine_is_isolated_and_fallback_runs(monkeypatch) -> None:
    script = EngineScript(
        {
            "duckduckgo": _links(("Only result", "https://only.example/")),
            "bing": RuntimeError("Page blocked or CAPTCHA detected"),
            "startpage": _links(("Backup result", "https://backup.example/")),
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)

    outcome = await _searcher().search(FakePage(), "result", 5, now=NOW)

    assert script.engines == {"duckduckgo", "bing", "startpage"}
    bing = outcome.debug["engines"]["bing"]
    assert bing["success"] is False
    assert bing["error"] == "Page blocked or CAPTCHA detected"
    assert {r.url for r in outcome.results} == {"https://only.example/", "https://backup.example/"}
    assert outcome.debug["successfulEngines"] == 2


@pytest.mark.asyncio
async def test_engine_timeout_is_reported(monkeypatch) -> None:
    async def slow():
        await asyncio.sleep(5)

    script = EngineScript(
        {
            "duckduckgo": _links(("Fast result", "https://fast.example/")),
            "bing": slow,
            "startpage": [],
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)
    searcher = MultiEngineSearch(SearchConfig(engine_timeout_ms=50), hardener=_noop_hardener)

    outcome = await searcher.search(FakePage(), "fast", 5, now=NOW)

    assert outcome.debug["engines"]["bing"]["error"] == "bing search timeout after 0.05 seconds"
    assert [r.url for r in outcome.results] == ["https://fast.example/"]


@pytest.mark.asyncio
async def test_auxiliary_pages_are_hardened_and_closed(monkeypatch) -> None:
    hardened: list[object] = []

    async def hardener(page) -> None:
        hardened.append(page)

    script = EngineScript({"duckduckgo": [], "bing": RuntimeError("boom"), "startpage": []})
    monkeypatch.setattr(orchestrator_module, "perform_search", script)
    root = FakePage()

    await MultiEngineSearch(SearchConfig(), hardener=hardener).search(root, "query", 5, now=NOW)

    assert root.context.pages
    assert all(page.closed for page in root.context.pages)
    assert hardened == root.context.pages
    assert root.closed is False


@pytest.mark.asyncio
async def test_results_are_deduplicated_across_engines(monkeypatch) -> None:
    script = EngineScript(
        {
            "duckduckgo": _links(("Docs page", "https://Example.com/docs?ref=ddg")),
            "bing": _links(("Docs page again", "https://example.com/docs#top"), ("Other page", "https://other.example/")),
            "startpage": _links(("Docs page third", "https://example.com/docs")),
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)

    outcome = await _searcher().search(FakePage(), "docs", 10, now=NOW)

    keys = [normalize_url_key(r.url) for r in outcome.results]
    assert len(keys) == len(set(keys))
    docs = [r for r in outcome.results if normalize_url_key(r.url) == "https://example.com/docs"]
    assert len(docs) == 1
    assert docs[0].source == "duckduckgo"
    stats = outcome.debug["deduplicationStats"]
    assert stats["rawResults"] == 4
    assert stats["uniqueResults"] == 2


@pytest.mark.asyncio
async def test_rate_limited_engine_is_skipped(monkeypatch) -> None:
    script = EngineScript({"duckduckgo": [], "bing": [], "startpage": []})
    monkeypatch.setattr(orchestrator_module, "perform_search", script)
    limiter = EngineRateLimiter(max_requests=1, window_s=60)
    limiter.hit("9.9.9.9", "bing")

    outcome = await _searcher(rate_limiter=limiter).search(FakePage(), "q", 5, client_ip="9.9.9.9", now=NOW)

    assert "bing" not in script.engines
    assert outcome.debug["engines"]["bing"]["rateLimited"] is True
    assert outcome.debug["engines"]["bing"]["success"] is False


@pytest.mark.asyncio
async def test_all_engines_run_when_tiered_search_breaks(monkeypatch) -> None:
    calls = {"hardener": 0}

    async def flaky_hardener(page) -> None:
        calls["hardener"] += 1
        if calls["hardener"] == 1:
            raise RuntimeError("Target page, context or browser has been closed")

    script = EngineScript(
        {
            "duckduckgo": _links(("Duck result", "https://duck.example/")),
            "bing": _links(("Bing result", "https://bing-result.example/")),
            "startpage": _links(("Start result", "https://start.example/")),
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)
    root = FakePage()

    outcome = await MultiEngineSearch(SearchConfig(), hardener=flaky_hardener).search(root, "result", 5, now=NOW)

    assert script.engines == {"duckduckgo", "bing", "startpage"}
    assert set(outcome.debug["engines"]) == {"duckduckgo", "bing", "startpage"}
    assert len(outcome.results) == 3
    assert outcome.debug["deduplicationStats"]["finalResults"] == len(outcome.results)
    assert all(page.closed for page in root.context.pages)


@pytest.mark.asyncio
async def test_cloudflare_workers_end_to_end(monkeypatch) -> None:
    script = EngineScript(
        {
            "duckduckgo": _links(
                ("Cloudflare Workers", "https://workers.cloudflare.com/"),
                ("Cloudflare Workers docs", "https://developers.cloudflare.com/workers/"),
                ("Workers KV overview", "https://developers.cloudflare.com/kv/"),
                snippet="Build serverless applications with Cloudflare Workers and deploy globally.",
            ),
            "bing": _links(
                ("Cloudflare Workers docs", "https://developers.cloudflare.com/workers/?utm=bing"),
                ("Cloudflare Workers pricing", "https://www.cloudflare.com/plans/developer-platform/"),
                ("Serverless with Workers", "https://blog.example.com/workers-guide"),
                ("Workers on GitHub", "https://github.com/cloudflare/workers-sdk"),
            ),
            "startpage": _links(("Unused", "https://unused.example/")),
        }
    )
    monkeypatch.setattr(orchestrator_module, "perform_search", script)

    outcome = await _searcher().search(FakePage(), "cloudflare workers", 5, now=NOW)

    assert len(outcome.results) == 5
    scores = [calculate_score(r, "cloudflare workers", now=NOW) for r in outcome.results]
    assert scores == sorted(scores, reverse=True)
    assert len({normalize_url_key(r.url) for r in outcome.results}) == 5
    assert {r.source for r in outcome.results} <= {"duckduckgo", "bing"}
    assert outcome.debug["deduplicationStats"]["finalResults"] == len(outcome.results)


def test_normalize_url_key_and_dedupe() -> None:
    assert normalize_url_key("HTTPS://User@Example.com/A?b=1#c") == "https://example.com/a"
    assert normalize_url_key("https://example.com") == "https://example.com/"
    assert normalize_url_key("not a url") == "not a url"
    assert dedupe([]) == []
