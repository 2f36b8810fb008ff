import pytest

from fakes import FakePage
from scrapedeck.errors import EngineBlocked
from scrapedeck.search import engines as engines_module
from scrapedeck.search.engines import ENGINES, clean_bing_url, clean_duckduckgo_url, perform_search


def test_duckduckgo_redirect_is_unwrapped() -> None:
    wrapped = "https://duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpage&rut=abc123"

    assert clean_duckduckgo_url(wrapped) == "https://example.com/page"
    assert clean_duckduckgo_url("//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpage") == (
        "https://example.com/page"
    )
    assert clean_duckduckgo_url("//example.org/a") == "https://example.org/a"
    assert clean_duckduckgo_url("https://example.org/a") == "https://example.org/a"


def test_bing_base64_redirect_is_unwrapped() -> None:
    wrapped = "https://www.bing.com/ck/a?!&&p=abc&u=a1aHR0cHM6Ly9leGFtcGxlLmNvbS9wYWdl&ntb=1"

    assert clean_bing_url(wrapped) == "https://example.com/page"


def test_bing_plain_and_non_bing_urls() -> None:
    plain = "https://www.bing.com/ck/a?u=https%3A%2F%2Fexample.com%2Fdocs&ntb=1"

    assert clean_bing_url(plain) == "https://example.com/docs"
    assert clean_bing_url("https://example.com/x") == "https://example.com/x"


@pytest.mark.parametrize(
    ("engine", "title", "html", "blocked"),
    [
        ("bing", "Please complete verification", "x" * 5000, True),
        ("startpage", "CAPTCHA required", "x" * 5000, True),
        ("bing", "cloudflare workers - Search", "x" * 5000, False),
        ("duckduckgo", "cloudflare workers at DuckDuckGo", "<html></html>", True),
        ("duckduckgo", "cloudflare workers at DuckDuckGo", "x" * 5000, False),
    ],
)
def test_block_detection(engine: str, title: str, html: str, blocked: bool) -> None:
    assert ENGINES[engine].is_blocked(title, html) is blocked


def test_search_urls_encode_query() -> None:
    assert ENGINES["bing"].build_search_url("a b&c", 8) == "https://www.bing.com/search?q=a%20b%26c&count=8"
    assert "q=a%20b" in ENGINES["duckduckgo"].build_search_url("a b", 8)
    assert "query=a%20b" in ENGINES["startpage"].build_search_url("a b", 8)


@pytest.mark.asyncio
async def test_perform_search_uses_first_productive_selector() -> None:
    page = FakePage(
        title="cloudflare workers - Search",
        html="x" * 5000,
        selector_results={
            ".b_result": [{"title": "Workers docs", "url": "https://developers.cloudflare.com/workers/"}],
            ".b_algoheader": [{"title": "Ignored", "url": "https://ignored.example/"}],
        },
    )

    outcome = await perform_search(ENGINES["bing"], page, "cloudflare workers", 5)

    assert outcome.used_selector == ".b_result"
    assert [r.url for r in outcome.results] == ["https://developers.cloudflare.com/workers/"]
    assert page.names()[0] == "route"
    assert page.calls[1][1]["wait_until"] == "domcontentloaded"


@pytest.mark.asyncio
async def test_perform_search_raises_when_blocked(monkeypatch) -> None:
    async def no_sleep(delay: float) -> None:
        return None

    monkeypatch.setattr(engines_module.asyncio, "sleep", no_sleep)
    page = FakePage(title="Verification required", html="x" * 5000)

    with pytest.raises(EngineBlocked, match="Page blocked or CAPTCHA detected"):
        await perform_search(ENGINES["startpage"], page, "anything", 5)
