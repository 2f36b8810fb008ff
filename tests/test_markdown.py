import pytest

from fakes import DirectRunner, FakePage
from scrapedeck.config.schema import Config
from scrapedeck.operations.common import OperationContext
from scrapedeck.operations.markdown import count_words, extract_markdown, html_to_markdown, sanitize_html


def test_paragraph_echoing_heading_is_dropped() -> None:
    assert html_to_markdown("<p>Title</p><h1>Title</h1>") == "# Title"


def test_cleanup_passes() -> None:
    html = (
        '<p>Repeat me</p><p>Repeat me</p>'
        '<p><a href="https://x.example/"></a>kept text</p>'
        '<p><a href="https://docs.example/">Docs</a> https://docs.example/</p>'
    )

    markdown = html_to_markdown(html)

    assert markdown.count("Repeat me") == 1
    assert "[](https://x.example/)" not in markdown
    assert "kept text" in markdown
    assert markdown.count("https://docs.example/") == 1


def test_sanitize_strips_scripts_and_unsafe_attributes() -> None:
    soup = sanitize_html(
        '<div onclick="evil()"><script>alert(1)</script>'
        '<a href="javascript:alert(1)">bad</a>'
        '<img src="https://img.example/a.png" alt="pic" onerror="x()">'
        "<custom-tag>inner</custom-tag></div>"
    )
    html = str(soup)

    assert "script" not in html
    assert "onclick" not in html
    assert "onerror" not in html
    assert "javascript:" not in html
    assert 'src="https://img.example/a.png"' in html
    assert "custom-tag" not in html
    assert "inner" in html


def test_count_words() -> None:
    assert count_words("# Hello world\n\n* item_one") == 3


@pytest.mark.asyncio
async def test_extract_markdown_envelope() -> None:
    page = FakePage(
        html=(
            "<html><head><title>T</title></head><body>"
            "<p>Title</p><h1>Title</h1><p>Hello world</p><script>track()</script>"
            "</body></html>"
        )
    )
    ctx = OperationContext(runner=DirectRunner(page), config=Config())

    result = await extract_markdown(ctx, url="https://example.com/", wait_time=250)

    assert result["success"] is True
    assert result["creditsCost"] == 1
    assert result["data"]["markdown"] == "# Title\n\nHello world"
    assert result["data"]["metadata"]["wordCount"] == 3
    assert result["data"]["metadata"]["url"] == "https://example.com/"
    assert ("wait_for_timeout", 250) in page.calls
    goto = next(args for name, args in page.calls if name == "goto")
    assert goto["wait_until"] == "networkidle"


@pytest.mark.asyncio
async def test_invalid_url_fails_without_browser_work() -> None:
    runner = DirectRunner(FakePage())
    ctx = OperationContext(runner=runner, config=Config())

    result = await extract_markdown(ctx, url="file:///etc/passwd")

    assert result == {
        "success": False,
        "error": {"code": "invalid_input", "message": "file:// URLs are blocked"},
        "creditsCost": 0,
    }
    assert runner.runs == 0


@pytest.mark.asyncio
async def test_navigation_failure_is_reported() -> None:
    page = FakePage(goto_errors=[RuntimeError("Protocol error: Target closed")])
    ctx = OperationContext(runner=DirectRunner(page), config=Config())

    result = await extract_markdown(ctx, url="https://example.com/")

    assert result["success"] is False
    assert result["error"]["code"] == "navigation_failed"
    assert result["creditsCost"] == 0
