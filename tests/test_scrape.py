import pytest

from fakes import DirectRunner, FakePage
from scrapedeck.config.schema import Config
from scrapedeck.operations.common import OperationContext
from scrapedeck.operations.scrape import MAX_NODES_PER_SELECTOR, html_to_text, scrape_elements


def test_html_to_text_joins_blocks() -> None:
    assert html_to_text("<div><p>One</p><p>Two</p></div>") == "One, Two"
    assert html_to_text("<h1>Hello   <b>there</b></h1>") == "Hello there"
    assert html_to_text("<ul><li>a<br>b</li><!-- hidden --><li>c</li></ul>") == "a, b, c"


@pytest.mark.asyncio
async def test_scrape_elements_fills_text_and_counts() -> None:
    requested: list = []

    def collect(script, params):
        requested.extend(params)
        return [
            {
                "selector": "h1",
                "results": [
                    {"html": "<h1>Hello <b>there</b></h1>", "text": "", "top": 0, "left": 0,
                     "width": 100, "height": 20, "attributes": [{"name": "id", "value": "main"}]},
                ],
            },
            {"selector": ".missing", "results": []},
        ]

    page = FakePage(evaluate_result=collect)
    ctx = OperationContext(runner=DirectRunner(page), config=Config())

    result = await scrape_elements(
        ctx,
        url="https://example.com/",
        elements=[{"selector": "h1", "attributes": ["id"]}, {"selector": ".missing"}],
        headers={"X-Test": "1"},
    )

    assert result["success"] is True
    elements = result["data"]["elements"]
    assert elements[0]["results"][0]["text"] == "Hello there"
    assert result["data"]["metadata"]["elementsFound"] == 1
    assert requested[0] == {"selector": "h1", "attributes": ["id"], "limit": MAX_NODES_PER_SELECTOR}
    headers = page.calls[0][1]
    assert headers["X-Test"] == "1"
    assert "User-Agent" in headers


@pytest.mark.asyncio
async def test_scrape_rejects_bad_elements() -> None:
    ctx = OperationContext(runner=DirectRunner(FakePage()), config=Config())

    result = await scrape_elements(ctx, url="https://example.com/", elements=[{"selector": ""}])

    assert result["success"] is False
    assert result["error"]["code"] == "invalid_input"
