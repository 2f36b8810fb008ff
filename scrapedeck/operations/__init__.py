"""Page operations returning success/failure envelopes."""

from scrapedeck.operations.common import CREDIT_COSTS, OperationContext, OperationType
from scrapedeck.operations.content import get_content
from scrapedeck.operations.json_extraction import ChatCompletionsClient, extract_json
from scrapedeck.operations.links import extract_links
from scrapedeck.operations.markdown import extract_markdown
from scrapedeck.operations.pdf import generate_pdf
from scrapedeck.operations.scrape import scrape_elements
from scrapedeck.operations.screenshot import take_screenshot
from scrapedeck.operations.search import run_search

__all__ = [
    "CREDIT_COSTS",
    "ChatCompletionsClient",
    "OperationContext",
    "OperationType",
    "extract_json",
    "extract_links",
    "extract_markdown",
    "generate_pdf",
    "get_content",
    "run_search",
    "scrape_elements",
    "take_screenshot",
]
