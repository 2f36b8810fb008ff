"""Page to Markdown conversion."""

from __future__ import annotations

import re
from typing import Any

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from markdownify import markdownify

from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    open_target,
    success,
    utc_timestamp,
)

ALLOWED_TAGS = frozenset(
    {
        "address", "article", "aside", "footer", "header", "hgroup", "main", "nav", "section",
        "h1", "h2", "h3", "h4", "h5", "h6",
        "blockquote", "dd", "div", "dl", "dt", "figcaption", "figure", "hr", "li", "ol", "p", "pre", "ul",
        "a", "abbr", "b", "bdi", "bdo", "br", "cite", "code", "data", "dfn", "em", "i", "kbd", "mark",
        "q", "s", "samp", "small", "span", "strong", "sub", "sup", "time", "u", "var", "wbr",
        "caption", "col", "colgroup", "table", "tbody", "td", "tfoot", "th", "thead", "tr",
        "img",
    }
)
ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "name", "target"}),
    "img": frozenset({"src", "alt", "title", "width", "height", "loading"}),
}
ALLOWED_SCHEMES = frozenset({"http", "https", "data"})

_DROPPED_WITH_CONTENT = ("head", "script", "style", "noscript", "textarea", "option", "template", "svg", "iframe")
_HEADINGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
_WORD_RE = re.compile(r"\b\w+\b")


def count_words(text: str) -> int:
    return len(_WORD_RE.findall(text))


def _url_allowed(value: str) -> bool:
    match = _SCHEME_RE.match(value.strip())
    return match is None or match.group(1).lower() in ALLOWED_SCHEMES


def sanitize_html(html: str) -> BeautifulSoup:
    """Strip scripts, unknown tags and unsafe attributes, keeping a safe image subset."""
    soup = BeautifulSoup(html, "html.parser")
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    for tag in soup.find_all(_DROPPED_WITH_CONTENT):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        allowed = ALLOWED_ATTRIBUTES.get(tag.name, frozenset())
        attrs = {}
        for name, value in tag.attrs.items():
            if name not in allowed:
                continue
            if name in {"href", "src"} and not _url_allowed(str(value)):
                continue
            attrs[name] = value
        tag.attrs = attrs
    return soup


def _text_of(node: Tag) -> str:
    alts = " ".join(img.get("alt", "") for img in node.find_all("img"))
    return f"{node.get_text()}{alts}".strip()


def _sibling(tag: Tag, *, forward: bool) -> Tag | None:
    siblings = tag.next_siblings if forward else tag.previous_siblings
    for node in siblings:
        if isinstance(node, NavigableString):
            if node.strip():
                return None
            continue
        if isinstance(node, Tag):
            return node
    return None


def clean_tree(soup: BeautifulSoup) -> BeautifulSoup:
    """Remove duplicated and empty structures that convert into noisy Markdown."""
    for paragraph in soup.find_all("p"):
        following = _sibling(paragraph, forward=True)
        if following is not None and following.name in _HEADINGS and _text_of(paragraph) == _text_of(following):
            paragraph.decompose()

    for link in soup.find_all("a"):
        if not _text_of(link):
            link.decompose()

    repeated = []
    for paragraph in soup.find_all("p"):
        previous = _sibling(paragraph, forward=False)
        if previous is not None and previous.name == "p" and _text_of(previous) == _text_of(paragraph):
            repeated.append(paragraph)
    for paragraph in repeated:
        paragraph.decompose()

    for paragraph in soup.find_all("p"):
        children = list(paragraph.contents)
        if len(children) < 2:
            continue
        last, prev = children[-1], children[-2]
        if (
            isinstance(last, NavigableString)
            and isinstance(prev, Tag)
            and prev.name == "a"
            and prev.get("href")
            and last.strip().startswith(str(prev["href"]))
        ):
            last.extract()
            tail = paragraph.contents[-1] if paragraph.contents else None
            if isinstance(tail, NavigableString):
                tail.replace_with(tail.strip())
    return soup


def html_to_markdown(html: str) -> str:
    soup = clean_tree(sanitize_html(html))
    markdown = markdownify(str(soup), heading_style="ATX", bullets="*")
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


async def capture_html(
    ctx: OperationContext,
    page: Any,
    url: str,
    wait_ms: int | None,
    *,
    wait_until: str = "networkidle",
    timeout_ms: int = 30000,
) -> str:
    await open_target(ctx, page, url, wait_until=wait_until, timeout_ms=timeout_ms, wait_ms=wait_ms)
    return await page.content()


async def extract_markdown(
    ctx: OperationContext,
    *,
    url: str,
    wait_time: int | None = None,
) -> dict[str, Any]:
    """Render ``url`` and return its content as cleaned Markdown."""
    try:
        target = ctx.check_url(url)
        html = await ctx.run(lambda page: capture_html(ctx, page, target, wait_time))
        markdown = html_to_markdown(html)
        return success(
            "markdown",
            {
                "markdown": markdown,
                "metadata": {
                    "url": target,
                    "timestamp": utc_timestamp(),
                    "wordCount": count_words(markdown),
                },
            },
        )
    except Exception as e:
        return failure_from_exception("markdown", e, ctx.redactor)
