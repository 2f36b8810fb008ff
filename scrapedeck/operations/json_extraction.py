"""AI-assisted structured data extraction from rendered pages."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Literal

import httpx
import json_repair
import tiktoken
from bs4 import BeautifulSoup
from loguru import logger

from scrapedeck.errors import InvalidInput, ScrapeDeckError
from scrapedeck.operations.common import (
    OperationContext,
    failure_from_exception,
    success,
    utc_timestamp,
)
from scrapedeck.operations.markdown import capture_html, count_words, html_to_markdown

if TYPE_CHECKING:
    from scrapedeck.config.schema import ExtractionConfig

ResponseType = Literal["json", "text"]

TOKEN_ENCODING = "cl100k_base"
TRUNCATION_NOTICE = "\n\n[Content truncated due to length...]"

TEXT_SYSTEM_PROMPT = """You are a helpful content analysis assistant. Your task is to analyze webpage content (formatted as structured markdown with preserved headings, links, and hierarchy) and provide clear, natural language responses to user questions.

Guidelines:
- Provide comprehensive, well-structured natural language responses
- Use the markdown structure to better understand content organization
- Be informative and detailed in your analysis
- Write in a clear, professional tone
- Do NOT format your response as JSON or use code blocks
- Respond with plain text that directly addresses the user's request"""

SCHEMA_SYSTEM_PROMPT = (
    "You are a data extraction assistant. Extract structured data from the provided webpage content "
    "(formatted as structured markdown) according to the specified JSON schema. The markdown preserves "
    "headings, links, lists, and content hierarchy. Return ONLY valid JSON that matches the schema - no "
    "explanations, no markdown code blocks (```), no formatting, just the raw JSON object starting with "
    "{ and ending with }."
)

PROMPT_SYSTEM_PROMPT = (
    "You are a data extraction assistant. Extract structured information from the provided webpage "
    "content (formatted as structured markdown with preserved headings, links, and hierarchy) based on "
    "the user's request. You MUST respond with ONLY valid JSON format - no explanations, no markdown code "
    "blocks (```), no additional formatting or text. The response should be a properly formatted JSON "
    "object that directly answers the user's question, starting with { and ending with }."
)

_JSON_PROMPT_SUFFIX = (
    "Please analyze the following webpage content (provided as structured markdown with preserved "
    "headings, links, and hierarchy) and respond with a well-structured JSON object that provides "
    "detailed, actionable information. Use descriptive field names and break down information into "
    "multiple logical fields when appropriate. Format your response as valid JSON only:"
)


@lru_cache(maxsize=1)
def _encoding() -> "tiktoken.Encoding":
    return tiktoken.get_encoding(TOKEN_ENCODING)


def count_tokens(text: str) -> int:
    if not text:
        return 0
    return len(_encoding().encode(text))


@dataclass(slots=True)
class PageDigest:
    """Page facts fed to the model alongside the markdown body."""

    title: str
    meta_description: str
    url: str
    markdown: str
    structured_data: list[Any] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return count_words(self.markdown)


@dataclass(slots=True)
class TruncatedContent:
    text: str
    original_tokens: int
    final_tokens: int
    truncated: bool


def digest_page(html: str, url: str) -> PageDigest:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    meta = soup.find("meta", attrs={"name": "description"})
    description = str(meta.get("content") or "") if meta else ""

    structured: list[Any] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            structured.append(json.loads(script.get_text() or ""))
        except ValueError:
            logger.debug("Ignoring invalid JSON-LD block on {}", url)

    return PageDigest(
        title=title,
        meta_description=description,
        url=url,
        markdown=html_to_markdown(html),
        structured_data=structured,
    )


def build_context(digest: PageDigest) -> str:
    parts = [
        f"Page Title: {digest.title}",
        f"Meta Description: {digest.meta_description}",
        f"Page URL: {digest.url}",
        f"Word Count: {digest.word_count}",
        "",
    ]
    if digest.structured_data:
        parts.append(f"Structured Data (JSON-LD): {json.dumps(digest.structured_data, indent=2, ensure_ascii=False)}")
        parts.append("")
    parts.append("Page Content (Structured Markdown):")
    parts.append(digest.markdown)
    return "\n".join(parts).strip()


def truncate_to_tokens(
    text: str,
    max_tokens: int,
    *,
    counter: Callable[[str], int] | None = None,
) -> TruncatedContent:
    """Keep whole blank-line-separated sections while they fit in ``max_tokens``.

    When even the first section is too large it is cut by characters using the
    observed characters-per-token ratio with a 10% safety margin.
    """
    counter = counter or count_tokens
    original = counter(text)
    if original <= max_tokens:
        return TruncatedContent(text, original, original, False)

    sections = text.split("\n\n")
    separator = counter("\n\n")
    kept: list[str] = []
    used = 0
    for section in sections:
        cost = counter(section) + (separator if kept else 0)
        if used + cost > max_tokens:
            break
        kept.append(section)
        used += cost

    if kept:
        body = "\n\n".join(kept)
    else:
        chars_per_token = len(text) / max(1, original)
        body = text[: int(max_tokens * chars_per_token * 0.9)]

    result = body + TRUNCATION_NOTICE
    return TruncatedContent(result, original, counter(result), True)


def build_messages(
    context: str,
    *,
    response_type: ResponseType,
    prompt: str | None,
    response_format: dict[str, Any] | None,
    instructions: str | None,
) -> list[dict[str, str]]:
    extra = f"Additional instructions: {instructions}\n\n" if instructions else ""
    if response_type == "text":
        system = TEXT_SYSTEM_PROMPT
        user = (
            f"{prompt or ''}\n\n{extra}Please analyze the following webpage content and provide a "
            f"detailed, informative response:\n\nWebpage Content:\n{context}"
        )
    elif response_format:
        system = SCHEMA_SYSTEM_PROMPT
        user = f"{instructions or 'Extract data according to the provided schema.'}\n\nWebpage Content:\n{context}"
    else:
        system = PROMPT_SYSTEM_PROMPT
        user = f"{prompt or ''}\n\n{extra}{_JSON_PROMPT_SUFFIX}\n\nWebpage Content:\n{context}"
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def parse_json_reply(text: str) -> Any:
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    result = json_repair.loads(text)
    if not isinstance(result, (dict, list)):
        raise ScrapeDeckError(f"Failed to parse JSON response from AI model: {text[:200]}")
    return result


class ChatCompletionsClient:
    """Minimal client for an OpenAI-compatible chat completions endpoint."""

    def __init__(self, config: "ExtractionConfig | None" = None):
        from scrapedeck.config.schema import ExtractionConfig

        self.config = config or ExtractionConfig()

    @property
    def model(self) -> str:
        return self.config.model

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        response_format: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "max_tokens": self.config.max_output_tokens,
            "temperature": self.config.temperature,
        }
        if response_format:
            payload["response_format"] = response_format

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{self.config.api_base.rstrip('/')}/chat/completions",
                json=payload,
                headers=headers,
                timeout=self.config.timeout_s,
            )
            response.raise_for_status()
        return response.json()


def _reply_content(reply: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    choices = reply.get("choices") or []
    content = choices[0].get("message", {}).get("content") if choices else None
    if not content:
        raise ScrapeDeckError("No content in AI response")
    return str(content), dict(reply.get("usage") or {})


async def extract_json(
    ctx: OperationContext,
    *,
    url: str,
    prompt: str | None = None,
    response_format: dict[str, Any] | None = None,
    response_type: ResponseType = "json",
    instructions: str | None = None,
    wait_time: int | None = None,
    client: ChatCompletionsClient | None = None,
) -> dict[str, Any]:
    """Render ``url`` and ask a chat model to extract data from it.

    ``response_type="json"`` returns ``data.extracted``; ``"text"`` returns
    ``data.text``. Either ``prompt`` or ``response_format`` is required.
    """
    try:
        if not (prompt and prompt.strip()) and not response_format:
            raise InvalidInput("Either prompt or response_format must be provided")
        if response_type not in ("json", "text"):
            raise InvalidInput(f"unsupported response_type: {response_type}")
        target = ctx.check_url(url)
        extraction = ctx.config.extraction
        client = client or ChatCompletionsClient(extraction)

        html = await ctx.run(lambda page: capture_html(ctx, page, target, wait_time))
        digest = digest_page(html, target)
        content = truncate_to_tokens(build_context(digest), extraction.max_input_tokens)
        if content.truncated:
            logger.info(
                "Truncated extraction context for {} from {} to {} tokens",
                target,
                content.original_tokens,
                content.final_tokens,
            )

        messages = build_messages(
            content.text,
            response_type=response_type,
            prompt=prompt,
            response_format=response_format,
            instructions=instructions,
        )
        mode = None
        if response_type == "json":
            mode = response_format or {"type": "json_object"}
        reply_text, usage = _reply_content(await client.complete(messages, response_format=mode))

        metadata: dict[str, Any] = {
            "url": target,
            "timestamp": utc_timestamp(),
            "model": client.model,
            "responseType": response_type,
            "extractionType": "schema" if response_format else "prompt",
            "inputTokens": usage.get("prompt_tokens", usage.get("input_tokens")),
            "outputTokens": usage.get("completion_tokens", usage.get("output_tokens")),
            "originalContentTokens": content.original_tokens,
            "finalContentTokens": content.final_tokens,
            "contentTruncated": content.truncated,
        }
        if response_type == "text":
            return success("json_extraction", {"text": reply_text.strip(), "metadata": metadata})

        extracted = parse_json_reply(reply_text)
        metadata["fieldsExtracted"] = len(extracted)
        return success("json_extraction", {"extracted": extracted, "metadata": metadata})
    except Exception as e:
        return failure_from_exception("json_extraction", e, ctx.redactor)
