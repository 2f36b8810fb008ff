"""Search result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

EngineName = Literal["duckduckgo", "startpage", "bing"]


@dataclass(slots=True)
class RawSearchLink:
    """Unprocessed result scraped from an engine's result page."""

    title: str
    url: str
    snippet: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawSearchLink":
        return cls(
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            snippet=str(data.get("snippet") or ""),
        )


@dataclass(slots=True)
class SearchResult:
    """Cleaned result tagged with the engine that produced it."""

    title: str
    url: str
    snippet: str
    source: EngineName

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
        }


@dataclass(slots=True)
class EngineSearchOutcome:
    """Raw results plus page diagnostics from one engine run."""

    results: list[RawSearchLink]
    used_selector: str
    page_title: str
    page_url: str


@dataclass(slots=True)
class MultiSearchOutcome:
    """Ranked results and the per-query debug bundle."""

    query: str
    results: list[SearchResult] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)
