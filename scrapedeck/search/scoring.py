"""Relevance scoring for aggregated search results."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Protocol
from urllib.parse import urlparse

IMPORTANT_SHORT_TERMS = frozenset({"ai", "uk", "js", "go", "ui", "ux", "vr", "ar", "ml", "dl", "it", "io"})

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")

_ISO_DATE_RE = re.compile(r"\b(20\d{2})[-/](0?[1-9]|1[0-2])[-/](0?[1-9]|[12]\d|3[01])\b")
_URL_DATE_RE = re.compile(r"/(20\d{2})/(0?[1-9]|1[0-2])/(0?[1-9]|[12]\d|3[01])/")
_TEXT_DATE_RE = re.compile(
    r"\b(\d{1,2})\s+(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+(20\d{2})\b",
    re.IGNORECASE,
)

_VERY_RECENT_PATTERNS = (
    re.compile(r"\b([1-9]|1\d|2[0-4])\s*(hours?|hrs?)\s+ago\b"),
    re.compile(r"\b(today|this morning|this afternoon)\b"),
    re.compile(r"\byesterday\b"),
)
_RECENT_PATTERNS = (
    re.compile(r"\b([1-6])\s*(days?)\s+ago\b"),
    re.compile(r"\b(this week|few days ago)\b"),
)
_MODERATE_PATTERNS = (
    re.compile(r"\b([1-3])\s*(weeks?)\s+ago\b"),
    re.compile(r"\b(this month|last week)\b"),
)


class Scorable(Protocol):
    title: str
    url: str
    snippet: str


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Immutable weight table for relevance scoring."""

    title_exact: int = 12
    title_partial: int = 6
    snippet_exact: int = 6
    snippet_partial: int = 3

    url_exact_domain: int = 40
    url_prefix_suffix: int = 15
    url_substring: int = 10
    url_path: int = 8

    synergy_per_area: int = 6
    coverage_scale: int = 20
    all_three_areas: int = 15
    two_areas_with_url: int = 10
    title_and_snippet: int = 8
    keyword_diversity: int = 4

    authority_domain: int = 3
    brand_authority_bonus: int = 20
    long_title_penalty: int = -3
    tiny_snippet_penalty: int = -1
    good_snippet_bonus: int = 2

    recency_very_recent: int = 20
    recency_recent: int = 15
    recency_moderate: int = 10
    recency_fairly: int = 5

    max_synergy_bonus: int = 30
    max_total_score: int = 150


DEFAULT_WEIGHTS = ScoringWeights()


def query_terms(query: str) -> list[str]:
    """Lower-cased whitespace tokens longer than two chars, plus allow-listed short terms."""
    return [
        word
        for word in query.lower().split()
        if len(word) > 2 or word in IMPORTANT_SHORT_TERMS
    ]


def extract_root_domain(hostname: str) -> str:
    """Second-to-last label of a hostname with a leading ``www.`` removed."""
    cleaned = hostname[4:] if hostname.startswith("www.") else hostname
    parts = cleaned.split(".")
    if len(parts) >= 2:
        return parts[-2]
    return cleaned


def recent_months(current_month: int) -> list[str]:
    """Abbreviated names of the current month (1-based) and the three before it."""
    return [_MONTHS[(current_month - 1 - i) % 12] for i in range(4)]


@lru_cache(maxsize=24)
def recent_month_regex(current_month: int, current_year: int) -> re.Pattern[str]:
    months = "|".join(recent_months(current_month))
    return re.compile(rf"\b({months})[a-z]*\s+{current_year}\b", re.IGNORECASE)


def _split_url(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return url.lower(), ""
    host = (parsed.hostname or "").replace("www.", "", 1).lower()
    return host, parsed.path.lower()


def _age_bonus(published: datetime, now: datetime, weights: ScoringWeights) -> int | None:
    age_days = (now - published).total_seconds() / 86400
    if age_days < 2:
        return weights.recency_very_recent
    if age_days < 7:
        return weights.recency_recent
    if age_days < 30:
        return weights.recency_moderate
    if age_days < 180:
        return weights.recency_fairly
    return None


def _absolute_date(snippet: str, url: str) -> datetime | None:
    iso = _ISO_DATE_RE.search(snippet) or _URL_DATE_RE.search(url)
    try:
        if iso:
            return datetime(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)), tzinfo=timezone.utc)
        text = _TEXT_DATE_RE.search(snippet)
        if text:
            month = _MONTHS.index(text.group(2).lower()[:3]) + 1
            return datetime(int(text.group(3)), month, int(text.group(1)), tzinfo=timezone.utc)
    except ValueError:
        return None
    return None


def recency_bonus(
    result: Scorable,
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    now: datetime | None = None,
) -> int:
    """Raw recency bonus from absolute dates, then relative wording, then month/year hints."""
    now = now or datetime.now(timezone.utc)
    snippet = (result.snippet or "").lower()
    url = result.url.lower()

    published = _absolute_date(snippet, url)
    if published is not None:
        bonus = _age_bonus(published, now, weights)
        if bonus is not None:
            return bonus

    if any(pattern.search(snippet) for pattern in _VERY_RECENT_PATTERNS):
        return weights.recency_very_recent
    if any(pattern.search(snippet) for pattern in _RECENT_PATTERNS):
        return weights.recency_recent
    if any(pattern.search(snippet) for pattern in _MODERATE_PATTERNS):
        return weights.recency_moderate

    if f"/{now.year}/" in url or f"-{now.year}-" in url:
        return weights.recency_fairly
    if recent_month_regex(now.month, now.year).search(snippet):
        return weights.recency_fairly
    return 0


def _matches(text: str, word: str) -> bool | None:
    """True for a word-boundary match, False for a bare substring match, None for no match."""
    if re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE | re.ASCII):
        return True
    if word in text.lower():
        return False
    return None


def calculate_score(
    result: Scorable,
    query: str,
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    now: datetime | None = None,
) -> int:
    """Score a result against a query. Deterministic for fixed inputs; always within [0, max_total_score]."""
    words = query_terms(query)
    if not words:
        return 0

    W = weights
    title = result.title or ""
    snippet = result.snippet or ""
    host, path = _split_url(result.url)
    root_domain = extract_root_domain(host)

    score = 0
    synergy = 0
    title_matches = snippet_matches = url_matches = 0
    matched_words: set[str] = set()

    for word in words:
        areas = 0

        title_match = _matches(title, word)
        if title_match is not None:
            areas += 1
            title_matches += 1
            matched_words.add(word)
            score += W.title_exact if title_match else W.title_partial

        snippet_match = _matches(snippet, word)
        if snippet_match is not None:
            areas += 1
            snippet_matches += 1
            matched_words.add(word)
            score += W.snippet_exact if snippet_match else W.snippet_partial

        if word in root_domain or word in path:
            areas += 1
            url_matches += 1
            matched_words.add(word)
            if root_domain == word:
                score += W.url_exact_domain
            elif root_domain.startswith(word) or root_domain.endswith(word):
                score += W.url_prefix_suffix
            elif word in root_domain:
                score += W.url_substring
            else:
                score += W.url_path

        if areas >= 2:
            synergy += areas * W.synergy_per_area

    score += min(synergy, W.max_synergy_bonus)

    total_matches = title_matches + snippet_matches + url_matches
    if total_matches > 0:
        coverage = total_matches / (len(words) * 3)
        score += math.floor(coverage * W.coverage_scale)

        if title_matches and snippet_matches and url_matches:
            score += W.all_three_areas
        elif (title_matches or snippet_matches) and url_matches:
            score += W.two_areas_with_url
        elif title_matches and snippet_matches:
            score += W.title_and_snippet

    if len(matched_words) > 1:
        score += (len(matched_words) - 1) * W.keyword_diversity

    if len(host.split(".")) == 2 and "-" not in host and "_" not in host:
        score += W.authority_domain

    if root_domain in words:
        score += W.brand_authority_bonus

    raw_recency = recency_bonus(result, weights=W, now=now)
    if raw_recency > 0:
        quality_factor = min(1.0, max(0.3, score / 50))
        score += math.floor(raw_recency * quality_factor)

    if len(title) > 100:
        score += W.long_title_penalty
    if 50 < len(snippet) < 300:
        score += W.good_snippet_bonus
    if snippet and len(snippet) < 20:
        score += W.tiny_snippet_penalty

    return max(0, min(score, W.max_total_score))
