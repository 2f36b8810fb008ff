"""Multi-engine web search."""

from scrapedeck.search.engines import ENGINES, EngineHandler, perform_search
from scrapedeck.search.models import EngineName, RawSearchLink, SearchResult
from scrapedeck.search.orchestrator import MultiEngineSearch, dedupe, normalize_url_key
from scrapedeck.search.rate_limit import EngineRateLimiter
from scrapedeck.search.scoring import DEFAULT_WEIGHTS, ScoringWeights, calculate_score

__all__ = [
    "DEFAULT_WEIGHTS",
    "ENGINES",
    "EngineHandler",
    "EngineName",
    "EngineRateLimiter",
    "MultiEngineSearch",
    "RawSearchLink",
    "ScoringWeights",
    "SearchResult",
    "calculate_score",
    "dedupe",
    "normalize_url_key",
    "perform_search",
]
