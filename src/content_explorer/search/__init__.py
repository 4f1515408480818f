"""Search over stored content items."""

from .engine import SearchEngine, SearchResponse
from .ranker import (
    HybridScore,
    KeywordMatches,
    MatchType,
    SearchResult,
    hybrid_score,
    keyword_only_score,
    match_keywords,
    rank_results,
)
from .stages import (
    HybridStage,
    KeywordFallbackStage,
    KeywordSupplementStage,
    SearchQuery,
    StageOutcome,
    VectorStage,
)

__all__ = [
    "SearchEngine",
    "SearchResponse",
    "HybridScore",
    "KeywordMatches",
    "MatchType",
    "SearchResult",
    "hybrid_score",
    "keyword_only_score",
    "match_keywords",
    "rank_results",
    "HybridStage",
    "KeywordFallbackStage",
    "KeywordSupplementStage",
    "SearchQuery",
    "StageOutcome",
    "VectorStage",
]
