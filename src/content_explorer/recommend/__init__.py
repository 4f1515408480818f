"""Related-item recommendation."""

from .engine import RecommendationEngine, RecommendationResult
from .heuristics import HeuristicWeights, heuristic_score, keywords

__all__ = [
    "RecommendationEngine",
    "RecommendationResult",
    "HeuristicWeights",
    "heuristic_score",
    "keywords",
]
