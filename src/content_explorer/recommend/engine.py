"""
Related-item recommendation with vector similarity and a heuristic fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Sequence

from ..concurrency import STORE_POOL, bounded_call
from ..config import RankingConfig
from ..content import ContentItem
from ..embeddings import Embedder, is_valid_embedding
from ..errors import DimensionMismatch, NoContentAvailable, StageTimeout
from ..indexing.text import require_embedding_text
from ..similarity import check_dimensions, cosine_similarity
from ..storage import ItemStore
from .heuristics import HeuristicWeights, heuristic_score

logger = logging.getLogger(__name__)

RecommendationMethod = Literal["vector", "heuristic"]


@dataclass(frozen=True)
class RecommendationResult:
    """A related item and the score that admitted it."""

    item: ContentItem
    score: float
    method: RecommendationMethod

    @property
    def key(self) -> str:
        return self.item.key


class RecommendationEngine:
    """
    Rank items related to a target.

    Vector similarity is preferred; candidates must exceed the vector gate.
    Otherwise a multi-factor heuristic is used and candidates must reach the
    heuristic gate. When nothing qualifies the result is empty: unrelated
    items are never substituted.
    """

    def __init__(
        self,
        *,
        config: RankingConfig | None = None,
        weights: HeuristicWeights | None = None,
        timeout: float | None = None,
    ) -> None:
        self.config = config or RankingConfig()
        self.weights = weights or HeuristicWeights()
        self._timeout = timeout

    def recommend(
        self,
        items: Sequence[ContentItem],
        target: ContentItem,
        *,
        use_vector_search: bool = True,
        embedder: Embedder | None = None,
    ) -> list[RecommendationResult]:
        candidates = [item for item in items if item.key != target.key]
        if not candidates:
            return []

        if use_vector_search:
            target_vector = self._target_vector(target, embedder)
            if target_vector is not None:
                ranked = self._vector_rank(target_vector, target.key, candidates)
                if ranked:
                    return ranked
                logger.info("No vector recommendations for %s; using heuristics", target.key)

        return self._heuristic_rank(target, candidates)

    def recommend_by_key(
        self,
        storage: ItemStore,
        key: str,
        *,
        use_vector_search: bool = True,
        embedder: Embedder | None = None,
    ) -> list[RecommendationResult]:
        """Load items from *storage* and recommend for *key*; unknown keys yield []."""
        try:
            items = bounded_call(
                storage.list_items,
                timeout=self._timeout,
                pool=STORE_POOL,
                on_timeout=getattr(storage, "interrupt", None),
            )
        except StageTimeout:
            return []
        except Exception as exc:
            logger.error("Store query failed while recommending for %s: %s", key, exc)
            return []

        target = next((item for item in items if item.key == key), None)
        if target is None:
            logger.info("Recommendation target %s not found", key)
            return []
        return self.recommend(
            items,
            target,
            use_vector_search=use_vector_search,
            embedder=embedder,
        )

    def _target_vector(
        self,
        target: ContentItem,
        embedder: Embedder | None,
    ) -> list[float] | None:
        if target.embedding is not None and is_valid_embedding(target.embedding):
            return target.embedding
        if embedder is None:
            return None

        # Only the target is embedded on the fly; candidates use stored vectors.
        try:
            text = require_embedding_text(target)
        except NoContentAvailable:
            return None
        try:
            embedding = bounded_call(embedder.generate, text, timeout=self._timeout)
        except StageTimeout:
            return None
        except Exception as exc:
            logger.warning("Target embedding failed for %s: %s", target.key, exc)
            return None
        return embedding.vector if embedding is not None else None

    def _vector_rank(
        self,
        target_vector: list[float],
        target_key: str,
        candidates: list[ContentItem],
    ) -> list[RecommendationResult]:
        results: list[RecommendationResult] = []
        for candidate in candidates:
            embedding = candidate.embedding
            if embedding is None or not is_valid_embedding(embedding):
                continue
            try:
                check_dimensions(target_vector, embedding)
            except DimensionMismatch as exc:
                logger.warning("Skipping %s for %s: %s", candidate.key, target_key, exc)
                continue
            similarity = cosine_similarity(target_vector, embedding)
            if similarity > self.config.vector_gate:
                results.append(
                    RecommendationResult(item=candidate, score=similarity, method="vector")
                )
        return self._top(results)

    def _heuristic_rank(
        self,
        target: ContentItem,
        candidates: list[ContentItem],
    ) -> list[RecommendationResult]:
        results: list[RecommendationResult] = []
        for candidate in candidates:
            score = heuristic_score(target.descriptor, candidate.descriptor, self.weights)
            if score >= self.config.heuristic_gate:
                results.append(
                    RecommendationResult(item=candidate, score=score, method="heuristic")
                )
        return self._top(results)

    def _top(self, results: list[RecommendationResult]) -> list[RecommendationResult]:
        ordered = sorted(results, key=lambda r: (-r.score, r.key))
        return ordered[: self.config.max_recommendations]
