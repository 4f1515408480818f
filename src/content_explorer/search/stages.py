"""
Search pipeline stages.

Each stage returns a tagged ``StageOutcome`` (success, skip, or fail). The
engine runs stages in order and stops at the first success; failures inside a
stage never propagate past it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from ..concurrency import STORE_POOL, bounded_call
from ..config import RankingConfig
from ..content import ContentItem
from ..embeddings import is_valid_embedding
from ..errors import DimensionMismatch, StageTimeout, StoreQueryFailed
from ..similarity import check_dimensions, cosine_similarity
from ..storage import ItemStore
from .ranker import (
    SearchResult,
    hybrid_score,
    keyword_only_score,
    match_keywords,
    rank_results,
)

logger = logging.getLogger(__name__)

StageStatus = Literal["success", "skip", "fail"]


@dataclass(frozen=True)
class SearchQuery:
    """Normalized search input shared by all stages."""

    text: str
    limit: int
    embedding: list[float] | None = None


@dataclass(frozen=True)
class StageOutcome:
    """Tagged result of running one stage."""

    stage: str
    status: StageStatus
    results: tuple[SearchResult, ...] = ()
    reason: str | None = None
    vector_contributed: bool = False

    @classmethod
    def success(
        cls,
        stage: str,
        results: list[SearchResult],
        *,
        vector_contributed: bool = False,
    ) -> "StageOutcome":
        return cls(
            stage=stage,
            status="success",
            results=tuple(results),
            vector_contributed=vector_contributed,
        )

    @classmethod
    def skip(cls, stage: str, reason: str) -> "StageOutcome":
        return cls(stage=stage, status="skip", reason=reason)

    @classmethod
    def fail(cls, stage: str, reason: str) -> "StageOutcome":
        return cls(stage=stage, status="fail", reason=reason)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class SearchStage(Protocol):
    name: str

    def run(self, query: SearchQuery) -> StageOutcome:
        """Run the stage for *query*."""


class _StoreStage:
    """Shared store access with timeout and failure handling."""

    name = "store"

    def __init__(
        self,
        storage: ItemStore,
        config: RankingConfig,
        *,
        timeout: float | None = None,
    ) -> None:
        self.storage = storage
        self.config = config
        self._timeout = timeout

    def _fetch(
        self,
        *,
        has_embedding: bool | None,
        limit: int | None,
    ) -> tuple[list[ContentItem] | None, str | None]:
        try:
            items = bounded_call(
                self.storage.list_items,
                has_embedding=has_embedding,
                limit=limit,
                timeout=self._timeout,
                pool=STORE_POOL,
                on_timeout=getattr(self.storage, "interrupt", None),
            )
        except StageTimeout:
            return None, "store_timeout"
        except StoreQueryFailed as exc:
            logger.error("Store query failed in %s stage: %s", self.name, exc)
            return None, "store_query_failed"
        except Exception as exc:
            logger.error("Unexpected store error in %s stage: %s", self.name, exc)
            return None, "store_query_failed"
        return items, None


class VectorStage(_StoreStage):
    """Score a bounded page of embedded items with the hybrid score."""

    name = "vector"

    def run(self, query: SearchQuery) -> StageOutcome:
        if query.embedding is None:
            return StageOutcome.skip(self.name, "no_query_embedding")

        items, error = self._fetch(has_embedding=True, limit=self.config.vector_page_size)
        if items is None:
            return StageOutcome.fail(self.name, error or "store_query_failed")
        if not items:
            logger.info("No items with embeddings found in store")
            return StageOutcome.skip(self.name, "no_embedded_items")

        scored: list[SearchResult] = []
        for item in items:
            similarity = self._similarity(query.embedding, item)
            fused = hybrid_score(similarity, item, query.text, self.config)
            if not fused.keep:
                continue
            logger.debug(
                "Match: %s similarity=%.4f score=%.4f type=%s",
                item.key,
                similarity,
                fused.score,
                fused.match_type,
            )
            scored.append(
                SearchResult(
                    item=item,
                    score=fused.score,
                    match_type=fused.match_type,
                    similarity=similarity,
                    matched_fields=fused.matches.matched_fields,
                )
            )

        logger.info("Vector stage scored %d of %d embedded items", len(scored), len(items))
        return StageOutcome.success(self.name, rank_results(scored, limit=query.limit))

    @staticmethod
    def _similarity(query_embedding: list[float], item: ContentItem) -> float:
        embedding = item.embedding
        if embedding is None or not is_valid_embedding(embedding):
            logger.warning("Item %s has an invalid embedding; keyword-only scoring", item.key)
            return 0.0
        try:
            check_dimensions(embedding, query_embedding)
        except DimensionMismatch as exc:
            logger.warning("Item %s scored as keyword-only: %s", item.key, exc)
            return 0.0
        return cosine_similarity(query_embedding, embedding)


class KeywordSupplementStage(_StoreStage):
    """Keyword-match items that have no stored embedding."""

    name = "keyword_supplement"

    def run(self, query: SearchQuery) -> StageOutcome:
        items, error = self._fetch(has_embedding=False, limit=self.config.supplement_page_size)
        if items is None:
            return StageOutcome.fail(self.name, error or "store_query_failed")

        results: list[SearchResult] = []
        for item in items:
            matches = match_keywords(item, query.text)
            if not matches.any:
                continue
            results.append(
                SearchResult(
                    item=item,
                    score=keyword_only_score(matches, self.config.supplement_profile),
                    match_type="keyword",
                    matched_fields=matches.matched_fields,
                )
            )
        if results:
            logger.info("Found %d additional keyword-only matches", len(results))
        return StageOutcome.success(self.name, results)


class HybridStage:
    """Vector stage plus keyword supplement, merged and deduplicated."""

    name = "hybrid"

    def __init__(self, vector: VectorStage, supplement: KeywordSupplementStage) -> None:
        self.vector = vector
        self.supplement = supplement

    def run(self, query: SearchQuery) -> StageOutcome:
        vector_outcome = self.vector.run(query)
        if not vector_outcome.succeeded:
            return StageOutcome(
                stage=self.name,
                status=vector_outcome.status,
                reason=vector_outcome.reason,
            )

        merged = list(vector_outcome.results)
        supplement_outcome = self.supplement.run(query)
        if supplement_outcome.succeeded:
            merged.extend(supplement_outcome.results)
        else:
            logger.warning(
                "Keyword supplement unavailable (%s); using vector results only",
                supplement_outcome.reason,
            )

        ranked = rank_results(merged, limit=query.limit)
        if not ranked:
            return StageOutcome.skip(self.name, "no_matches")
        vector_keys = {result.key for result in vector_outcome.results}
        return StageOutcome.success(
            self.name,
            ranked,
            vector_contributed=any(result.key in vector_keys for result in ranked),
        )


class KeywordFallbackStage(_StoreStage):
    """Terminal stage: keyword-match every item in the store."""

    name = "keyword_fallback"

    def run(self, query: SearchQuery) -> StageOutcome:
        items, error = self._fetch(has_embedding=None, limit=None)
        if items is None:
            return StageOutcome.fail(self.name, error or "store_query_failed")

        logger.info("Keyword fallback scanning %d items", len(items))
        results: list[SearchResult] = []
        for item in items:
            matches = match_keywords(item, query.text)
            if not matches.any:
                continue
            results.append(
                SearchResult(
                    item=item,
                    score=keyword_only_score(matches, self.config.fallback_profile),
                    match_type="keyword",
                    matched_fields=matches.matched_fields,
                )
            )
        if not results:
            return StageOutcome.skip(self.name, "no_keyword_matches")
        return StageOutcome.success(self.name, rank_results(results, limit=query.limit))
