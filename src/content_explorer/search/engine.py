"""
Search orchestration over the vector, keyword-supplement, and keyword-fallback
stages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..concurrency import bounded_call
from ..config import RankingConfig
from ..embeddings import Embedder
from ..errors import StageTimeout
from ..storage import ItemStore
from .ranker import SearchResult
from .stages import (
    HybridStage,
    KeywordFallbackStage,
    KeywordSupplementStage,
    SearchQuery,
    SearchStage,
    StageOutcome,
    VectorStage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResponse:
    """Results of one search plus which path produced them."""

    query: str
    results: list[SearchResult]
    vector_search: bool
    stages: list[StageOutcome] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.results)


class SearchEngine:
    """Hybrid semantic + keyword search with an ordered fallback ladder."""

    def __init__(
        self,
        storage: ItemStore,
        embedder: Embedder | None,
        *,
        config: RankingConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        self.storage = storage
        self.embedder = embedder
        self.config = config or RankingConfig()
        self._timeout = timeout
        self._hybrid = HybridStage(
            VectorStage(storage, self.config, timeout=timeout),
            KeywordSupplementStage(storage, self.config, timeout=timeout),
        )
        self._fallback = KeywordFallbackStage(storage, self.config, timeout=timeout)

    @property
    def stages(self) -> list[SearchStage]:
        return [self._hybrid, self._fallback]

    def search(self, query: str, *, limit: int = 10) -> SearchResponse:
        """Run the ladder; never raises for infrastructure failures."""
        if query is None or not query.strip():
            raise ValueError("Query must not be empty.")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        text = query.strip()
        embedding = self._embed_query(text)
        search_query = SearchQuery(text=text, limit=limit, embedding=embedding)

        outcomes: list[StageOutcome] = []
        for stage in self.stages:
            outcome = stage.run(search_query)
            outcomes.append(outcome)
            if outcome.succeeded:
                logger.info(
                    "Search %r answered by %s stage with %d results",
                    text,
                    outcome.stage,
                    len(outcome.results),
                )
                return SearchResponse(
                    query=text,
                    results=list(outcome.results),
                    vector_search=outcome.vector_contributed,
                    stages=outcomes,
                )
            logger.info(
                "Search stage %s did not answer (%s: %s)",
                outcome.stage,
                outcome.status,
                outcome.reason,
            )

        return SearchResponse(query=text, results=[], vector_search=False, stages=outcomes)

    def _embed_query(self, text: str) -> list[float] | None:
        if self.embedder is None:
            return None
        try:
            embedding = bounded_call(
                self.embedder.generate, text, query=True, timeout=self._timeout
            )
        except StageTimeout:
            logger.warning("Query embedding timed out; continuing with keyword search")
            return None
        except Exception as exc:
            logger.warning("Embedding generation failed, falling back to keyword search: %s", exc)
            return None
        if embedding is None:
            logger.info("Proceeding with keyword-only search")
            return None
        return embedding.vector
