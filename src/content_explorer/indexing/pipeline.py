"""
Embedding generation and storage for ingestion and reindexing.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Literal

from ..concurrency import bounded_call
from ..content import ContentItem
from ..embeddings import Embedder, Embedding
from ..errors import InvalidEmbedding, NoContentAvailable, StageTimeout
from ..storage import ItemStore
from .text import require_embedding_text

logger = logging.getLogger(__name__)

ReindexStatus = Literal["updated", "skipped", "failed"]


@dataclass(frozen=True)
class ReindexOutcome:
    """Per-item result of a reindex run."""

    key: str
    status: ReindexStatus
    reason: str | None = None
    dim: int | None = None


@dataclass(frozen=True)
class ReindexReport:
    """Summary output for a reindex run."""

    outcomes: list[ReindexOutcome] = field(default_factory=list)

    def count(self, status: ReindexStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.outcomes),
            "updated": self.count("updated"),
            "skipped": self.count("skipped"),
            "failed": self.count("failed"),
        }


@dataclass(frozen=True)
class IngestResult:
    """Outcome of storing one item and its embedding."""

    key: str
    embedded: bool
    reason: str | None = None
    dim: int | None = None


class IndexingPipeline:
    """Generate and persist item embeddings."""

    def __init__(
        self,
        storage: ItemStore,
        *,
        max_workers: int = 4,
        timeout: float | None = None,
    ) -> None:
        self.storage = storage
        self._max_workers = max_workers
        self._timeout = timeout

    def ingest(self, item: ContentItem, embedder: Embedder | None) -> IngestResult:
        """Store *item* and, when it has embeddable text, its embedding."""
        self.storage.upsert_item(item)
        if embedder is None:
            return IngestResult(key=item.key, embedded=False, reason="embeddings_disabled")

        try:
            text = require_embedding_text(item)
        except NoContentAvailable:
            logger.warning("No embedding text available for %s (%s)", item.key, item.kind.value)
            return IngestResult(key=item.key, embedded=False, reason="no_content")

        embedding = self._generate(embedder, item.key, text)
        if embedding is None:
            return IngestResult(
                key=item.key, embedded=False, reason="embedding_generation_failed"
            )
        try:
            self.storage.store_embedding(item.key, embedding.vector, model=embedding.model)
        except InvalidEmbedding as exc:
            logger.error("Invalid embedding for %s: %s", item.key, exc)
            return IngestResult(key=item.key, embedded=False, reason="invalid_embedding")
        return IngestResult(key=item.key, embedded=True, dim=embedding.dim)

    def reindex(self, embedder: Embedder) -> ReindexReport:
        """Regenerate every item's embedding, replacing stored vectors."""
        items = self.storage.list_items()

        # Pass 1: build texts, skipping items without embeddable content
        outcomes: dict[str, ReindexOutcome] = {}
        pending: list[tuple[str, str]] = []
        for item in items:
            try:
                pending.append((item.key, require_embedding_text(item)))
            except NoContentAvailable:
                outcomes[item.key] = ReindexOutcome(
                    key=item.key, status="skipped", reason="no_content"
                )

        # Pass 2: parallel embedding generation
        generated = self._generate_batch(embedder, pending)

        # Pass 3: sequential writes
        for key, _ in pending:
            embedding = generated.get(key)
            if embedding is None:
                outcomes[key] = ReindexOutcome(
                    key=key, status="failed", reason="embedding_generation_failed"
                )
                continue
            try:
                stored = self.storage.store_embedding(key, embedding.vector, model=embedding.model)
            except InvalidEmbedding as exc:
                logger.error("Invalid embedding for %s: %s", key, exc)
                outcomes[key] = ReindexOutcome(key=key, status="failed", reason="invalid_embedding")
                continue
            except Exception as exc:
                logger.error("Failed to store embedding for %s: %s", key, exc)
                outcomes[key] = ReindexOutcome(key=key, status="failed", reason="store_write_failed")
                continue
            if not stored:
                outcomes[key] = ReindexOutcome(key=key, status="failed", reason="store_write_failed")
                continue
            outcomes[key] = ReindexOutcome(key=key, status="updated", dim=embedding.dim)

        report = ReindexReport(outcomes=[outcomes[item.key] for item in items])
        logger.info("Reindex finished: %s", report.summary)
        return report

    def _generate_batch(
        self,
        embedder: Embedder,
        pending: list[tuple[str, str]],
    ) -> dict[str, Embedding | None]:
        if not pending:
            return {}

        def _embed_one(entry: tuple[str, str]) -> tuple[str, Embedding | None]:
            key, text = entry
            return key, self._generate(embedder, key, text)

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            return dict(executor.map(_embed_one, pending))

    def _generate(self, embedder: Embedder, key: str, text: str) -> Embedding | None:
        try:
            return bounded_call(embedder.generate, text, timeout=self._timeout)
        except StageTimeout:
            return None
        except Exception as exc:
            logger.error("Embedding generation raised for %s: %s", key, exc)
            return None
