"""Tests for ingestion and reindexing."""

from __future__ import annotations

import math

from conftest import FakeEmbedder
from content_explorer.content import ContentItem, DocumentContent, ImageContent
from content_explorer.embeddings import Embedding
from content_explorer.indexing import NO_CONTENT_SENTINEL, IndexingPipeline
from content_explorer.storage import DuckDBStorage


class _NanEmbedder:
    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        return Embedding(vector=[math.nan, 1.0], model="broken")


def _by_key(report) -> dict:
    return {outcome.key: outcome for outcome in report.outcomes}


def test_reindex_skips_items_without_content(storage: DuckDBStorage) -> None:
    storage.upsert_item(ContentItem(key="empty.pdf", descriptor=DocumentContent(summary="")))
    embedder = FakeEmbedder(default=[1.0, 0.0])

    report = IndexingPipeline(storage).reindex(embedder)

    outcome = _by_key(report)["empty.pdf"]
    assert outcome.status == "skipped"
    assert outcome.reason == "no_content"
    assert embedder.calls == []


def test_reindex_reports_updated_and_failed(storage: DuckDBStorage) -> None:
    storage.upsert_item(ContentItem(key="beach.jpg", descriptor=ImageContent(caption="beach")))
    storage.upsert_item(ContentItem(key="city.jpg", descriptor=ImageContent(caption="city")))
    storage.upsert_item(ContentItem(key="blank.jpg", descriptor=ImageContent()))
    embedder = FakeEmbedder({"beach": [0.0, 1.0, 0.0]})

    report = IndexingPipeline(storage, max_workers=2).reindex(embedder)

    outcomes = _by_key(report)
    assert outcomes["beach.jpg"].status == "updated"
    assert outcomes["beach.jpg"].dim == 3
    assert outcomes["city.jpg"].status == "failed"
    assert outcomes["city.jpg"].reason == "embedding_generation_failed"
    assert outcomes["blank.jpg"].status == "skipped"
    assert report.summary == {"total": 3, "updated": 1, "skipped": 1, "failed": 1}

    stored = storage.get_item("beach.jpg")
    assert stored is not None
    assert stored.embedding == [0.0, 1.0, 0.0]
    assert stored.embedding_model == "fake:test"
    assert storage.get_item("city.jpg").embedding is None
    assert all(text != NO_CONTENT_SENTINEL for text, _ in embedder.calls)


def test_reindex_overwrites_existing_vectors(storage: DuckDBStorage) -> None:
    storage.upsert_item(
        ContentItem(
            key="report.pdf",
            descriptor=DocumentContent(summary="budget"),
            embedding=[1.0, 0.0, 0.0],
            embedding_model="old",
        )
    )

    IndexingPipeline(storage).reindex(FakeEmbedder(default=[0.2] * 5, model="new"))

    stored = storage.get_item("report.pdf")
    assert stored is not None
    assert stored.embedding == [0.2] * 5
    assert stored.embedding_model == "new"


def test_reindex_rejects_invalid_vectors(storage: DuckDBStorage) -> None:
    storage.upsert_item(ContentItem(key="a.pdf", descriptor=DocumentContent(summary="a")))

    report = IndexingPipeline(storage).reindex(_NanEmbedder())

    outcome = _by_key(report)["a.pdf"]
    assert outcome.status == "failed"
    assert outcome.reason == "invalid_embedding"
    assert not storage.has_embeddings()


def test_reindex_empty_store(storage: DuckDBStorage) -> None:
    report = IndexingPipeline(storage).reindex(FakeEmbedder(default=[1.0]))

    assert report.outcomes == []
    assert report.summary["total"] == 0


def test_ingest_stores_item_and_embedding(storage: DuckDBStorage) -> None:
    pipeline = IndexingPipeline(storage)
    item = ContentItem(key="notes.txt", descriptor=DocumentContent(summary="budget notes"))

    result = pipeline.ingest(item, FakeEmbedder(default=[0.6, 0.8]))

    assert result.embedded
    assert result.dim == 2
    assert storage.get_item("notes.txt").embedding == [0.6, 0.8]


def test_ingest_without_embedder_or_content(storage: DuckDBStorage) -> None:
    pipeline = IndexingPipeline(storage)
    embedder = FakeEmbedder(default=[1.0])

    disabled = pipeline.ingest(
        ContentItem(key="a.txt", descriptor=DocumentContent(summary="a")), None
    )
    empty = pipeline.ingest(ContentItem(key="b.txt", descriptor=DocumentContent()), embedder)
    failed = pipeline.ingest(
        ContentItem(key="c.txt", descriptor=DocumentContent(summary="c")), FakeEmbedder()
    )

    assert (disabled.embedded, disabled.reason) == (False, "embeddings_disabled")
    assert (empty.embedded, empty.reason) == (False, "no_content")
    assert (failed.embedded, failed.reason) == (False, "embedding_generation_failed")
    assert embedder.calls == []
    assert storage.count_items() == 3
    assert not storage.has_embeddings()


def test_ingest_rejects_invalid_vector(storage: DuckDBStorage) -> None:
    result = IndexingPipeline(storage).ingest(
        ContentItem(key="a.txt", descriptor=DocumentContent(summary="a")), _NanEmbedder()
    )

    assert result.reason == "invalid_embedding"
    assert storage.get_item("a.txt") is not None
