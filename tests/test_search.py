"""Tests for the search engine and its fallback ladder."""

from __future__ import annotations

import threading
import time

import pytest

from conftest import FakeEmbedder
from content_explorer.concurrency import EMBEDDING_WORKERS
from content_explorer.content import ContentItem, DocumentContent, ImageContent
from content_explorer.embeddings import Embedding
from content_explorer.errors import StoreQueryFailed
from content_explorer.search import SearchEngine
from content_explorer.storage import DuckDBStorage


class _FailingStorage:
    """Delegates to a real store but fails selected list queries."""

    def __init__(self, inner: DuckDBStorage, fail_on: set[bool | None]) -> None:
        self.inner = inner
        self.fail_on = fail_on

    def list_items(self, *, has_embedding=None, limit=None):
        if has_embedding in self.fail_on:
            raise RuntimeError("IO Error: database is locked")
        return self.inner.list_items(has_embedding=has_embedding, limit=limit)


class _SlowEmbedder:
    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        time.sleep(0.5)
        return Embedding(vector=[1.0, 0.0, 0.0], model="slow")


class _RaisingEmbedder:
    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        raise RuntimeError("provider exploded")


class _HungEmbedder:
    """Never answers until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        self.release.wait()
        return None


class _BlockingStorage:
    """list_items blocks until interrupted, like a long-running DuckDB query."""

    def __init__(self) -> None:
        self.interrupted = threading.Event()

    def list_items(self, *, has_embedding=None, limit=None):
        self.interrupted.wait(5.0)
        raise StoreQueryFailed("INTERRUPT Error: Interrupted!")

    def interrupt(self) -> None:
        self.interrupted.set()


def _add(storage: DuckDBStorage, key: str, descriptor, embedding=None) -> None:
    storage.upsert_item(ContentItem(key=key, descriptor=descriptor))
    if embedding is not None:
        storage.store_embedding(key, embedding, model="fake:test")


@pytest.fixture()
def mixed_store(storage: DuckDBStorage) -> DuckDBStorage:
    _add(storage, "photos/sunset.jpg", ImageContent(summary="Sunset over the ocean"), [1.0, 0.0, 0.0])
    _add(storage, "photos/forest.jpg", ImageContent(summary="Pine forest"), [0.0, 1.0, 0.0])
    _add(storage, "notes/sunset_notes.txt", DocumentContent(summary="sunset times"))
    _add(storage, "notes/groceries.txt", DocumentContent(summary="milk and eggs"))
    return storage


def test_budget_filename_found_by_keyword_fallback(storage: DuckDBStorage) -> None:
    _add(storage, "budget_report.pdf", DocumentContent(summary="Annual figures"))

    response = SearchEngine(storage, None).search("budget")

    assert response.vector_search is False
    assert [r.key for r in response.results] == ["budget_report.pdf"]
    assert response.results[0].match_type == "keyword"
    assert response.results[0].score >= 0.6
    assert [(s.stage, s.status) for s in response.stages] == [
        ("hybrid", "skip"),
        ("keyword_fallback", "success"),
    ]


def test_vector_results_are_supplemented_with_unembedded_matches(
    mixed_store: DuckDBStorage,
) -> None:
    embedder = FakeEmbedder({"sunset": [1.0, 0.0, 0.0]})

    response = SearchEngine(mixed_store, embedder).search("sunset")

    assert response.vector_search is True
    assert [r.key for r in response.results] == [
        "photos/sunset.jpg",
        "notes/sunset_notes.txt",
    ]
    top, supplement = response.results
    assert top.match_type == "hybrid"
    assert top.similarity == pytest.approx(1.0)
    assert top.score == pytest.approx(1.0 + 0.30 + 0.20)
    assert supplement.match_type == "keyword"
    assert supplement.score == pytest.approx(0.6)
    assert embedder.calls == [("sunset", True)]


def test_vector_flag_is_false_when_only_supplement_matches(mixed_store: DuckDBStorage) -> None:
    embedder = FakeEmbedder(default=[0.0, 0.0, 1.0])

    response = SearchEngine(mixed_store, embedder).search("groceries")

    assert response.stages[0].stage == "hybrid"
    assert response.stages[0].succeeded
    assert response.vector_search is False
    assert [r.key for r in response.results] == ["notes/groceries.txt"]


def test_results_are_deduplicated(mixed_store: DuckDBStorage) -> None:
    embedder = FakeEmbedder(default=[0.6, 0.8, 0.0])

    response = SearchEngine(mixed_store, embedder).search("o", limit=10)

    keys = [r.key for r in response.results]
    assert len(keys) == len(set(keys))
    assert response.count == len(keys)


def test_limit_is_applied(mixed_store: DuckDBStorage) -> None:
    embedder = FakeEmbedder(default=[0.6, 0.8, 0.0])

    response = SearchEngine(mixed_store, embedder).search("photos", limit=1)

    assert response.count == 1


def test_low_similarity_without_keywords_is_dropped(mixed_store: DuckDBStorage) -> None:
    embedder = FakeEmbedder({"sunset": [1.0, 0.0, 0.0]})

    response = SearchEngine(mixed_store, embedder).search("sunset")

    assert "photos/forest.jpg" not in [r.key for r in response.results]


def test_vector_store_failure_falls_back_to_keywords(mixed_store: DuckDBStorage) -> None:
    flaky = _FailingStorage(mixed_store, fail_on={True})
    embedder = FakeEmbedder({"sunset": [1.0, 0.0, 0.0]})

    response = SearchEngine(flaky, embedder).search("sunset")

    assert response.vector_search is False
    assert response.stages[0].status == "fail"
    assert response.stages[0].reason == "store_query_failed"
    assert {r.key for r in response.results} == {"photos/sunset.jpg", "notes/sunset_notes.txt"}
    assert all(r.match_type == "keyword" for r in response.results)


def test_supplement_failure_keeps_vector_results(mixed_store: DuckDBStorage) -> None:
    flaky = _FailingStorage(mixed_store, fail_on={False})
    embedder = FakeEmbedder({"sunset": [1.0, 0.0, 0.0]})

    response = SearchEngine(flaky, embedder).search("sunset")

    assert response.vector_search is True
    assert [r.key for r in response.results] == ["photos/sunset.jpg"]


def test_total_store_failure_returns_empty(mixed_store: DuckDBStorage) -> None:
    flaky = _FailingStorage(mixed_store, fail_on={True, False, None})

    response = SearchEngine(flaky, FakeEmbedder(default=[1.0, 0.0, 0.0])).search("sunset")

    assert response.results == []
    assert response.vector_search is False


def test_embedding_failures_degrade_to_keyword_search(mixed_store: DuckDBStorage) -> None:
    for embedder in (FakeEmbedder(), _RaisingEmbedder()):
        response = SearchEngine(mixed_store, embedder).search("groceries")

        assert response.vector_search is False
        assert [r.key for r in response.results] == ["notes/groceries.txt"]


def test_embedding_timeout_degrades_to_keyword_search(mixed_store: DuckDBStorage) -> None:
    engine = SearchEngine(mixed_store, _SlowEmbedder(), timeout=0.05)

    response = engine.search("groceries")

    assert response.vector_search is False
    assert [r.key for r in response.results] == ["notes/groceries.txt"]


def test_mismatched_dimensions_score_zero(storage: DuckDBStorage) -> None:
    _add(storage, "a.jpg", ImageContent(summary="red car"), [1.0] * 4)
    embedder = FakeEmbedder(default=[1.0, 0.0, 0.0])

    response = SearchEngine(storage, embedder).search("car")

    assert [r.key for r in response.results] == ["a.jpg"]
    assert response.results[0].similarity == 0.0
    assert response.results[0].match_type == "keyword"


def test_no_matches_anywhere_returns_empty(mixed_store: DuckDBStorage) -> None:
    response = SearchEngine(mixed_store, None).search("zebra")

    assert response.results == []
    assert response.count == 0


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_query_is_rejected(storage: DuckDBStorage, query) -> None:
    with pytest.raises(ValueError):
        SearchEngine(storage, None).search(query)


def test_limit_must_be_positive(storage: DuckDBStorage) -> None:
    with pytest.raises(ValueError):
        SearchEngine(storage, None).search("x", limit=0)


def test_hung_provider_does_not_block_keyword_fallback(storage: DuckDBStorage) -> None:
    _add(storage, "budget_report.pdf", DocumentContent(summary="Annual figures"))
    hung = _HungEmbedder()
    try:
        for _ in range(EMBEDDING_WORKERS + 1):
            response = SearchEngine(storage, hung, timeout=0.3).search("budget")
            assert [r.key for r in response.results] == ["budget_report.pdf"]

        response = SearchEngine(storage, None, timeout=0.3).search("budget")
    finally:
        hung.release.set()

    assert [r.key for r in response.results] == ["budget_report.pdf"]
    assert response.vector_search is False


def test_timed_out_store_query_is_interrupted() -> None:
    store = _BlockingStorage()

    response = SearchEngine(store, None, timeout=0.1).search("budget")

    assert response.results == []
    assert store.interrupted.is_set()
    assert response.stages[-1].reason == "store_timeout"
