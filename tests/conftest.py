"""Shared fixtures and fakes for the test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from content_explorer.embeddings import Embedding
from content_explorer.storage import DuckDBStorage


class FakeEmbedder:
    """Returns a fixed vector for the first registered substring found in the text."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        *,
        default: list[float] | None = None,
        model: str = "fake:test",
    ) -> None:
        self.vectors = vectors or {}
        self.default = default
        self.model = model
        self.calls: list[tuple[str, bool]] = []

    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        self.calls.append((text, query))
        lowered = text.lower()
        for needle, vector in self.vectors.items():
            if needle in lowered:
                return Embedding(vector=list(vector), model=self.model)
        if self.default is None:
            return None
        return Embedding(vector=list(self.default), model=self.model)


class FakeSentenceModel:
    """Stands in for a sentence-transformers model; vectors follow topic words.

    Text without any topic word maps onto a separate axis, so it shares no
    similarity with topical text.
    """

    topics = ("beach", "budget", "dog")

    def __init__(self, name: str) -> None:
        self.name = name
        self.encoded: list[str] = []

    def encode(self, text: str, **kwargs: Any) -> list[float]:
        self.encoded.append(text)
        lowered = text.lower()
        vector = [1.0 if topic in lowered else 0.0 for topic in self.topics]
        return vector + [0.0 if any(vector) else 1.0]


def fake_loader(name: str) -> FakeSentenceModel:
    return FakeSentenceModel(name)


@pytest.fixture()
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "items.duckdb")


@pytest.fixture()
def storage(db_path: str):
    store = DuckDBStorage(db_path)
    yield store
    store.close()
