"""Embedding text construction and embedding persistence."""

from .pipeline import IndexingPipeline, IngestResult, ReindexOutcome, ReindexReport
from .text import (
    NO_CONTENT_SENTINEL,
    build_embedding_text,
    has_embeddable_text,
    require_embedding_text,
)

__all__ = [
    "IndexingPipeline",
    "IngestResult",
    "ReindexOutcome",
    "ReindexReport",
    "NO_CONTENT_SENTINEL",
    "build_embedding_text",
    "has_embeddable_text",
    "require_embedding_text",
]
