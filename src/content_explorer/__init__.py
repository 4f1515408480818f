"""
ContentExplorer - semantic search and recommendations over analyzed content.

This package turns multi-modal content descriptors (document summaries, image
captions and detected objects, video scenes and actions, tabular column
statistics) into embeddings, then answers search queries and related-item
lookups with vector similarity, keyword matching, and heuristic fallbacks.

Example usage:
    >>> from content_explorer import DuckDBStorage, EmbedderRegistry, SearchEngine
    >>> storage = DuckDBStorage("items.duckdb")
    >>> engine = SearchEngine(storage, EmbedderRegistry().get("ondevice"))
    >>> response = engine.search("sunset beach", limit=5)
"""

from .config import KeywordScoreProfile, RankingConfig
from .content import (
    ContentItem,
    ContentKind,
    DocumentContent,
    ImageContent,
    TabularContent,
    TextContent,
    UnknownContent,
    VideoContent,
    descriptor_from_dict,
    descriptor_to_dict,
)
from .embeddings import (
    Embedder,
    EmbedderRegistry,
    Embedding,
    OnDeviceEmbedder,
    ProviderKind,
    RemoteEmbedder,
)
from .indexing import IndexingPipeline, ReindexReport, build_embedding_text
from .recommend import RecommendationEngine, RecommendationResult
from .search import SearchEngine, SearchResponse, SearchResult
from .similarity import cosine_similarity
from .storage import DuckDBStorage, ItemStore

__all__ = [
    # Configuration
    "KeywordScoreProfile",
    "RankingConfig",
    # Content model
    "ContentItem",
    "ContentKind",
    "DocumentContent",
    "ImageContent",
    "TabularContent",
    "TextContent",
    "UnknownContent",
    "VideoContent",
    "descriptor_from_dict",
    "descriptor_to_dict",
    # Embeddings
    "Embedder",
    "EmbedderRegistry",
    "Embedding",
    "OnDeviceEmbedder",
    "ProviderKind",
    "RemoteEmbedder",
    "cosine_similarity",
    # Indexing
    "IndexingPipeline",
    "ReindexReport",
    "build_embedding_text",
    # Search and recommendation
    "SearchEngine",
    "SearchResponse",
    "SearchResult",
    "RecommendationEngine",
    "RecommendationResult",
    # Storage
    "DuckDBStorage",
    "ItemStore",
]
