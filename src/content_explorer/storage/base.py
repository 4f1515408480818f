"""
Storage interface for content items and their embeddings.
"""

from __future__ import annotations

from typing import Protocol

from ..content import ContentItem


class ItemStore(Protocol):
    """Protocol for persistence operations used by search, recommend, and indexing."""

    def initialize(self) -> None:
        """Initialize required tables."""

    def upsert_item(self, item: ContentItem) -> None:
        """Insert or update an item's descriptor. Stored embeddings are kept."""

    def get_item(self, key: str) -> ContentItem | None:
        """Fetch an item by key."""

    def delete_item(self, key: str) -> bool:
        """Delete an item. Return True if it existed."""

    def list_items(
        self,
        *,
        has_embedding: bool | None = None,
        limit: int | None = None,
    ) -> list[ContentItem]:
        """List items newest first, optionally filtered on embedding presence."""

    def count_items(self, *, has_embedding: bool | None = None) -> int:
        """Count items, optionally filtered on embedding presence."""

    def store_embedding(
        self,
        key: str,
        embedding: list[float],
        *,
        model: str | None = None,
    ) -> bool:
        """Validate and overwrite an item's embedding. Return False for unknown keys."""

    def clear_embedding(self, key: str) -> None:
        """Remove an item's embedding."""

    def has_embeddings(self) -> bool:
        """Return True if any item has a stored embedding."""

    def interrupt(self) -> None:
        """Abort read queries that are still running."""
