"""Storage backends for content items."""

from .base import ItemStore
from .duckdb import DuckDBStorage

__all__ = [
    "ItemStore",
    "DuckDBStorage",
]
