"""
Error taxonomy for the embedding, search, and recommendation paths.

These are raised inside components and recovered by the next pipeline stage.
Callers of the engines only ever see ``ValueError`` for malformed input.
"""

from __future__ import annotations


class ContentExplorerError(Exception):
    """Base class for recoverable engine failures."""


class ProviderUnavailable(ContentExplorerError):
    """No credential configured or no model could be loaded."""


class InvalidEmbedding(ContentExplorerError, ValueError):
    """Vector is empty, not numeric, or contains non-finite values."""


class DimensionMismatch(ContentExplorerError):
    """Two vectors of different lengths were compared."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimension mismatch: {left} != {right}")
        self.left = left
        self.right = right


class NoContentAvailable(ContentExplorerError):
    """Descriptor yields no embeddable text."""


class StoreQueryFailed(ContentExplorerError):
    """Persisted store access raised an error."""


class StageTimeout(ContentExplorerError):
    """An external call did not finish within its time budget."""
