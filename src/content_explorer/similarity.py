"""
Vector similarity.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .errors import DimensionMismatch


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in [-1, 1].

    Returns 0 for vectors of different lengths (vectors from different
    provider/model pairs are not comparable) and when either has zero norm.
    Callers that need to log the mismatch should use ``check_dimensions``.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(vec_a, vec_b) / (norm_a * norm_b), -1.0, 1.0))


def check_dimensions(a: Sequence[float], b: Sequence[float]) -> None:
    """Raise ``DimensionMismatch`` when *a* and *b* cannot be compared."""
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
