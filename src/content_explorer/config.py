"""
Configuration helpers for storage location, timeouts, and ranking thresholds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path


DEFAULT_DB_PATH = "~/.content_explorer/items.duckdb"
ENV_DB_PATH = "CONTENT_EXPLORER_DB_PATH"
ENV_TIMEOUT = "CONTENT_EXPLORER_TIMEOUT"
DEFAULT_TIMEOUT_SECONDS = 30.0


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) CONTENT_EXPLORER_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_timeout(override: float | None = None) -> float:
    """Seconds allowed for a single embedding call or store query."""
    if override is not None:
        return override
    raw = os.getenv(ENV_TIMEOUT)
    if raw:
        try:
            return float(raw)
        except ValueError:
            pass
    return DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class KeywordScoreProfile:
    """Score assigned to keyword-only matches (items scored without vectors)."""

    base: float
    per_match: float
    filename: float
    filename_and_summary: float


_DEFAULT_FIELD_BONUSES: dict[str, float] = {
    "filename": 0.30,
    "summary": 0.20,
    "highlights": 0.15,
    "tags": 0.10,
    "objects": 0.15,
    "scene": 0.10,
    "caption": 0.15,
    "ocr_text": 0.10,
    "scenes": 0.15,
    "actions": 0.15,
    "columns": 0.10,
    "stat_keys": 0.10,
}


@dataclass(frozen=True)
class RankingConfig:
    """
    Empirically tuned thresholds and bonuses.

    Scores are only comparable within one invocation, so any change here must
    be applied consistently across search and recommendation.
    """

    vector_gate: float = 0.15
    heuristic_gate: float = 3.0
    keep_threshold: float = 0.05
    max_recommendations: int = 5
    field_bonuses: dict[str, float] = field(
        default_factory=lambda: dict(_DEFAULT_FIELD_BONUSES)
    )
    supplement_profile: KeywordScoreProfile = KeywordScoreProfile(
        base=0.4, per_match=0.03, filename=0.5, filename_and_summary=0.6
    )
    fallback_profile: KeywordScoreProfile = KeywordScoreProfile(
        base=0.5, per_match=0.05, filename=0.6, filename_and_summary=0.7
    )
    vector_page_size: int = 200
    supplement_page_size: int = 50

    @classmethod
    def from_env(cls) -> "RankingConfig":
        config = cls()
        overrides: dict[str, float] = {}
        for attr, env_name in (
            ("vector_gate", "CONTENT_EXPLORER_VECTOR_GATE"),
            ("heuristic_gate", "CONTENT_EXPLORER_HEURISTIC_GATE"),
            ("keep_threshold", "CONTENT_EXPLORER_KEEP_THRESHOLD"),
        ):
            raw = os.getenv(env_name)
            if raw is None:
                continue
            try:
                overrides[attr] = float(raw)
            except ValueError:
                raise ValueError(f"{env_name} must be a number, got {raw!r}") from None
        return replace(config, **overrides) if overrides else config
