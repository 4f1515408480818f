"""
Scoring and ranking helpers for search results.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Iterable, Literal

from ..config import KeywordScoreProfile, RankingConfig
from ..content import (
    ContentItem,
    DocumentContent,
    ImageContent,
    TabularContent,
    TextContent,
    VideoContent,
)

MatchType = Literal["vector", "keyword", "hybrid"]


@dataclass(frozen=True)
class KeywordMatches:
    """Which descriptor field categories contain the query as a substring."""

    filename: bool = False
    summary: bool = False
    highlights: bool = False
    tags: bool = False
    objects: bool = False
    scene: bool = False
    caption: bool = False
    ocr_text: bool = False
    scenes: bool = False
    actions: bool = False
    columns: bool = False
    stat_keys: bool = False

    @property
    def matched_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in fields(self) if getattr(self, f.name))

    @property
    def any(self) -> bool:
        return bool(self.matched_fields)

    @property
    def count(self) -> int:
        return len(self.matched_fields)


@dataclass(frozen=True)
class SearchResult:
    """Ranked search hit. Scores are only comparable within one search."""

    item: ContentItem
    score: float
    match_type: MatchType
    similarity: float = 0.0
    matched_fields: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return self.item.key


@dataclass(frozen=True)
class HybridScore:
    score: float
    match_type: MatchType
    keep: bool
    matches: KeywordMatches


def _contains(value: str | None, needle: str) -> bool:
    return value is not None and needle in value.lower()


def _any_contains(values: Iterable[str], needle: str) -> bool:
    return any(needle in value.lower() for value in values)


def match_keywords(item: ContentItem, query: str) -> KeywordMatches:
    """Case-insensitive substring match of *query* against every field category."""
    needle = query.strip().lower()
    if not needle:
        return KeywordMatches()

    descriptor = item.descriptor
    found: dict[str, bool] = {
        "filename": needle in item.key.lower(),
        "summary": _contains(descriptor.summary, needle),
        "tags": _any_contains(descriptor.tags, needle),
    }
    if isinstance(descriptor, (TextContent, DocumentContent)):
        found["highlights"] = _any_contains(descriptor.highlights, needle)
    elif isinstance(descriptor, ImageContent):
        found["objects"] = _any_contains(descriptor.objects, needle)
        found["scene"] = _contains(descriptor.scene, needle)
        found["caption"] = _contains(descriptor.caption, needle)
        found["ocr_text"] = _contains(descriptor.ocr_text, needle)
    elif isinstance(descriptor, VideoContent):
        found["caption"] = _contains(descriptor.caption, needle)
        found["scenes"] = _any_contains((s.description for s in descriptor.scenes), needle)
        found["actions"] = _any_contains(descriptor.actions, needle)
    elif isinstance(descriptor, TabularContent):
        found["columns"] = _any_contains(descriptor.columns, needle)
        found["stat_keys"] = _any_contains(descriptor.numeric_stats.keys(), needle)
    return KeywordMatches(**found)


def hybrid_score(
    vector_similarity: float,
    item: ContentItem,
    query: str,
    config: RankingConfig,
) -> HybridScore:
    """
    Fuse vector similarity with additive keyword bonuses.

    Keyword-only matches are kept even when the fused score falls under the
    keep threshold.
    """
    matches = match_keywords(item, query)
    score = vector_similarity
    for name in matches.matched_fields:
        score += config.field_bonuses.get(name, 0.0)

    if vector_similarity > 0 and matches.any:
        match_type: MatchType = "hybrid"
    elif vector_similarity > 0:
        match_type = "vector"
    else:
        match_type = "keyword"

    keep = score > config.keep_threshold or matches.any
    return HybridScore(score=score, match_type=match_type, keep=keep, matches=matches)


def keyword_only_score(matches: KeywordMatches, profile: KeywordScoreProfile) -> float:
    """Score for an item matched without any vector signal."""
    if matches.filename and matches.summary:
        return profile.filename_and_summary
    if matches.filename:
        return profile.filename
    return profile.base + matches.count * profile.per_match


def rank_results(results: Iterable[SearchResult], *, limit: int) -> list[SearchResult]:
    """Deduplicate by item key (first occurrence wins), sort, and apply limit."""
    unique: dict[str, SearchResult] = {}
    for result in results:
        unique.setdefault(result.key, result)
    ordered = sorted(
        unique.values(),
        key=lambda r: (-r.score, -r.similarity, r.key),
    )
    return ordered[: max(limit, 1)]
