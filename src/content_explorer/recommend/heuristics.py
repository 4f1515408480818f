"""
Multi-factor heuristic relatedness score used when vectors are unavailable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from ..content import (
    ContentDescriptor,
    DocumentContent,
    ImageContent,
    TabularContent,
    TextContent,
    VideoContent,
    is_document_like,
)

_DOCUMENT_TYPES = (TextContent, DocumentContent)

_WORD_RE = re.compile(r"[a-z0-9]+")

# Words longer than three characters that carry no topical signal.
_STOPWORDS = frozenset(
    {
        "about", "after", "also", "been", "before", "being", "both", "contains",
        "could", "does", "each", "file", "from", "have", "here", "into", "more",
        "most", "only", "other", "over", "some", "such", "than", "that", "their",
        "them", "then", "there", "these", "they", "this", "those", "through",
        "very", "were", "what", "when", "where", "which", "while", "with",
        "would", "your",
    }
)


@dataclass(frozen=True)
class HeuristicWeights:
    same_kind: float = 0.5
    cross_modal_object: float = 2.0
    cross_modal_video_term: float = 1.5
    shared_tag: float = 1.5
    shared_object: float = 2.0
    shared_summary_word: float = 2.0
    summary_overlap_bonus: float = 2.0
    summary_overlap_min: int = 3
    document_summary_word: float = 1.0
    document_highlight_word: float = 2.5
    image_same_scene: float = 1.5
    image_scene_word: float = 1.0
    image_caption_word: float = 1.0
    video_shared_action: float = 2.0
    video_scene_word: float = 1.0
    tabular_shared_column: float = 1.5
    analyzed_status: float = 0.5


def keywords(text: str | None) -> set[str]:
    """Lowercased words longer than three characters, minus stopwords."""
    if not text:
        return set()
    return {
        word
        for word in _WORD_RE.findall(text.lower())
        if len(word) > 3 and word not in _STOPWORDS
    }


def _keywords_of(values: Iterable[str]) -> set[str]:
    found: set[str] = set()
    for value in values:
        found |= keywords(value)
    return found


def _normalized(values: Iterable[str]) -> set[str]:
    return {v.strip().lower() for v in values if v.strip()}


def _video_terms(video: VideoContent) -> set[str]:
    return _keywords_of([s.description for s in video.scenes]) | _keywords_of(video.actions)


def _cross_modal(
    document: ContentDescriptor,
    other: ContentDescriptor,
    weights: HeuristicWeights,
) -> float:
    summary = (document.summary or "").lower()
    if not summary:
        return 0.0
    if isinstance(other, ImageContent):
        score = 0.0
        for obj in _normalized(other.objects):
            if re.search(rf"\b{re.escape(obj)}\b", summary):
                score += weights.cross_modal_object
        return score
    if isinstance(other, VideoContent):
        shared = keywords(summary) & _video_terms(other)
        return len(shared) * weights.cross_modal_video_term
    return 0.0


def _same_kind_depth(
    target: ContentDescriptor,
    candidate: ContentDescriptor,
    weights: HeuristicWeights,
) -> float:
    if isinstance(target, ImageContent) and isinstance(candidate, ImageContent):
        score = 0.0
        if target.scene and candidate.scene:
            if target.scene.strip().lower() == candidate.scene.strip().lower():
                score += weights.image_same_scene
            else:
                shared_scene = keywords(target.scene) & keywords(candidate.scene)
                score += len(shared_scene) * weights.image_scene_word
        shared_caption = keywords(target.caption) & keywords(candidate.caption)
        score += len(shared_caption) * weights.image_caption_word
        return score

    if isinstance(target, _DOCUMENT_TYPES) and isinstance(candidate, _DOCUMENT_TYPES):
        shared_summary = keywords(target.summary) & keywords(candidate.summary)
        shared_highlights = _keywords_of(target.highlights) & _keywords_of(candidate.highlights)
        return (
            len(shared_summary) * weights.document_summary_word
            + len(shared_highlights) * weights.document_highlight_word
        )

    if isinstance(target, TabularContent) and isinstance(candidate, TabularContent):
        shared_columns = _normalized(target.columns) & _normalized(candidate.columns)
        return len(shared_columns) * weights.tabular_shared_column

    if isinstance(target, VideoContent) and isinstance(candidate, VideoContent):
        shared_actions = _normalized(target.actions) & _normalized(candidate.actions)
        shared_scenes = _keywords_of(s.description for s in target.scenes) & _keywords_of(
            s.description for s in candidate.scenes
        )
        return (
            len(shared_actions) * weights.video_shared_action
            + len(shared_scenes) * weights.video_scene_word
        )

    return 0.0


def heuristic_score(
    target: ContentDescriptor,
    candidate: ContentDescriptor,
    weights: HeuristicWeights | None = None,
) -> float:
    """Accumulate relatedness points between two descriptors."""
    w = weights or HeuristicWeights()
    score = 0.0

    if target.kind is candidate.kind:
        score += w.same_kind

    if is_document_like(target) and not is_document_like(candidate):
        score += _cross_modal(target, candidate, w)
    elif is_document_like(candidate) and not is_document_like(target):
        score += _cross_modal(candidate, target, w)

    shared_tags = _normalized(target.tags) & _normalized(candidate.tags)
    score += len(shared_tags) * w.shared_tag

    if isinstance(target, ImageContent) and isinstance(candidate, ImageContent):
        shared_objects = _normalized(target.objects) & _normalized(candidate.objects)
        score += len(shared_objects) * w.shared_object

    shared_words = keywords(target.summary) & keywords(candidate.summary)
    score += len(shared_words) * w.shared_summary_word
    if len(shared_words) >= w.summary_overlap_min:
        score += w.summary_overlap_bonus

    score += _same_kind_depth(target, candidate, w)

    if candidate.status == "analyzed":
        score += w.analyzed_status

    return score
