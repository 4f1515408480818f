"""
Embedding text construction from content descriptors.
"""

from __future__ import annotations

from ..content import (
    ContentDescriptor,
    ContentItem,
    DocumentContent,
    ImageContent,
    TabularContent,
    TextContent,
    UnknownContent,
    VideoContent,
)
from ..embeddings import MAX_EMBED_CHARS
from ..errors import NoContentAvailable

NO_CONTENT_SENTINEL = "No content available"


def build_embedding_text(source: ContentItem | ContentDescriptor) -> str:
    """
    Combine descriptor fields into one text blob for embedding.

    Fields are emitted in a fixed priority order: summary, highlights, tags,
    objects, caption, scene, OCR text, video scenes and actions, tabular
    columns and statistics, then a trailing ``file type: <kind>`` token.
    Returns ``NO_CONTENT_SENTINEL`` when no field contributes text; callers
    must skip embedding in that case.
    """
    descriptor = source.descriptor if isinstance(source, ContentItem) else source
    parts: list[str] = []

    _add(parts, descriptor.summary)
    if isinstance(descriptor, (TextContent, DocumentContent)):
        _extend(parts, descriptor.highlights)
    _extend(parts, descriptor.tags)

    if isinstance(descriptor, ImageContent):
        _extend(parts, descriptor.objects)
        _add(parts, descriptor.caption)
        _add(parts, descriptor.scene)
        _add(parts, descriptor.ocr_text)
    elif isinstance(descriptor, VideoContent):
        _add(parts, descriptor.caption)
        _extend(parts, [scene.description for scene in descriptor.scenes])
        _extend(parts, descriptor.actions)
    elif isinstance(descriptor, TabularContent):
        columns = [c for c in descriptor.columns if c.strip()]
        if columns:
            parts.append(f"Columns: {', '.join(columns)}")
        if descriptor.numeric_stats:
            parts.append(f"Statistics: {_render_stats(descriptor)}")
    elif not isinstance(descriptor, (TextContent, DocumentContent, UnknownContent)):
        raise TypeError(f"Unsupported descriptor type: {type(descriptor).__name__}")

    if not parts:
        return NO_CONTENT_SENTINEL

    parts.append(f"file type: {descriptor.kind.value}")
    return " ".join(parts)[:MAX_EMBED_CHARS]


def has_embeddable_text(source: ContentItem | ContentDescriptor) -> bool:
    return build_embedding_text(source) != NO_CONTENT_SENTINEL


def require_embedding_text(source: ContentItem | ContentDescriptor) -> str:
    """Like ``build_embedding_text`` but raise ``NoContentAvailable`` for the sentinel."""
    text = build_embedding_text(source)
    if text == NO_CONTENT_SENTINEL:
        raise NoContentAvailable("Descriptor has no embeddable text")
    return text


def _add(parts: list[str], value: str | None) -> None:
    if value is not None and value.strip():
        parts.append(value.strip())


def _extend(parts: list[str], values) -> None:
    for value in values:
        _add(parts, value)


def _render_stats(descriptor: TabularContent) -> str:
    rendered = []
    for name, stats in descriptor.numeric_stats.items():
        rendered.append(
            f"{name} (min {stats.min:g}, max {stats.max:g}, "
            f"avg {stats.avg:g}, count {stats.count})"
        )
    return "; ".join(rendered)
