"""
Content descriptors and items.

A descriptor is the type-tagged metadata bag produced by upstream extractors
(document summarizers, image captioners, video frame analysis, tabular
parsers). Each content kind carries only the fields relevant to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


class ContentKind(str, Enum):
    TEXT = "text"
    DOCUMENT = "document"
    TABULAR = "tabular"
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"


# Type tags emitted by older extractors.
_KIND_ALIASES: dict[str, ContentKind] = {
    "txt": ContentKind.TEXT,
    "markdown": ContentKind.TEXT,
    "pdf": ContentKind.DOCUMENT,
    "docx": ContentKind.DOCUMENT,
    "doc": ContentKind.DOCUMENT,
    "csv": ContentKind.TABULAR,
    "xlsx": ContentKind.TABULAR,
}


@dataclass(frozen=True)
class ColumnStats:
    """Summary statistics for one numeric column."""

    min: float
    max: float
    avg: float
    count: int


@dataclass(frozen=True)
class SceneDescription:
    """A timestamped scene from video analysis."""

    description: str
    timestamp: float | None = None


@dataclass(frozen=True)
class TextContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    highlights: tuple[str, ...] = ()

    kind = ContentKind.TEXT


@dataclass(frozen=True)
class DocumentContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    highlights: tuple[str, ...] = ()
    pages: int | None = None

    kind = ContentKind.DOCUMENT


@dataclass(frozen=True)
class TabularContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    columns: tuple[str, ...] = ()
    numeric_stats: dict[str, ColumnStats] = field(default_factory=dict)
    row_count: int | None = None

    kind = ContentKind.TABULAR


@dataclass(frozen=True)
class ImageContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    caption: str | None = None
    objects: tuple[str, ...] = ()
    scene: str | None = None
    ocr_text: str | None = None

    kind = ContentKind.IMAGE


@dataclass(frozen=True)
class VideoContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    caption: str | None = None
    scenes: tuple[SceneDescription, ...] = ()
    actions: tuple[str, ...] = ()
    duration: float | None = None

    kind = ContentKind.VIDEO


@dataclass(frozen=True)
class UnknownContent:
    summary: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None

    kind = ContentKind.UNKNOWN


ContentDescriptor = Union[
    TextContent,
    DocumentContent,
    TabularContent,
    ImageContent,
    VideoContent,
    UnknownContent,
]


@dataclass(frozen=True)
class ContentItem:
    """A stored item: unique key, descriptor, and optional embedding."""

    key: str
    descriptor: ContentDescriptor
    embedding: list[float] | None = None
    embedding_model: str | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def kind(self) -> ContentKind:
        return self.descriptor.kind


def is_document_like(descriptor: ContentDescriptor) -> bool:
    return isinstance(descriptor, (TextContent, DocumentContent))


def resolve_kind(raw: Any) -> ContentKind:
    """Map a raw type tag onto a ``ContentKind``; unrecognized tags are unknown."""
    if isinstance(raw, ContentKind):
        return raw
    if not isinstance(raw, str):
        return ContentKind.UNKNOWN
    tag = raw.strip().lower()
    if tag in _KIND_ALIASES:
        return _KIND_ALIASES[tag]
    try:
        return ContentKind(tag)
    except ValueError:
        return ContentKind.UNKNOWN


def descriptor_from_dict(data: dict[str, Any]) -> ContentDescriptor:
    """
    Build a typed descriptor from a JSON-like metadata bag.

    Wrong-typed values are dropped instead of raising so that partially
    analyzed items still load.
    """
    kind = resolve_kind(data.get("type", data.get("kind")))
    common: dict[str, Any] = {
        "summary": _opt_str(data.get("summary")),
        "tags": _str_tuple(data.get("tags")),
        "status": _opt_str(data.get("status")),
    }

    if kind is ContentKind.TEXT:
        return TextContent(**common, highlights=_str_tuple(data.get("highlights")))
    if kind is ContentKind.DOCUMENT:
        pages = data.get("pages")
        return DocumentContent(
            **common,
            highlights=_str_tuple(data.get("highlights")),
            pages=pages if isinstance(pages, int) and not isinstance(pages, bool) else None,
        )
    if kind is ContentKind.TABULAR:
        row_count = data.get("row_count", data.get("rowCount"))
        return TabularContent(
            **common,
            columns=_str_tuple(data.get("columns")),
            numeric_stats=_parse_stats(data.get("numeric_stats", data.get("numericStats"))),
            row_count=row_count if isinstance(row_count, int) and not isinstance(row_count, bool) else None,
        )
    if kind is ContentKind.IMAGE:
        return ImageContent(
            **common,
            caption=_opt_str(data.get("caption")),
            objects=_str_tuple(data.get("objects")),
            scene=_opt_str(data.get("scene")),
            ocr_text=_opt_str(data.get("ocr_text", data.get("ocrText"))),
        )
    if kind is ContentKind.VIDEO:
        return VideoContent(
            **common,
            caption=_opt_str(data.get("caption")),
            scenes=_parse_scenes(data.get("scenes")),
            actions=_str_tuple(data.get("actions")),
            duration=_opt_float(data.get("duration")),
        )
    return UnknownContent(**common)


def descriptor_to_dict(descriptor: ContentDescriptor) -> dict[str, Any]:
    """Serialize a descriptor into a JSON-compatible dict."""
    data: dict[str, Any] = {
        "type": descriptor.kind.value,
        "summary": descriptor.summary,
        "tags": list(descriptor.tags),
        "status": descriptor.status,
    }
    if isinstance(descriptor, (TextContent, DocumentContent)):
        data["highlights"] = list(descriptor.highlights)
    if isinstance(descriptor, DocumentContent):
        data["pages"] = descriptor.pages
    elif isinstance(descriptor, TabularContent):
        data["columns"] = list(descriptor.columns)
        data["numeric_stats"] = {
            name: {"min": s.min, "max": s.max, "avg": s.avg, "count": s.count}
            for name, s in descriptor.numeric_stats.items()
        }
        data["row_count"] = descriptor.row_count
    elif isinstance(descriptor, ImageContent):
        data["caption"] = descriptor.caption
        data["objects"] = list(descriptor.objects)
        data["scene"] = descriptor.scene
        data["ocr_text"] = descriptor.ocr_text
    elif isinstance(descriptor, VideoContent):
        data["caption"] = descriptor.caption
        data["scenes"] = [
            {"timestamp": s.timestamp, "description": s.description}
            for s in descriptor.scenes
        ]
        data["actions"] = list(descriptor.actions)
        data["duration"] = descriptor.duration
    return data


def _opt_str(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _opt_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return ()
    return tuple(v for v in value if isinstance(v, str))


def _parse_scenes(value: Any) -> tuple[SceneDescription, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    scenes: list[SceneDescription] = []
    for raw in value:
        if isinstance(raw, str):
            scenes.append(SceneDescription(description=raw))
        elif isinstance(raw, dict):
            description = raw.get("description")
            if isinstance(description, str):
                scenes.append(
                    SceneDescription(
                        description=description,
                        timestamp=_opt_float(raw.get("timestamp")),
                    )
                )
    return tuple(scenes)


def _parse_stats(value: Any) -> dict[str, ColumnStats]:
    if not isinstance(value, dict):
        return {}
    stats: dict[str, ColumnStats] = {}
    for name, raw in value.items():
        if not isinstance(name, str) or not isinstance(raw, dict):
            continue
        try:
            stats[name] = ColumnStats(
                min=float(raw["min"]),
                max=float(raw["max"]),
                avg=float(raw["avg"]),
                count=int(raw["count"]),
            )
        except (KeyError, TypeError, ValueError):
            continue
    return stats
