# docmark/conversion/formatting.py
"""
Small markdown formatters shared by extractors, enrichment and the composer.

- image placeholders (``![alt](target)`` or ``**Image:** alt``)
- enrichment blocks spliced after placeholders
- segment annotations (``[page:1] [label:Intro]``)
- the trailing document metadata comment
"""

from __future__ import annotations

import json
from pathlib import PurePath
from typing import List, Mapping, Optional, Sequence
from urllib.parse import quote

from docmark.core.document import ImageArtifact, Segment, SegmentType
from docmark.core.metadata import MetadataKeys

# =============================================================================
# Image placeholders
# =============================================================================


def _default_image_label(image: ImageArtifact) -> str:
    if image.page_number is not None:
        return f"Image on page {image.page_number}"
    if image.metadata.get(MetadataKeys.PAGE):
        return f"Image on page {image.metadata[MetadataKeys.PAGE].strip()}"
    return image.label or "Image"


def _escape_alt(value: str) -> str:
    escaped = []
    for ch in value:
        if ch in "[]\\":
            escaped.append("\\" + ch)
        elif ch in "\r\n":
            escaped.append(" ")
        else:
            escaped.append(ch)
    return "".join(escaped).strip() or "Image"


def _image_target(image: ImageArtifact) -> Optional[str]:
    name = image.metadata.get(MetadataKeys.ARTIFACT_FILE_NAME)
    if not name and image.file_path:
        name = PurePath(image.file_path).name
    if not name:
        return None
    return quote(name.replace("\\", "/").strip(), safe="/")


def build_image_placeholder(image: ImageArtifact, alt_text: Optional[str] = None) -> str:
    """
    Markdown placeholder for an image artifact.

    Links to the persisted file when there is one, otherwise renders a bold
    ``**Image:**`` line. The result is what extractors store in
    ``placeholder_markdown``.
    """
    alt = (alt_text or "").strip() or _default_image_label(image)
    target = _image_target(image)
    if target:
        return f"![{_escape_alt(alt)}]({target})"
    return f"**Image:** {' '.join(alt.split())}"


# =============================================================================
# Enrichment blocks
# =============================================================================


def format_image_enrichment(description: Optional[str], ocr_text: Optional[str] = None) -> str:
    """Description text, then visible (OCR) text as a bullet list."""
    parts: List[str] = []
    if description and description.strip():
        parts.append(description.strip())
    lines = [line.strip() for line in (ocr_text or "").splitlines() if line.strip()]
    if lines:
        parts.append("Visible text:\n" + "\n".join(f"- {line}" for line in lines))
    return "\n\n".join(parts)


def format_table_enrichment(
    description: Optional[str],
    rows: Optional[Sequence[Sequence[str]]] = None,
) -> str:
    """Description text, then structured rows as a fenced JSON block."""
    parts: List[str] = []
    if description and description.strip():
        parts.append(description.strip())
    if rows:
        payload = json.dumps([list(r) for r in rows], ensure_ascii=False)
        parts.append(f"```json\n{payload}\n```")
    return "\n\n".join(parts)


# =============================================================================
# Segment annotations
# =============================================================================

_ANNOTATION_KEYS = {
    SegmentType.PAGE: "page",
    SegmentType.SLIDE: "slide",
    SegmentType.SHEET: "sheet",
    SegmentType.TABLE: "table",
    SegmentType.SECTION: "section",
    SegmentType.CHAPTER: "chapter",
    SegmentType.IMAGE: "image",
    SegmentType.METADATA: "meta",
}


def _sanitize_token(value: str) -> str:
    out = []
    for ch in value.strip():
        if ch.isspace():
            out.append("_")
        elif ch in "[]:":
            out.append("-")
        else:
            out.append(ch)
    return "".join(out)


def format_timecode(seconds: float) -> str:
    total = int(seconds)
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def segment_annotation(segment: Segment) -> Optional[str]:
    """Inline tag line for a segment, e.g. ``[page:2] [label:Intro]``."""
    tags: List[str] = []

    if segment.number is not None:
        tags.append(f"{_ANNOTATION_KEYS.get(segment.type, 'segment')}:{segment.number}")

    if segment.type == SegmentType.AUDIO and segment.start_time is not None:
        timecode = format_timecode(segment.start_time)
        if segment.end_time is not None:
            timecode += f"-{format_timecode(segment.end_time)}"
        tags.append(f"timecode:{timecode}")
    else:
        if segment.start_time is not None:
            tags.append(f"start:{format_timecode(segment.start_time)}")
        if segment.end_time is not None:
            tags.append(f"end:{format_timecode(segment.end_time)}")

    if segment.label and segment.label.strip():
        tags.append(f"label:{_sanitize_token(segment.label)}")
    if segment.source and segment.source.strip():
        tags.append(f"source:{_sanitize_token(segment.source)}")

    for key, value in segment.additional_metadata.items():
        if not key.strip() or not value.strip():
            continue
        key = _sanitize_token(key)
        if any(tag.lower().startswith(key.lower() + ":") for tag in tags):
            continue
        tags.append(f"{key}:{_sanitize_token(value)}")

    if not tags:
        return None
    return " ".join(f"[{tag}]" for tag in tags)


# =============================================================================
# Document metadata
# =============================================================================


def document_metadata_comment(metadata: Mapping[str, str]) -> Optional[str]:
    """``<!-- Document metadata: ... -->`` with one ``key: value`` line per entry, sorted."""
    entries = sorted(
        (k.strip(), " ".join(str(v).split()))
        for k, v in metadata.items()
        if k and k.strip() and v is not None and str(v).strip()
    )
    if not entries:
        return None
    body = "\n".join(f"{k}: {v.replace('-->', '--&gt;')}" for k, v in entries)
    return f"<!-- Document metadata:\n{body}\n-->"


__all__ = [
    "build_image_placeholder",
    "format_image_enrichment",
    "format_table_enrichment",
    "format_timecode",
    "segment_annotation",
    "document_metadata_comment",
]
