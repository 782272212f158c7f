# docmark/conversion/composer.py
"""
Markdown composer: render segments and artifacts into the final document.

``compose`` is a pure function of its inputs. It never mutates segments or
artifacts and never reads the clock (the caller passes ``generated_at``), so
calling it twice on the same state yields identical output, and calling it
again after enrichment yields the enriched text without re-running
extraction.

Title derivation order:
    1. explicit hint
    2. first heading, skipping comment blocks and image-only lines
    3. first substantial plain-text line, cut before any list marker
    4. the input's file name stem
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Sequence

import yaml

from docmark.config.schema import SegmentOptions
from docmark.conversion.formatting import document_metadata_comment, segment_annotation
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, Segment, SegmentType


@dataclass(frozen=True)
class ComposedMarkdown:
    markdown: str
    title: Optional[str]


def compose(
    segments: Sequence[Segment],
    artifacts: Optional[ConversionArtifacts],
    descriptor: InputDescriptor,
    options: Optional[SegmentOptions] = None,
    title_hint: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> ComposedMarkdown:
    """
    Render the final markdown and derive the title.

    Args:
        segments: Segments in index order.
        artifacts: Artifacts (counts go into the front matter).
        descriptor: Input descriptor (source, mime type, file name).
        options: Rendering options; defaults to SegmentOptions().
        title_hint: Explicit title, wins over anything derived.
        generated_at: Timestamp written into the front matter, if any.
    """
    options = options or SegmentOptions()
    artifacts = artifacts or ConversionArtifacts()
    title = derive_title(segments, descriptor, title_hint)

    blocks: List[str] = []
    if options.include_front_matter:
        blocks.append(_front_matter(title, descriptor, artifacts, segments, generated_at))

    for segment in _ordered(segments, options.metadata_preamble):
        content = segment.markdown.strip()
        if not content:
            continue
        if options.include_segment_metadata:
            annotation = segment_annotation(segment)
            if annotation:
                content = f"{annotation}\n{content}"
        blocks.append(content)

    if options.include_document_metadata:
        comment = document_metadata_comment(artifacts.metadata)
        if comment:
            blocks.append(comment)

    return ComposedMarkdown(markdown=collapse_blank_lines("\n\n".join(blocks)).strip(), title=title)


def _ordered(segments: Sequence[Segment], metadata_first: bool) -> Iterator[Segment]:
    if not metadata_first:
        yield from segments
        return
    yield from (s for s in segments if s.type == SegmentType.METADATA)
    yield from (s for s in segments if s.type != SegmentType.METADATA)


def _front_matter(
    title: Optional[str],
    descriptor: InputDescriptor,
    artifacts: ConversionArtifacts,
    segments: Sequence[Segment],
    generated_at: Optional[datetime],
) -> str:
    source = descriptor.url
    if not source and descriptor.local_path is not None:
        source = str(descriptor.local_path)
    fields = {
        "title": title,
        "source": source or descriptor.filename,
        "mime_type": descriptor.mime_type,
        "file_name": descriptor.filename,
    }
    if generated_at is not None:
        fields["generated"] = generated_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    pages = sum(1 for s in segments if s.type == SegmentType.PAGE)
    counts = {"pages": pages, "images": len(artifacts.images), "tables": len(artifacts.tables)}

    data = {k: " ".join(v.split()) for k, v in fields.items() if v and v.strip()}
    data.update({k: v for k, v in counts.items() if v > 0})
    body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=10_000)
    return f"---\n{body}---"


_FENCE = re.compile(r"^\s*(```|~~~)")


def collapse_blank_lines(text: str) -> str:
    """Collapse runs of blank lines into a single blank line, leaving fenced code untouched."""
    out: List[str] = []
    fence: Optional[str] = None
    previous_blank = False

    for line in text.split("\n"):
        marker = _FENCE.match(line)
        if fence is not None:
            out.append(line)
            if marker and marker.group(1) == fence:
                fence = None
            previous_blank = False
            continue
        if not line.strip():
            if not previous_blank:
                out.append("")
            previous_blank = True
            continue
        if marker:
            fence = marker.group(1)
        out.append(line)
        previous_blank = False

    return "\n".join(out)


# =============================================================================
# Title derivation
# =============================================================================

_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")
_LEADING_MARKER = re.compile(r"^(?:\d{1,3}[.)]|[•●‣◦▪\-*+])\s+")
_INNER_MARKER = re.compile(r"\s(?:\d{1,3}[.)]|[•●‣◦▪\-*+])\s+\S")
_TRAILING_PUNCT = ".,;:!?-–—•●‣ \t"


def derive_title(
    segments: Sequence[Segment],
    descriptor: Optional[InputDescriptor] = None,
    hint: Optional[str] = None,
) -> Optional[str]:
    """Derive a document title (hint, heading, plain text line, file stem)."""
    normalized = _normalize(hint)
    if normalized:
        return normalized

    text_segments = [s for s in segments if s.type not in (SegmentType.IMAGE, SegmentType.METADATA)]

    for line in _content_lines(text_segments):
        match = _HEADING.match(line)
        if match:
            heading = _normalize(_strip_emphasis(match.group(1)))
            if heading:
                return heading

    for line in _content_lines(text_segments):
        if _HEADING.match(line) or not _is_substantial(line):
            continue
        title = title_from_text(line)
        if title:
            return title

    if descriptor is not None and descriptor.stem:
        return descriptor.stem
    return None


def title_from_text(line: str) -> Optional[str]:
    """
    Title from a plain text line: cut before the first list marker, trim punctuation.

    >>> title_from_text("Report Title. 1. First item")
    'Report Title'
    """
    text = _strip_emphasis(_LEADING_MARKER.sub("", line.strip()))
    marker = _INNER_MARKER.search(text)
    if marker:
        text = text[: marker.start()]
    text = _strip_emphasis(text.rstrip(_TRAILING_PUNCT))
    return _normalize(text.rstrip(_TRAILING_PUNCT))


def _content_lines(segments: Sequence[Segment]) -> Iterator[str]:
    """Lines outside comment blocks and code fences, minus image-only lines."""
    for segment in segments:
        in_comment = False
        in_fence = False
        for raw in segment.markdown.splitlines():
            line = raw.strip()
            if in_comment:
                if "-->" in line:
                    in_comment = False
                continue
            if line.startswith("```") or line.startswith("~~~"):
                in_fence = not in_fence
                continue
            if in_fence or not line:
                continue
            if line.startswith("<!--"):
                in_comment = "-->" not in line
                continue
            if line.startswith("![") or line.startswith("**Image"):
                continue
            yield line


def _is_substantial(line: str) -> bool:
    if line.startswith(("|", ">", "<")):
        return False
    if re.fullmatch(r"[-*_=\s]{3,}", line):
        return False
    letters = sum(ch.isalpha() for ch in line)
    return letters >= 2


def _strip_emphasis(text: str) -> str:
    return text.strip().strip("*_").strip()


def _normalize(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    normalized = " ".join(value.split())
    return normalized or None


__all__ = ["ComposedMarkdown", "compose", "derive_title", "title_from_text", "collapse_blank_lines"]
