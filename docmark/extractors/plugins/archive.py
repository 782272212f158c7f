# docmark/extractors/plugins/archive.py
"""
ZIP archive extractor.

Every member is dispatched through the same ExtractorRegistry, so archives
of archives recurse naturally. Members are processed in name order (or on a
thread pool, with results still appended in name order). One bad member
never aborts the archive: it is annotated in the output instead.

Output per member:

    ## File: docs/report.csv        <- Section segment
    **Size:** 1.2 KB

    ...member segments...           <- remapped, artifacts re-indexed
"""

from __future__ import annotations

import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Set

from docmark.conversion.buffering import buffer_stream, peek_prefix
from docmark.conversion.workspace import sanitize_name
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, Segment, SegmentType
from docmark.core.exceptions import (
    ConversionCancelled,
    ResourceLimitError,
    UnsupportedFormatError,
)
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.registry import PRIORITY_SPECIFIC_FORMAT
from docmark.logging.logger import get_logger
from docmark.logging.tags import ARCHIVE

logger = get_logger(__name__)

ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06")
ZIP_MIME_TYPES = ("application/zip", "application/x-zip-compressed")


def format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


@dataclass
class MemberOutcome:
    """Converted (or annotated) output for one archive member."""

    name: str
    segments: List[Segment] = field(default_factory=list)
    artifacts: ConversionArtifacts = field(default_factory=ConversionArtifacts)
    converted: bool = False


@dataclass
class ZipExtractor:
    """
    Extractor for ZIP archives.

    Args:
        max_member_bytes: Override for ``config.archive.max_member_bytes``.
    """

    plugin_name: str = field(default="zip", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: {".zip"}, repr=False)
    priority: float = PRIORITY_SPECIFIC_FORMAT
    max_member_bytes: int | None = None

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        return descriptor.extension in self.supported_extensions or descriptor.matches_mime(*ZIP_MIME_TYPES)

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        return peek_prefix(stream, 4) in ZIP_SIGNATURES

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        if context.registry is None:
            raise RuntimeError("Archive extraction needs a registry for nested dispatch")

        archive_path = context.materialize(stream, descriptor)
        archive_name = descriptor.filename or "archive.zip"
        options = context.config.archive

        with zipfile.ZipFile(archive_path) as zf:
            members = sorted(
                (info for info in zf.infolist() if not info.is_dir()),
                key=lambda info: info.filename,
            )

        def run(indexed: tuple) -> MemberOutcome:
            index, info = indexed
            return self._convert_member(archive_path, archive_name, info, index, context)

        work = list(enumerate(members, start=1))
        if options.parallel and len(work) > 1:
            with ThreadPoolExecutor(max_workers=options.max_workers) as pool:
                outcomes = list(pool.map(run, work))
        else:
            outcomes = [run(item) for item in work]

        processed = sum(1 for o in outcomes if o.converted)
        title = f"Content from {archive_name}"
        header = f"# {title}"
        if processed:
            header += f" ({processed} of {len(members)} files processed)"

        segments = [Segment(markdown=header, type=SegmentType.SECTION, label=title, source=archive_name)]
        artifacts = ConversionArtifacts()

        for outcome in outcomes:
            artifacts.extend(outcome.artifacts, segment_offset=len(segments) + 1)
            segments.extend(outcome.segments)

        if not processed:
            segments.append(
                Segment(
                    markdown="*No files could be processed from this archive.*",
                    type=SegmentType.SECTION,
                    source=archive_name,
                )
            )

        logger.info(f"{ARCHIVE} {archive_name}: {processed}/{len(members)} members converted")

        return ExtractionResult(
            segments=segments,
            artifacts=artifacts,
            metadata={
                MetadataKeys.ARCHIVE_MEMBERS: str(len(members)),
                "archive_members_converted": str(processed),
            },
            title=title,
        )

    def _convert_member(
        self,
        archive_path: Path,
        archive_name: str,
        info: zipfile.ZipInfo,
        index: int,
        context: ExtractionContext,
    ) -> MemberOutcome:
        context.raise_if_cancelled()
        name = info.filename
        entry_metadata = {
            MetadataKeys.ARCHIVE_MEMBER: name,
            "archive": archive_name,
            "size_bytes": str(info.file_size),
        }

        header = f"## File: {name}"
        if info.file_size > 0:
            header += f"\n\n**Size:** {format_size(info.file_size)}"
        outcome = MemberOutcome(name=name)
        # The header segment always comes first; member segments are
        # appended after it, which is what the parent offset assumes.
        outcome.segments.append(
            Segment(
                markdown=header,
                type=SegmentType.SECTION,
                label=name,
                source=name,
                additional_metadata=dict(entry_metadata),
            )
        )

        def annotate(message: str) -> MemberOutcome:
            outcome.segments.append(
                Segment(
                    markdown=message,
                    type=SegmentType.SECTION,
                    label=name,
                    source=name,
                    additional_metadata=dict(entry_metadata),
                )
            )
            return outcome

        if info.file_size == 0:
            return annotate("*Empty file*")

        limit = self.max_member_bytes or context.config.archive.max_member_bytes
        if info.file_size > limit:
            return annotate(f"*Skipped: file exceeds size limit ({format_size(info.file_size)})*")

        member_name = PurePosixPath(name).name
        member_descriptor = InputDescriptor(filename=member_name)
        member_context = context.child(f"member-{index:04d}-{sanitize_name(member_name)}")

        try:
            with zipfile.ZipFile(archive_path) as zf, zf.open(info) as raw:
                buffered = buffer_stream(
                    raw,
                    memory_limit=context.config.buffer.memory_limit,
                    max_bytes=limit,
                    directory=member_context.workspace.directory,
                    cancel=context.cancel,
                    force=True,
                )
            with buffered:
                extractor, result = context.registry.extract(buffered, member_descriptor, member_context)
        except ConversionCancelled:
            raise
        except UnsupportedFormatError:
            suffix = PurePosixPath(member_name).suffix or "unknown"
            return annotate(f"*Unsupported file type: {suffix}*")
        except ResourceLimitError:
            return annotate("*Skipped: file exceeds size limit*")
        except Exception as e:
            logger.warning(f"{ARCHIVE} Failed to convert {name} in {archive_name}: {e}")
            return annotate(f"*Error processing file: {e}*")

        if not result.segments:
            return annotate("*File processed but no content extracted*")

        for segment in result.segments:
            metadata = dict(segment.additional_metadata)
            metadata.update(entry_metadata)
            metadata[MetadataKeys.EXTRACTOR] = extractor.plugin_name
            if segment.source and segment.source != name:
                metadata["original_source"] = segment.source
            outcome.segments.append(segment.copy_with(source=name, additional_metadata=metadata))

        outcome.artifacts = result.artifacts
        outcome.converted = True
        return outcome


__all__ = ["ZipExtractor", "MemberOutcome", "format_size"]
