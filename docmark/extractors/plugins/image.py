# docmark/extractors/plugins/image.py
"""
Standalone image extractor.

The image is copied into the workspace and represented by a placeholder in
an Image segment. Describing it is the enrichment pipeline's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Set

from docmark.conversion.buffering import peek_prefix
from docmark.conversion.formatting import build_image_placeholder
from docmark.conversion.workspace import sanitize_name
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, ImageArtifact, Segment, SegmentType
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.registry import PRIORITY_SPECIFIC_FORMAT

# Magic number -> mime type
IMAGE_SIGNATURES: Dict[bytes, str] = {
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"\xff\xd8\xff": "image/jpeg",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
    b"BM": "image/bmp",
    b"II*\x00": "image/tiff",
    b"MM\x00*": "image/tiff",
}

IMAGE_EXTENSIONS: Set[str] = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tif", ".tiff"}


def sniff_image_type(prefix: bytes) -> str | None:
    for signature, mime in IMAGE_SIGNATURES.items():
        if prefix.startswith(signature):
            return mime
    if prefix[:4] == b"RIFF" and prefix[8:12] == b"WEBP":
        return "image/webp"
    return None


@dataclass
class ImageExtractor:
    """Extractor for standalone image files."""

    plugin_name: str = field(default="image", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: set(IMAGE_EXTENSIONS), repr=False)
    priority: float = PRIORITY_SPECIFIC_FORMAT

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        return descriptor.extension in self.supported_extensions or descriptor.matches_mime("image/")

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        return sniff_image_type(peek_prefix(stream, 16)) is not None

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        mime = sniff_image_type(peek_prefix(stream, 16)) or descriptor.mime_type
        name = sanitize_name(descriptor.filename, fallback=f"image{descriptor.extension or ''}")
        path = context.workspace.persist_stream(name, stream, cancel=context.cancel)

        image = ImageArtifact(
            content_type=mime,
            file_path=path,
            label=descriptor.stem or "Image",
            source=descriptor.filename,
            segment_index=0,
            metadata={
                MetadataKeys.ARTIFACT_PATH: path,
                MetadataKeys.ARTIFACT_FILE_NAME: name,
            },
        )
        image.placeholder_markdown = build_image_placeholder(image, descriptor.stem)

        segment = Segment(
            markdown=image.placeholder_markdown,
            type=SegmentType.IMAGE,
            number=1,
            label=descriptor.stem,
            source=descriptor.filename,
        )
        return ExtractionResult(
            segments=[segment],
            artifacts=ConversionArtifacts(images=[image]),
            metadata={"image_mime_type": mime or ""},
        )


__all__ = ["ImageExtractor", "IMAGE_EXTENSIONS", "sniff_image_type"]
