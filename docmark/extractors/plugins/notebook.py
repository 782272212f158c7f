# docmark/extractors/plugins/notebook.py
"""
Jupyter notebook extractor.

One Section segment per non-empty cell. Markdown cells pass through, code
cells are fenced with the kernel language, text outputs follow the code and
PNG/JPEG outputs are persisted to the workspace as image artifacts.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Set

from docmark.conversion.buffering import peek_prefix
from docmark.conversion.formatting import build_image_placeholder
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, ImageArtifact, Segment, SegmentType
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.plugins.plaintext import decode_text
from docmark.extractors.registry import PRIORITY_SPECIFIC_FORMAT
from docmark.logging.logger import get_logger
from docmark.logging.tags import EXTRACT

logger = get_logger(__name__)

NOTEBOOK_MIME_TYPES = ("application/x-ipynb+json",)
IMAGE_OUTPUT_TYPES = {"image/png": ".png", "image/jpeg": ".jpg"}


def _source_text(value: Any) -> str:
    if isinstance(value, list):
        return "".join(str(v) for v in value)
    return str(value or "")


@dataclass
class NotebookExtractor:
    """Extractor for ``.ipynb`` files."""

    plugin_name: str = field(default="notebook", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: {".ipynb"}, repr=False)
    priority: float = PRIORITY_SPECIFIC_FORMAT
    include_outputs: bool = True

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        if descriptor.extension in self.supported_extensions:
            return True
        return descriptor.matches_mime(*NOTEBOOK_MIME_TYPES, "application/json")

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        prefix = peek_prefix(stream, 2048).decode("utf-8", errors="ignore")
        return '"cells"' in prefix or '"nbformat"' in prefix

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        context.raise_if_cancelled()
        text = decode_text(stream.read(), descriptor.charset)
        if not text.strip():
            return ExtractionResult()

        notebook = json.loads(text)
        metadata = notebook.get("metadata") or {}
        language = (
            (metadata.get("kernelspec") or {}).get("language")
            or (metadata.get("language_info") or {}).get("name")
            or "python"
        )

        segments: List[Segment] = []
        artifacts = ConversionArtifacts()
        counts = {"markdown": 0, "code": 0, "raw": 0}

        meta_lines = self._metadata_lines(metadata)
        if meta_lines:
            segments.append(
                Segment(
                    markdown="\n".join(meta_lines),
                    type=SegmentType.METADATA,
                    label="Notebook metadata",
                    source=descriptor.filename,
                )
            )

        for number, cell in enumerate(notebook.get("cells") or [], start=1):
            context.raise_if_cancelled()
            cell_type = cell.get("cell_type", "raw")
            source = _source_text(cell.get("source")).strip()

            if cell_type == "markdown":
                markdown = source
            elif cell_type == "code":
                parts = [f"```{language}\n{source}\n```"] if source else []
                if self.include_outputs:
                    parts.extend(
                        self._outputs(cell.get("outputs") or [], number, len(segments), artifacts, context)
                    )
                markdown = "\n\n".join(parts)
            else:
                markdown = f"```\n{source}\n```" if source else ""

            if not markdown.strip():
                continue
            counts[cell_type if cell_type in counts else "raw"] += 1
            segments.append(
                Segment(
                    markdown=markdown,
                    type=SegmentType.SECTION,
                    number=number,
                    label=f"{cell_type} cell",
                    source=descriptor.filename,
                    additional_metadata={"cell_type": cell_type},
                )
            )

        logger.debug(f"{EXTRACT} {descriptor.display_name}: {sum(counts.values())} cells")

        result_metadata = {f"notebook_cells_{k}": str(v) for k, v in counts.items()}
        result_metadata["notebook_cells"] = str(sum(counts.values()))
        return ExtractionResult(
            segments=segments,
            artifacts=artifacts,
            metadata=result_metadata,
            title=metadata.get("title") or None,
        )

    def _metadata_lines(self, metadata: Dict[str, Any]) -> List[str]:
        lines = []
        kernel = (metadata.get("kernelspec") or {}).get("display_name")
        if kernel:
            lines.append(f"- Kernel: {kernel}")
        version = (metadata.get("language_info") or {}).get("version")
        if version:
            lines.append(f"- Language version: {version}")
        authors = metadata.get("authors") or []
        names = [a.get("name") for a in authors if isinstance(a, dict) and a.get("name")]
        if names:
            lines.append(f"- Authors: {', '.join(names)}")
        return lines

    def _outputs(
        self,
        outputs: List[Dict[str, Any]],
        cell_number: int,
        segment_index: int,
        artifacts: ConversionArtifacts,
        context: ExtractionContext,
    ) -> List[str]:
        parts: List[str] = []
        for output in outputs:
            if output.get("output_type") == "stream":
                text = _source_text(output.get("text")).rstrip()
                if text:
                    parts.append(f"```text\n{text}\n```")
                continue

            data = output.get("data") or {}
            image = self._image_output(data, cell_number, len(artifacts.images) + 1, context)
            if image is not None:
                image.segment_index = segment_index
                image.placeholder_markdown = build_image_placeholder(image)
                artifacts.images.append(image)
                parts.append(image.placeholder_markdown)
                continue

            text = _source_text(data.get("text/plain")).rstrip()
            if text:
                parts.append(f"```text\n{text}\n```")
        return parts

    def _image_output(
        self,
        data: Dict[str, Any],
        cell_number: int,
        image_number: int,
        context: ExtractionContext,
    ) -> Optional[ImageArtifact]:
        for mime, extension in IMAGE_OUTPUT_TYPES.items():
            if mime not in data:
                continue
            try:
                content = base64.b64decode(_source_text(data[mime]))
            except (binascii.Error, ValueError):
                logger.debug(f"{EXTRACT} Skipping undecodable {mime} output in cell {cell_number}")
                return None
            name = f"cell{cell_number}-image{image_number}{extension}"
            path = context.workspace.persist_binary(name, content)
            return ImageArtifact(
                content_type=mime,
                file_path=path,
                label=f"Output of cell {cell_number}",
                metadata={
                    MetadataKeys.ARTIFACT_PATH: path,
                    MetadataKeys.ARTIFACT_FILE_NAME: name,
                },
            )
        return None


__all__ = ["NotebookExtractor"]
