# docmark/extractors/plugins/docling.py
"""
Docling-based extractor for PDF, DOCX, PPTX, XLSX and HTML.

Uses IBM's Docling library for layout analysis and reading order. Items are
grouped into one Page segment per provenance page. Tables are rebuilt from
Docling's cell spans through merged-cell reconstruction, and tables whose
header repeats at the top of the next page are merged into one artifact.
Pictures are saved into the workspace and left as placeholders for the
enrichment pipeline.

Requires: pip install docmark[docling]
"""

from __future__ import annotations

import io
import os
import sys
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional, Set

# Windows restricts symlinks, which breaks Hugging Face model caching
if sys.platform == "win32":
    os.environ.setdefault("HF_HUB_DISABLE_SYMLINKS_WARNING", "1")
    os.environ.setdefault("HF_HUB_DISABLE_SYMLINKS", "1")

from docmark.conversion.formatting import build_image_placeholder
from docmark.conversion.tables import (
    CellSpan,
    TableFragment,
    cells_from_spans,
    merge_continued_tables,
    reconstruct_rows,
    render_table_block,
)
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, ImageArtifact, Segment, SegmentType, TextArtifact
from docmark.core.exceptions import MissingDependencyError
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.registry import PRIORITY_SPECIFIC_FORMAT
from docmark.logging.logger import get_logger
from docmark.logging.tags import EXTRACT

logger = get_logger(__name__)

DOCLING_EXTENSIONS: Set[str] = {
    ".pdf",
    ".docx",
    ".pptx",
    ".xlsx",
    ".html",
    ".htm",
}

DOCLING_MIME_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument",
    "text/html",
)


@dataclass
class Block:
    """
    One item in reading order, before page grouping.

    Exactly one of ``markdown``, ``table`` or ``image`` is set. ``text`` is the
    plain text behind ``markdown``, collected into the per-page text layer.
    """

    page: Optional[int]
    markdown: Optional[str] = None
    table: Optional[TableFragment] = None
    image: Optional[ImageArtifact] = None
    caption: Optional[str] = None
    is_title: bool = False
    text: Optional[str] = None


def assemble_pages(
    blocks: List[Block],
    descriptor: InputDescriptor,
) -> tuple[List[Segment], ConversionArtifacts]:
    """
    Group blocks into Page segments and wire up artifact back-references.

    Table fragments are merged across pages first; a merged table is placed
    where its first fragment was.
    """
    fragments = [b.table for b in blocks if b.table is not None]
    tables = iter(merge_continued_tables(fragments))

    paged = any(b.page is not None for b in blocks)
    by_page: Dict[int, List[str]] = {}
    artifacts = ConversionArtifacts()
    pending_images: List[tuple] = []
    pending_tables: List[tuple] = []
    page_text: Dict[int, List[str]] = {}

    current_page = 1
    for block in blocks:
        if block.page is not None:
            current_page = block.page
        page_parts = by_page.setdefault(current_page, [])

        if block.table is not None:
            if block.table.continued or not block.table.rows:
                continue
            table = next(tables)
            markdown = render_table_block(table)
            table.placeholder_markdown = markdown
            page_parts.append(markdown)
            pending_tables.append((current_page, table))
        elif block.image is not None:
            image = block.image
            image.placeholder_markdown = build_image_placeholder(image, block.caption)
            page_parts.append(image.placeholder_markdown)
            pending_images.append((current_page, image))
        elif block.markdown:
            page_parts.append(block.markdown)
            page_text.setdefault(current_page, []).append(block.text or block.markdown)

    pages = sorted(by_page)
    index_of = {page: i for i, page in enumerate(pages)}
    segments = [
        Segment(
            markdown="\n\n".join(by_page[page]),
            type=SegmentType.PAGE if paged else SegmentType.SECTION,
            number=page,
            label=f"Page {page}" if paged else None,
            source=descriptor.filename,
        )
        for page in pages
    ]

    for page, table in pending_tables:
        table.segment_index = index_of[page]
        artifacts.tables.append(table)
    for page, image in pending_images:
        image.segment_index = index_of[page]
        artifacts.images.append(image)
    for page in pages:
        if page in page_text:
            artifacts.text_blocks.append(
                TextArtifact(
                    text="\n".join(page_text[page]),
                    page_number=page if paged else None,
                    source=descriptor.filename,
                )
            )

    return segments, artifacts


@dataclass
class DoclingExtractor:
    """
    Extractor using Docling for document understanding.

    Example:
        extractor = DoclingExtractor()
        result = extractor.convert(stream, descriptor, context)
        for segment in result.segments:
            print(segment.number, segment.markdown[:50])
    """

    plugin_name: str = field(default="docling", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: set(DOCLING_EXTENSIONS))
    priority: float = PRIORITY_SPECIFIC_FORMAT
    extract_images: bool = True

    # Lazy-loaded converter
    _converter: object = field(default=None, repr=False)

    def _get_converter(self):
        """Lazy-load the Docling DocumentConverter."""
        if self._converter is None:
            try:
                from docling.datamodel.base_models import InputFormat
                from docling.datamodel.pipeline_options import PdfPipelineOptions
                from docling.document_converter import DocumentConverter, PdfFormatOption
            except ImportError as e:
                raise MissingDependencyError(self.plugin_name, "docling", extra="docling") from e

            pipeline_options = PdfPipelineOptions()
            pipeline_options.generate_picture_images = self.extract_images
            self._converter = DocumentConverter(
                format_options={InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options)}
            )
        return self._converter

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        return descriptor.extension in self.supported_extensions or descriptor.matches_mime(
            *DOCLING_MIME_TYPES
        )

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        return True

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        converter = self._get_converter()
        path = context.materialize(stream, descriptor)

        logger.info(f"{EXTRACT} Converting with Docling: {descriptor.display_name}")
        context.raise_if_cancelled()
        doc = converter.convert(str(path)).document

        blocks: List[Block] = []
        title: Optional[str] = None
        since_table = False
        image_count = 0

        for item, level in doc.iterate_items():
            context.raise_if_cancelled()
            block = self._convert_item(item, level, doc)
            if block is None:
                continue
            if block.table is not None:
                block.table.preceded_by_content = since_table
                block.table.source = descriptor.filename
                since_table = False
            elif block.image is not None:
                image_count += 1
                self._persist_image(block, image_count, doc, item, context)
                since_table = True
            else:
                since_table = True
                if title is None and block.is_title:
                    title = block.markdown[2:].strip()
            blocks.append(block)

        segments, artifacts = assemble_pages(blocks, descriptor)

        metadata = {"source_extension": descriptor.extension or ""}
        if getattr(doc, "pages", None):
            metadata[MetadataKeys.DOCUMENT_PAGES] = str(len(doc.pages))

        return ExtractionResult(segments=segments, artifacts=artifacts, metadata=metadata, title=title)

    def _convert_item(self, item: Any, level: int, doc: Any) -> Optional[Block]:
        """Convert a Docling item to a Block."""
        from docling_core.types.doc.labels import DocItemLabel

        label = getattr(item, "label", None)
        if label is None:
            return None
        page = _page_of(item)

        if label in (DocItemLabel.PAGE_HEADER, DocItemLabel.PAGE_FOOTER):
            # Furniture
            return None

        if label == DocItemLabel.TABLE:
            rows = self._table_rows(item)
            if not rows:
                return None
            return Block(page=page, table=TableFragment(rows=rows, page_number=page))

        if label == DocItemLabel.PICTURE:
            image = ImageArtifact(page_number=page, content_type="image/png")
            caption = item.caption_text(doc) if hasattr(item, "caption_text") else None
            if caption:
                image.metadata[MetadataKeys.CAPTION] = caption
            return Block(page=page, image=image, caption=caption or None)

        text = _get_text(item)
        if not text:
            return None

        if label == DocItemLabel.TITLE:
            return Block(page=page, markdown=f"# {text}", is_title=True, text=text)
        if label == DocItemLabel.SECTION_HEADER:
            heading_level = min((getattr(item, "level", level) or 1) + 1, 6)
            return Block(page=page, markdown=f"{'#' * heading_level} {text}", text=text)
        if label == DocItemLabel.LIST_ITEM:
            marker = getattr(item, "marker", None) if getattr(item, "enumerated", False) else None
            return Block(page=page, markdown=f"{marker or '-'} {text}", text=text)
        if label == DocItemLabel.CODE:
            return Block(page=page, markdown=f"```\n{text}\n```", text=text)
        if label == DocItemLabel.FORMULA:
            return Block(page=page, markdown=f"$$\n{text}\n$$", text=text)
        return Block(page=page, markdown=text, text=text)

    def _table_rows(self, item: Any) -> List[List[str]]:
        data = getattr(item, "data", None)
        if data is None or not getattr(data, "table_cells", None):
            return []
        spans = [
            CellSpan(
                row=cell.start_row_offset_idx,
                col=cell.start_col_offset_idx,
                row_span=cell.row_span or 1,
                col_span=cell.col_span or 1,
                text=(cell.text or "").strip(),
            )
            for cell in data.table_cells
        ]
        return reconstruct_rows(cells_from_spans(spans), max_columns=data.num_cols or None)

    def _persist_image(
        self,
        block: Block,
        number: int,
        doc: Any,
        item: Any,
        context: ExtractionContext,
    ) -> None:
        pil_image = item.get_image(doc) if self.extract_images and hasattr(item, "get_image") else None
        if pil_image is None:
            return

        buffer = io.BytesIO()
        pil_image.save(buffer, format="PNG")
        page = block.page or 1
        name = f"page{page}-image{number}.png"
        path = context.workspace.persist_binary(name, buffer.getvalue())

        block.image.file_path = path
        block.image.metadata[MetadataKeys.ARTIFACT_PATH] = path
        block.image.metadata[MetadataKeys.ARTIFACT_FILE_NAME] = name
        block.image.metadata[MetadataKeys.PAGE] = str(page)


def _page_of(item: Any) -> Optional[int]:
    prov = getattr(item, "prov", None)
    if prov:
        return getattr(prov[0], "page_no", None)
    return None


def _get_text(item: Any) -> str:
    """Extract text from a Docling item."""
    if getattr(item, "text", None):
        return item.text.strip()
    if getattr(item, "orig", None):
        return item.orig.strip()
    return ""


__all__ = ["DoclingExtractor", "DOCLING_EXTENSIONS", "Block", "assemble_pages"]
