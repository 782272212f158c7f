# docmark/extractors/plugins/csv.py
"""
CSV/TSV extractor.

Renders the file as one markdown table. Ragged rows are squared off through
the shared table reconstruction so every row has the header's width (or the
widest row's, if longer).
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from typing import BinaryIO, Set

from docmark.conversion.tables import annotate_table, reconstruct_rows, render_table_block
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, Segment, SegmentType, TableArtifact
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.plugins.plaintext import decode_text
from docmark.extractors.registry import PRIORITY_SPECIFIC_FORMAT
from docmark.logging.logger import get_logger
from docmark.logging.tags import EXTRACT

logger = get_logger(__name__)

CSV_MIME_TYPES = ("text/csv", "application/csv", "text/tab-separated-values")


@dataclass
class CSVExtractor:
    """
    Extractor for CSV and TSV files.

    Example:
        result = CSVExtractor().convert(stream, descriptor, context)
        result.artifacts.tables[0].header  # ['employee_id', 'name', ...]
    """

    plugin_name: str = field(default="csv", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: {".csv", ".tsv"}, repr=False)
    priority: float = PRIORITY_SPECIFIC_FORMAT
    max_rows: int = 100000  # Safety limit for very large files

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        return descriptor.extension in self.supported_extensions or descriptor.matches_mime(
            *CSV_MIME_TYPES
        )

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        return True

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        context.raise_if_cancelled()
        tsv = descriptor.extension == ".tsv" or descriptor.matches_mime("text/tab-separated-values")
        text = decode_text(stream.read(), descriptor.charset)

        reader = csv.reader(io.StringIO(text, newline=""), delimiter="\t" if tsv else ",")
        all_rows = [row for row in reader if any(cell.strip() for cell in row)]

        if not all_rows:
            return ExtractionResult(metadata={"row_count": "0"})

        if len(all_rows) - 1 > self.max_rows:
            logger.warning(
                f"{EXTRACT} {descriptor.display_name} has {len(all_rows) - 1} rows, "
                f"limiting to {self.max_rows}"
            )
            all_rows = all_rows[: self.max_rows + 1]

        width = max(len(r) for r in all_rows)
        rows = reconstruct_rows(all_rows, max_columns=width)

        table = TableArtifact(rows=rows, source=descriptor.filename, segment_index=0)
        annotate_table(table, 1, None, None)
        markdown = render_table_block(table)
        table.placeholder_markdown = markdown

        logger.debug(f"{EXTRACT} {descriptor.display_name}: {width} columns, {table.row_count} rows")

        segment = Segment(
            markdown=markdown,
            type=SegmentType.TABLE,
            number=1,
            label=descriptor.stem,
            source=descriptor.filename,
        )
        return ExtractionResult(
            segments=[segment],
            artifacts=ConversionArtifacts(tables=[table]),
            metadata={
                "column_count": str(width),
                "row_count": str(table.row_count),
                "file_type": "tsv" if tsv else "csv",
            },
        )


__all__ = ["CSVExtractor"]
