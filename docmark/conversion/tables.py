# docmark/conversion/tables.py
"""
Merged-cell table reconstruction, shared by every tabular extractor.

Source formats describe tables with spanning cells: a cell may continue the
cell above it (vertical merge) or cover several logical columns (horizontal
span). Downstream consumers want self-contained rows, so:

    - a "continue" cell copies the value at the same column from the
      previous materialized row
    - a cell spanning N columns is replicated into N slots
    - every row is padded with "" to exactly ``max_columns`` entries

Tables split across pages are stitched back together when the header row
recurs at the top of the next page directly after the previous fragment.
The merged table records its page range in metadata and renders with one
continuation comment immediately before the markdown table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

from docmark.core.document import TableArtifact
from docmark.core.metadata import MetadataKeys

# =============================================================================
# Merged-cell reconstruction
# =============================================================================


@dataclass
class TableCell:
    """One source cell: text, horizontal span, and whether it continues the cell above."""

    text: str = ""
    col_span: int = 1
    continue_above: bool = False


class CellSpan(NamedTuple):
    """A cell described by grid offsets (Docling / HTML style)."""

    row: int
    col: int
    row_span: int
    col_span: int
    text: str


def reconstruct_rows(
    rows: Sequence[Sequence[Union[TableCell, str]]],
    max_columns: Optional[int] = None,
) -> List[List[str]]:
    """
    Expand merged cells into self-contained rows.

    Args:
        rows: Logical rows, top to bottom. Plain strings are single cells.
        max_columns: Output width. Defaults to the widest expanded row.

    Returns:
        Rows of exactly ``max_columns`` strings each.
    """
    materialized: List[List[str]] = []

    for row in rows:
        out: List[str] = []
        previous = materialized[-1] if materialized else []
        for cell in row:
            if isinstance(cell, str):
                cell = TableCell(cell)
            for _ in range(max(cell.col_span, 1)):
                column = len(out)
                if cell.continue_above:
                    out.append(previous[column] if column < len(previous) else "")
                else:
                    out.append(cell.text)
        materialized.append(out)

    width = max_columns if max_columns is not None else max((len(r) for r in materialized), default=0)
    return [_fit_row(r, width) for r in materialized]


def _fit_row(row: List[str], width: int) -> List[str]:
    if len(row) < width:
        return row + [""] * (width - len(row))
    return row[:width]


def cells_from_spans(spans: Iterable[CellSpan]) -> List[List[TableCell]]:
    """
    Convert offset-based cells into logical rows with continuation markers.

    A cell with ``row_span`` > 1 appears as itself in its first row and as a
    ``continue_above`` cell in each row it covers below. Gaps in the grid
    become empty cells. Overlapping cells (malformed input) are ignored.
    """
    spans = list(spans)
    if not spans:
        return []

    n_rows = max(s.row + max(s.row_span, 1) for s in spans)
    n_cols = max(s.col + max(s.col_span, 1) for s in spans)
    by_row: List[Dict[int, TableCell]] = [dict() for _ in range(n_rows)]

    for span in sorted(spans, key=lambda s: (s.row, s.col)):
        col_span = max(span.col_span, 1)
        for offset in range(max(span.row_span, 1)):
            row_cells = by_row[span.row + offset]
            if span.col in row_cells:
                continue
            row_cells[span.col] = TableCell(
                text=span.text if offset == 0 else "",
                col_span=col_span,
                continue_above=offset > 0,
            )

    rows: List[List[TableCell]] = []
    for row_cells in by_row:
        row: List[TableCell] = []
        column = 0
        while column < n_cols:
            cell = row_cells.get(column)
            if cell is None:
                row.append(TableCell(""))
                column += 1
            else:
                row.append(cell)
                column += max(cell.col_span, 1)
        rows.append(row)
    return rows


# =============================================================================
# Multi-page continuation
# =============================================================================


@dataclass
class TableFragment:
    """
    A table as it appears on one page.

    ``preceded_by_content`` is True when anything other than page furniture
    sits between this fragment and the previous table. ``continued`` is set
    by merge_continued_tables when the fragment was folded into an earlier
    table.
    """

    rows: List[List[str]]
    page_number: Optional[int] = None
    preceded_by_content: bool = False
    source: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    continued: bool = False


def _signature(row: Sequence[str]) -> tuple:
    return tuple(" ".join(cell.split()).casefold() for cell in row)


def _continues(table: TableArtifact, end_page: Optional[int], fragment: TableFragment) -> bool:
    if fragment.preceded_by_content or not fragment.rows or not table.rows:
        return False
    if end_page is None or fragment.page_number is None:
        return False
    if fragment.page_number != end_page + 1:
        return False
    header = _signature(table.header)
    return any(header) and _signature(fragment.rows[0]) == header


def merge_continued_tables(fragments: Iterable[TableFragment]) -> List[TableArtifact]:
    """
    Stitch page fragments into logical tables.

    A fragment continues the previous table when it starts on the very next
    page, nothing sits between them, and its first row repeats the header.
    The repeated header is dropped. Each table gets ``table_index`` and page
    range metadata; multi-page tables also get a ``table_comment``.
    """
    tables: List[TableArtifact] = []
    end_pages: List[Optional[int]] = []

    for fragment in fragments:
        if not fragment.rows:
            continue
        if tables and _continues(tables[-1], end_pages[-1], fragment):
            width = tables[-1].column_count
            tables[-1].rows.extend(_fit_row(list(r), width) for r in fragment.rows[1:])
            end_pages[-1] = fragment.page_number
            fragment.continued = True
            continue
        tables.append(
            TableArtifact(
                rows=[list(r) for r in fragment.rows],
                page_number=fragment.page_number,
                source=fragment.source,
                metadata=dict(fragment.metadata),
            )
        )
        end_pages.append(fragment.page_number)

    for index, (table, end_page) in enumerate(zip(tables, end_pages), start=1):
        annotate_table(table, index, table.page_number, end_page)
    return tables


def annotate_table(
    table: TableArtifact,
    index: int,
    start_page: Optional[int],
    end_page: Optional[int],
) -> None:
    """Record index and page range metadata (and the continuation comment) on a table."""
    table.metadata[MetadataKeys.TABLE_INDEX] = str(index)
    if start_page is None:
        return
    end_page = end_page if end_page is not None else start_page
    table.metadata[MetadataKeys.TABLE_PAGE_START] = str(start_page)
    table.metadata[MetadataKeys.TABLE_PAGE_END] = str(end_page)
    if end_page > start_page:
        page_range = f"{start_page}-{end_page}"
        continued = (
            f"page {start_page + 1}"
            if end_page == start_page + 1
            else f"pages {start_page + 1}-{end_page}"
        )
        table.metadata[MetadataKeys.TABLE_PAGE_RANGE] = page_range
        table.metadata[MetadataKeys.TABLE_COMMENT] = (
            f"<!-- Table {index} continues on {continued} (pages {page_range}) -->"
        )
    else:
        table.metadata[MetadataKeys.TABLE_PAGE_RANGE] = str(start_page)


# =============================================================================
# Markdown rendering / parsing
# =============================================================================

_TABLE_COMMENT_LINE = re.compile(
    r"^<!-- Table \d+ continues on pages? [\d-]+ \(pages \d+-\d+\) -->[ \t]*\n?",
    re.MULTILINE,
)
_UNESCAPED_PIPE = re.compile(r"(?<!\\)\|")


def _escape_cell(value: str) -> str:
    value = value.replace("\r\n", "\n").replace("|", "\\|")
    return "<br>".join(part.strip() for part in value.split("\n")).strip()


def render_markdown_table(rows: Sequence[Sequence[str]]) -> str:
    """Render rows (header first) as a GitHub-flavored markdown table."""
    if not rows:
        return ""
    width = max(len(r) for r in rows)
    if width == 0:
        return ""
    fitted = [_fit_row([_escape_cell(c) for c in r], width) for r in rows]

    lines = ["| " + " | ".join(fitted[0]) + " |", "| " + " | ".join(["---"] * width) + " |"]
    lines.extend("| " + " | ".join(r) + " |" for r in fitted[1:])
    return "\n".join(lines)


def render_table_block(table: TableArtifact) -> str:
    """Markdown for a table artifact, preceded by its continuation comment if any."""
    markdown = render_markdown_table(table.rows)
    comment = table.metadata.get(MetadataKeys.TABLE_COMMENT)
    return f"{comment}\n{markdown}" if comment else markdown


def _is_separator_row(cells: List[str]) -> bool:
    return bool(cells) and all(re.fullmatch(r":?-{3,}:?", c) for c in cells)


def parse_markdown_table(text: str) -> List[List[str]]:
    """
    Parse a markdown table back into rows (header first).

    Comment lines and the separator row are skipped; empty cells are kept.
    """
    rows: List[List[str]] = []
    for line in text.strip().splitlines():
        line = line.strip()
        if not line or line.startswith("<!--"):
            continue
        if line.startswith("|"):
            line = line[1:]
        if line.endswith("|") and not line.endswith("\\|"):
            line = line[:-1]
        cells = [c.strip().replace("\\|", "|") for c in _UNESCAPED_PIPE.split(line)]
        if _is_separator_row(cells):
            continue
        rows.append(cells)
    return rows


def strip_table_annotations(markdown: str) -> str:
    """Remove table continuation comments, leaving the tables untouched."""
    return _TABLE_COMMENT_LINE.sub("", markdown)


__all__ = [
    "TableCell",
    "CellSpan",
    "TableFragment",
    "reconstruct_rows",
    "cells_from_spans",
    "merge_continued_tables",
    "annotate_table",
    "render_markdown_table",
    "render_table_block",
    "parse_markdown_table",
    "strip_table_annotations",
]
