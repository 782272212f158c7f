# tests/unit/test_tables.py
"""
Tests for merged-cell reconstruction and multi-page table continuation.
"""

import pytest

from docmark.conversion.tables import (
    CellSpan,
    TableCell,
    TableFragment,
    annotate_table,
    cells_from_spans,
    merge_continued_tables,
    parse_markdown_table,
    reconstruct_rows,
    render_markdown_table,
    render_table_block,
    strip_table_annotations,
)
from docmark.core.document import TableArtifact
from docmark.core.metadata import MetadataKeys

pytestmark = pytest.mark.tier1


class TestReconstructRows:
    """Tests for expanding merged cells."""

    def test_vertical_merge_copies_value_above(self):
        rows = [
            [TableCell("Region"), TableCell("Q1")],
            [TableCell("North"), TableCell("10")],
            [TableCell(continue_above=True), TableCell("12")],
        ]

        assert reconstruct_rows(rows) == [["Region", "Q1"], ["North", "10"], ["North", "12"]]

    def test_horizontal_span_replicates(self):
        rows = [[TableCell("Sales", col_span=2), TableCell("Notes")], ["a", "b", "c"]]

        assert reconstruct_rows(rows) == [["Sales", "Sales", "Notes"], ["a", "b", "c"]]

    def test_rows_padded_to_max_columns(self):
        rows = reconstruct_rows([["a"], ["b", "c"]], max_columns=3)

        assert rows == [["a", "", ""], ["b", "c", ""]]
        assert all(len(r) == 3 for r in rows)

    def test_rows_truncated_to_max_columns(self):
        assert reconstruct_rows([["a", "b", "c"]], max_columns=2) == [["a", "b"]]

    def test_continue_in_first_row_is_empty(self):
        assert reconstruct_rows([[TableCell(continue_above=True), "x"]]) == [["", "x"]]

    def test_round_trip_through_markdown(self):
        rows = reconstruct_rows(
            [
                [TableCell("Name"), TableCell("Score", col_span=2)],
                [TableCell("Ann"), "1", "2"],
                [TableCell(continue_above=True), "3", "4"],
            ]
        )

        parsed = parse_markdown_table(render_markdown_table(rows))

        assert len(parsed) == len(rows)
        assert all(len(r) == 3 for r in parsed)
        assert parsed[2] == ["Ann", "3", "4"]


class TestCellsFromSpans:
    """Tests for offset-based cell input."""

    def test_row_span_becomes_continuation(self):
        spans = [
            CellSpan(row=0, col=0, row_span=2, col_span=1, text="Group"),
            CellSpan(row=0, col=1, row_span=1, col_span=1, text="a"),
            CellSpan(row=1, col=1, row_span=1, col_span=1, text="b"),
        ]

        assert reconstruct_rows(cells_from_spans(spans)) == [["Group", "a"], ["Group", "b"]]

    def test_col_span_and_gaps(self):
        spans = [
            CellSpan(row=0, col=0, row_span=1, col_span=2, text="Wide"),
            CellSpan(row=1, col=1, row_span=1, col_span=1, text="x"),
        ]

        assert reconstruct_rows(cells_from_spans(spans)) == [["Wide", "Wide"], ["", "x"]]

    def test_empty(self):
        assert cells_from_spans([]) == []


class TestMergeContinuedTables:
    """Tests for stitching tables split across pages."""

    def _fragments(self, **second):
        first = TableFragment(rows=[["Item", "Qty"], ["A", "1"]], page_number=15)
        defaults = dict(rows=[["Item", "Qty"], ["B", "2"]], page_number=16)
        defaults.update(second)
        return [first, TableFragment(**defaults)]

    def test_repeated_header_on_next_page_merges(self):
        fragments = self._fragments()
        tables = merge_continued_tables(fragments)

        assert len(tables) == 1
        table = tables[0]
        assert table.rows == [["Item", "Qty"], ["A", "1"], ["B", "2"]]
        assert table.metadata[MetadataKeys.TABLE_PAGE_RANGE] == "15-16"
        assert table.metadata[MetadataKeys.TABLE_PAGE_START] == "15"
        assert table.metadata[MetadataKeys.TABLE_PAGE_END] == "16"
        assert fragments[1].continued

    def test_single_continuation_comment(self):
        block = render_table_block(merge_continued_tables(self._fragments())[0])

        assert block.count("<!--") == 1
        assert block.startswith("<!-- Table 1 continues on page 16 (pages 15-16) -->\n| Item | Qty |")

    def test_header_match_ignores_case_and_spacing(self):
        tables = merge_continued_tables(self._fragments(rows=[["ITEM ", " qty"], ["B", "2"]]))
        assert len(tables) == 1

    def test_content_between_prevents_merge(self):
        tables = merge_continued_tables(self._fragments(preceded_by_content=True))
        assert len(tables) == 2

    def test_non_adjacent_page_prevents_merge(self):
        tables = merge_continued_tables(self._fragments(page_number=18))
        assert len(tables) == 2
        assert tables[1].metadata[MetadataKeys.TABLE_INDEX] == "2"
        assert MetadataKeys.TABLE_COMMENT not in tables[1].metadata

    def test_different_header_prevents_merge(self):
        tables = merge_continued_tables(self._fragments(rows=[["Other", "Cols"], ["B", "2"]]))
        assert len(tables) == 2

    def test_three_pages(self):
        fragments = self._fragments() + [
            TableFragment(rows=[["Item", "Qty"], ["C", "3"]], page_number=17)
        ]
        table = merge_continued_tables(fragments)[0]

        assert table.row_count == 3
        assert table.metadata[MetadataKeys.TABLE_COMMENT] == (
            "<!-- Table 1 continues on pages 16-17 (pages 15-17) -->"
        )


class TestRendering:
    """Tests for markdown rendering and parsing."""

    def test_escapes_pipes_and_newlines(self):
        markdown = render_markdown_table([["a|b", "line1\nline2"], ["x", "y"]])

        assert "a\\|b" in markdown
        assert "line1<br>line2" in markdown
        assert parse_markdown_table(markdown)[0] == ["a|b", "line1<br>line2"]

    def test_empty_cells_survive_parsing(self):
        parsed = parse_markdown_table(render_markdown_table([["a", "", "c"]]))
        assert parsed == [["a", "", "c"]]

    def test_empty_table(self):
        assert render_markdown_table([]) == ""

    def test_strip_annotations(self):
        table = TableArtifact(rows=[["h"], ["v"]])
        annotate_table(table, 3, 4, 5)
        block = render_table_block(table)

        assert strip_table_annotations(block) == render_markdown_table(table.rows)

    def test_single_page_annotation(self):
        table = TableArtifact(rows=[["h"]])
        annotate_table(table, 1, 7, None)

        assert table.metadata[MetadataKeys.TABLE_PAGE_RANGE] == "7"
        assert render_table_block(table) == "| h |\n| --- |"
