# tests/unit/test_archive.py
"""
Tests for ZipExtractor.

Verifies:
1. Members are processed in name order and re-dispatched through the registry
2. Empty, oversized, unsupported and broken members are annotated, never dropped
3. Nested artifacts point at the right segment after re-indexing
"""

import base64
import io
import json
import zipfile

import pytest

from docmark.config import load_config
from docmark.core.descriptor import InputDescriptor
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext
from docmark.extractors.plugins.archive import ZipExtractor, format_size

pytestmark = pytest.mark.tier2

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _zip(members) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def _notebook_with_image() -> bytes:
    notebook = {
        "metadata": {},
        "cells": [
            {
                "cell_type": "code",
                "source": "plot()",
                "outputs": [
                    {"output_type": "display_data", "data": {"image/png": base64.b64encode(PNG_BYTES).decode()}}
                ],
            }
        ],
    }
    return json.dumps(notebook).encode()


@pytest.fixture
def archive_context(workspace, artifact_root, registry):
    config = load_config(
        {
            "storage": {"artifact_directory": str(artifact_root)},
            "archive": {"max_member_bytes": 2000},
        }
    )
    return ExtractionContext(workspace=workspace, config=config, registry=registry)


@pytest.fixture
def bundle() -> bytes:
    return _zip(
        {
            "nested.zip": _zip({"nb.ipynb": _notebook_with_image()}),
            "empty.txt": b"",
            "blob.bin": b"\x00\x01\x02\x03",
            "big.txt": b"x" * 5000,
            "bad.ipynb": b'{"cells": [',
            "b.csv": b"h1,h2\n1,2\n",
            "a.txt": b"hello from a",
        }
    )


def _convert(bundle, context):
    extractor = ZipExtractor()
    descriptor = InputDescriptor(filename="bundle.zip")
    assert extractor.accepts_content(io.BytesIO(bundle), descriptor)
    return extractor.convert(io.BytesIO(bundle), descriptor, context)


class TestZipExtractor:
    """Tests for archive conversion."""

    def test_members_in_name_order(self, bundle, archive_context):
        result = _convert(bundle, archive_context)

        headers = [s.markdown.splitlines()[0] for s in result.segments if s.markdown.startswith("## File: ")]
        assert headers == [
            "## File: a.txt",
            "## File: b.csv",
            "## File: bad.ipynb",
            "## File: big.txt",
            "## File: blob.bin",
            "## File: empty.txt",
            "## File: nested.zip",
            "## File: nb.ipynb",
        ]

    def test_header_counts_processed_members(self, bundle, archive_context):
        result = _convert(bundle, archive_context)

        assert result.segments[0].markdown == "# Content from bundle.zip (3 of 7 files processed)"
        assert result.title == "Content from bundle.zip"
        assert result.metadata[MetadataKeys.ARCHIVE_MEMBERS] == "7"

    def test_problem_members_are_annotated(self, bundle, archive_context):
        markdown = "\n".join(s.markdown for s in _convert(bundle, archive_context).segments)

        assert "*Empty file*" in markdown
        assert "*Skipped: file exceeds size limit (4.9 KB)*" in markdown
        assert "*Unsupported file type: .bin*" in markdown
        assert "*Error processing file: Extractor 'notebook' failed:" in markdown

    def test_member_content_and_metadata(self, bundle, archive_context):
        result = _convert(bundle, archive_context)

        text = next(s for s in result.segments if s.markdown == "hello from a")
        assert text.source == "a.txt"
        assert text.additional_metadata[MetadataKeys.ARCHIVE_MEMBER] == "a.txt"
        assert text.additional_metadata[MetadataKeys.EXTRACTOR] == "plaintext"

    def test_artifact_indices_point_at_owning_segments(self, bundle, archive_context):
        result = _convert(bundle, archive_context)

        table = result.artifacts.tables[0]
        assert table.placeholder_markdown in result.segments[table.segment_index].markdown

        image = result.artifacts.images[0]
        assert image.placeholder_markdown in result.segments[image.segment_index].markdown

    def test_parallel_matches_sequential(self, bundle, archive_context):
        sequential = [s.markdown for s in _convert(bundle, archive_context).segments]

        archive_context.config.archive.parallel = True
        parallel = [s.markdown for s in _convert(bundle, archive_context).segments]

        assert parallel == sequential

    def test_nothing_processed(self, archive_context):
        result = _convert(_zip({"empty.txt": b""}), archive_context)

        assert result.segments[0].markdown == "# Content from bundle.zip"
        assert result.segments[-1].markdown == "*No files could be processed from this archive.*"

    def test_rejects_non_zip_content(self):
        assert not ZipExtractor().accepts_content(io.BytesIO(b"not a zip"), InputDescriptor(filename="a.zip"))


class TestFormatSize:
    """Tests for human-readable sizes."""

    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0 B"), (512, "512 B"), (2048, "2.0 KB"), (5 * 1024 * 1024, "5.0 MB")],
    )
    def test_format(self, size, expected):
        assert format_size(size) == expected
