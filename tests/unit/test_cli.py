# tests/unit/test_cli.py
"""
Tests for the docmark CLI.
"""

import pytest
from typer.testing import CliRunner

from docmark.cli.cli import app

pytestmark = pytest.mark.tier2

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, artifact_root):
    path = tmp_path / "docmark.yaml"
    path.write_text(f"docmark:\n  storage:\n    artifact_directory: '{artifact_root.as_posix()}'\n")
    return path


class TestConvert:
    """docmark convert"""

    def test_convert_to_file(self, tmp_path, config_file, artifact_root):
        source = tmp_path / "notes.md"
        source.write_text("# Notes\n\nSome text")
        output = tmp_path / "out" / "notes.md"

        result = runner.invoke(app, ["convert", str(source), "-o", str(output), "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        text = output.read_text(encoding="utf-8")
        assert text.startswith("---\ntitle: Notes\n")
        assert text.endswith("Some text\n")
        assert not any(p.is_dir() for p in artifact_root.iterdir())

    def test_convert_to_stdout_without_front_matter(self, tmp_path, config_file):
        source = tmp_path / "staff.csv"
        source.write_text("name,dept\nAnn,Eng\n")

        result = runner.invoke(app, ["convert", str(source), "--no-front-matter", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("| name | dept |")

    def test_keep_artifacts(self, tmp_path, config_file, artifact_root):
        source = tmp_path / "a.txt"
        source.write_text("hello")

        result = runner.invoke(app, ["convert", str(source), "-k", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert len([p for p in artifact_root.iterdir() if p.is_dir()]) == 1

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["convert", str(tmp_path / "missing.pdf")])
        assert result.exit_code == 1

    def test_bad_config(self, tmp_path):
        source = tmp_path / "a.txt"
        source.write_text("hello")
        bad = tmp_path / "bad.yaml"
        bad.write_text("storage:\n  nonsense: 1\n")

        result = runner.invoke(app, ["convert", str(source), "-c", str(bad)])
        assert result.exit_code == 2


class TestFormats:
    """docmark formats"""

    def test_lists_extractors(self):
        result = runner.invoke(app, ["formats"])

        assert result.exit_code == 0
        assert "csv" in result.stdout
        assert "plaintext" in result.stdout

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "convert" in result.stdout
