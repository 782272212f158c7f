# docmark/cli/cli.py
"""
docmark CLI.

Commands:
    docmark convert PATH    Convert a document to markdown
    docmark formats         List registered extractors in dispatch order
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from docmark.logging.logger import configure_logging, get_logger
from docmark.logging.tags import CLI

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="docmark",
    help="docmark - convert documents into normalized markdown.",
    no_args_is_help=True,
    add_completion=False,
)


def _load(config: Optional[Path], overrides: dict):
    from docmark.config import load_config
    from docmark.config.loader import deep_merge
    from docmark.core.exceptions import ConfigError

    try:
        base = load_config(config).model_dump()
        return load_config(deep_merge(base, overrides))
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(2)


@app.command("convert")
def convert(
    path: Path = typer.Argument(..., help="Document to convert."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write markdown here instead of stdout."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
    keep_artifacts: bool = typer.Option(False, "--keep-artifacts", "-k", help="Keep the artifact workspace."),
    segment_metadata: bool = typer.Option(False, "--segment-metadata", help="Annotate each segment."),
    no_front_matter: bool = typer.Option(False, "--no-front-matter", help="Omit YAML front matter."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed progress."),
) -> None:
    """Convert a document to markdown."""
    from docmark.conversion.converter import DocumentConverter
    from docmark.core.exceptions import DocmarkError

    configure_logging(logging.DEBUG if verbose else logging.WARNING)

    if not path.is_file():
        err_console.print(f"[red]No such file:[/red] {path}")
        raise typer.Exit(1)

    overrides: dict = {}
    if keep_artifacts:
        overrides["storage"] = {"delete_on_release": False}
    segments: dict = {}
    if segment_metadata:
        segments["include_segment_metadata"] = True
    if no_front_matter:
        segments["include_front_matter"] = False
    if segments:
        overrides["segments"] = segments

    settings = _load(config, overrides)
    logger.debug(f"{CLI} Converting {path}")

    try:
        with DocumentConverter(config=settings).convert(path) as result:
            markdown = result.markdown
            workspace = result.workspace_directory
    except DocmarkError as e:
        err_console.print(f"[red]Conversion failed:[/red] {e}")
        raise typer.Exit(1)

    if output is None:
        typer.echo(markdown)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(markdown + "\n", encoding="utf-8")
        err_console.print(f"[green]Wrote[/green] {output}")

    if keep_artifacts and workspace is not None:
        err_console.print(f"Artifacts kept in {workspace}")


@app.command("formats")
def formats(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file."),
) -> None:
    """List registered extractors in dispatch order."""
    from docmark.extractors.registry import ExtractorRegistry

    settings = _load(config, {})
    registry = ExtractorRegistry(disabled=list(settings.disabled_extractors))

    table = Table(title="Extractors")
    table.add_column("Name", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Extensions")
    for registration in registry.registrations:
        extensions = sorted(getattr(registration.extractor, "supported_extensions", ()) or ())
        table.add_row(registration.name, f"{registration.priority:g}", " ".join(extensions))
    console.print(table)


def main() -> None:
    app()


__all__ = ["app", "main"]
