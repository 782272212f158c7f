# docmark/extractors/plugins/plaintext.py
"""
Plain text extractor for text, markdown and source files.

Markdown passes through untouched; source and config files are wrapped in a
fenced code block tagged with their language. Inputs with no extension or
mime type are accepted when the first bytes look like text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional, Set

from docmark.conversion.buffering import peek_prefix
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import Segment, SegmentType
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.registry import PRIORITY_GENERIC_FORMAT
from docmark.logging.logger import get_logger
from docmark.logging.tags import EXTRACT

logger = get_logger(__name__)

SNIFF_BYTES = 4096

MARKDOWN_EXTENSIONS: Set[str] = {".md", ".markdown", ".mdown", ".mkd"}

# Extension -> fence language for source / config files
CODE_LANGUAGES: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".css": "css",
    ".scss": "scss",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cc": "cpp",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".scala": "scala",
    ".swift": "swift",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".pl": "perl",
    ".lua": "lua",
    ".r": "r",
    ".jl": "julia",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "zsh",
    ".ps1": "powershell",
    ".bat": "bat",
    ".sql": "sql",
    ".graphql": "graphql",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".ini": "ini",
    ".cfg": "ini",
    ".xml": "xml",
}

PLAINTEXT_EXTENSIONS: Set[str] = (
    {".txt", ".text", ".rst", ".log", ".conf", ".env"} | MARKDOWN_EXTENSIONS | set(CODE_LANGUAGES)
)


def decode_text(data: bytes, charset: Optional[str] = None) -> str:
    """Decode bytes using the declared charset, then UTF-8, then latin-1."""
    for encoding in (charset, "utf-8-sig"):
        if not encoding:
            continue
        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return data.decode("latin-1")


def looks_like_text(prefix: bytes) -> bool:
    """Heuristic: no NUL bytes and valid UTF-8 (allowing a cut multibyte tail)."""
    if not prefix:
        return True
    if b"\x00" in prefix:
        return False
    try:
        prefix.decode("utf-8")
    except UnicodeDecodeError as e:
        return e.start >= len(prefix) - 3
    return True


@dataclass
class PlainTextExtractor:
    """
    Extractor for plain text, markdown and source files.

    Example:
        extractor = PlainTextExtractor()
        result = extractor.convert(stream, descriptor, context)
        result.segments[0].markdown
    """

    plugin_name: str = field(default="plaintext", repr=False)
    supported_extensions: Set[str] = field(default_factory=lambda: set(PLAINTEXT_EXTENSIONS))
    priority: float = PRIORITY_GENERIC_FORMAT
    fence_code: bool = True

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        if descriptor.extension in self.supported_extensions:
            return True
        if descriptor.matches_mime("text/"):
            return True
        # Unknown inputs get a content sniff
        return descriptor.extension is None and descriptor.mime_type is None

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        if descriptor.extension in self.supported_extensions or descriptor.matches_mime("text/"):
            return True
        return looks_like_text(peek_prefix(stream, SNIFF_BYTES))

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        context.raise_if_cancelled()
        text = decode_text(stream.read(), descriptor.charset).replace("\r\n", "\n")

        language = CODE_LANGUAGES.get(descriptor.extension or "")
        if self.fence_code and language and text.strip():
            markdown = f"```{language}\n{text.rstrip()}\n```"
        else:
            markdown = text.strip()

        logger.debug(f"{EXTRACT} {descriptor.display_name}: {len(text)} chars")

        segment = Segment(
            markdown=markdown,
            type=SegmentType.SECTION,
            number=1,
            source=descriptor.filename,
        )
        return ExtractionResult(
            segments=[segment] if markdown else [],
            metadata={"source_extension": descriptor.extension or ""},
        )


__all__ = ["PlainTextExtractor", "PLAINTEXT_EXTENSIONS", "decode_text", "looks_like_text"]
