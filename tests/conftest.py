# tests/conftest.py
"""
Root conftest - shared fixtures for docmark tests.

Test Tiers:
- tier1: Pure logic tests - no I/O
         Run: pytest -m tier1
- tier2: Temp files, zip archives, mocked HTTP - no real services
         Run: pytest -m "tier1 or tier2"

Every fixture that touches disk roots its workspace under tmp_path, so no
test ever writes to the default ``.docmark/artifacts`` directory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Set

import pytest

from docmark.config import DocmarkConfig, load_config
from docmark.conversion.workspace import ArtifactWorkspace
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import Segment, SegmentType
from docmark.extractors.base import ExtractionContext, ExtractionResult
from docmark.extractors.registry import ExtractorRegistry

# =============================================================================
# Fake extractor
# =============================================================================


@dataclass
class FakeExtractor:
    """
    Configurable extractor for dispatch and engine tests.

    Accepts inputs whose extension is in ``extensions`` (or everything when
    ``extensions`` is empty) and whose content starts with ``magic``.
    """

    plugin_name: str = "fake"
    extensions: Set[str] = field(default_factory=set)
    magic: bytes = b""
    markdown: str = "fake content"
    error: Optional[Exception] = None
    calls: List[str] = field(default_factory=list)

    @property
    def supported_extensions(self) -> Set[str]:
        return self.extensions

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        return not self.extensions or descriptor.extension in self.extensions

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        if not self.magic:
            return True
        return stream.read(len(self.magic)) == self.magic

    def convert(self, stream: BinaryIO, descriptor: InputDescriptor, context) -> ExtractionResult:
        self.calls.append(descriptor.display_name)
        if self.error is not None:
            raise self.error
        return ExtractionResult(
            segments=[Segment(markdown=self.markdown, type=SegmentType.SECTION, number=1)]
        )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def artifact_root(tmp_path):
    root = tmp_path / "artifacts"
    root.mkdir()
    return root


@pytest.fixture
def config(artifact_root) -> DocmarkConfig:
    """Default config with workspaces under tmp_path."""
    return load_config({"storage": {"artifact_directory": str(artifact_root)}})


@pytest.fixture
def workspace(tmp_path):
    ws = ArtifactWorkspace.create(tmp_path / "workspace")
    yield ws
    ws.release()


@pytest.fixture
def registry() -> ExtractorRegistry:
    return ExtractorRegistry()


@pytest.fixture
def context(workspace, config, registry) -> ExtractionContext:
    return ExtractionContext(workspace=workspace, config=config, registry=registry)


@pytest.fixture
def fake_extractor_cls():
    return FakeExtractor
