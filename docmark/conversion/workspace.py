# docmark/conversion/workspace.py
"""
Artifact workspace: a scoped, disk-backed staging area for one conversion.

Extractors persist large payloads (source copies, images, buffered members)
here instead of holding them in memory. The workspace is released exactly
once per conversion, on every exit path:

    with create_workspace(descriptor, storage) as workspace:
        path = workspace.persist_binary("image1.png", data)

    async with create_workspace(descriptor, storage) as workspace:
        ...

Persistence failures propagate as ResourceError. Release failures are
logged and suppressed so they never mask the primary result or error.
"""

from __future__ import annotations

import asyncio
import re
import secrets
import shutil
import threading
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Optional

from docmark.core.exceptions import ResourceError
from docmark.logging.logger import get_logger
from docmark.logging.tags import WORKSPACE

if TYPE_CHECKING:
    from docmark.config.schema import StorageOptions
    from docmark.core.cancellation import CancellationToken
    from docmark.core.descriptor import InputDescriptor

logger = get_logger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_name(name: Optional[str], fallback: str = "artifact") -> str:
    """
    Turn an arbitrary name into a safe single path component.

    Separators and unsafe characters become underscores; leading dots are
    dropped so the result can never be '.', '..' or a hidden file.
    """
    if not name:
        return fallback
    cleaned = _UNSAFE_CHARS.sub("_", name.strip()).lstrip("._").rstrip("_")
    return cleaned[:120] or fallback


def default_artifact_root() -> Path:
    """Default parent for workspaces: {CWD}/.docmark/artifacts/"""
    return Path.cwd() / ".docmark" / "artifacts"


class ArtifactWorkspace:
    """
    Directory-scoped staging area with a deletion policy.

    All persist methods return the absolute destination path as a string.
    ``release()`` and ``arelease()`` are idempotent and share one guard.
    """

    def __init__(self, root: Path, delete_on_release: bool = True):
        self._root = Path(root).resolve()
        self.delete_on_release = delete_on_release
        self._lock = threading.Lock()
        self._released = False

    @classmethod
    def create(cls, root: Path | str, delete_on_release: bool = True) -> "ArtifactWorkspace":
        """Create the directory (and parents) and return a workspace over it."""
        path = Path(root)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(f"Cannot create workspace at {path}: {e}") from e
        logger.debug(f"{WORKSPACE} Created {path} (delete_on_release={delete_on_release})")
        return cls(path, delete_on_release=delete_on_release)

    @property
    def directory(self) -> Path:
        return self._root

    @property
    def released(self) -> bool:
        return self._released

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def resolve(self, name: str) -> Path:
        """Destination path for ``name`` inside the workspace."""
        if self._released:
            raise ResourceError(f"Workspace {self._root} has been released")
        return self._root / sanitize_name(name)

    def persist_binary(self, name: str, data: bytes) -> str:
        target = self.resolve(name)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise ResourceError(f"Failed to persist '{name}' to {self._root}: {e}") from e
        return str(target)

    def persist_text(self, name: str, text: str, encoding: str = "utf-8") -> str:
        target = self.resolve(name)
        try:
            target.write_text(text, encoding=encoding)
        except OSError as e:
            raise ResourceError(f"Failed to persist '{name}' to {self._root}: {e}") from e
        return str(target)

    def persist_file(self, name: str, source_path: Path | str) -> str:
        """Copy an existing file into the workspace."""
        target = self.resolve(name)
        try:
            shutil.copyfile(source_path, target)
        except OSError as e:
            raise ResourceError(f"Failed to copy {source_path} into {self._root}: {e}") from e
        return str(target)

    def persist_stream(
        self,
        name: str,
        stream: BinaryIO,
        cancel: Optional["CancellationToken"] = None,
        chunk_size: int = COPY_CHUNK_SIZE,
    ) -> str:
        """
        Copy a stream into the workspace in chunks.

        A cancelled copy removes the partial file before ConversionCancelled
        propagates.
        """
        target = self.resolve(name)
        try:
            with target.open("wb") as out:
                while True:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    chunk = stream.read(chunk_size)
                    if not chunk:
                        break
                    out.write(chunk)
        except OSError as e:
            target.unlink(missing_ok=True)
            raise ResourceError(f"Failed to persist '{name}' to {self._root}: {e}") from e
        except BaseException:
            target.unlink(missing_ok=True)
            raise
        return str(target)

    def child(self, name: str) -> "ArtifactWorkspace":
        """
        A disjoint sub-workspace (e.g. for one archive member).

        The child never deletes anything itself; it is removed with its parent.
        """
        path = self.resolve(name)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceError(f"Cannot create workspace at {path}: {e}") from e
        return ArtifactWorkspace(path, delete_on_release=False)

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    def release(self) -> None:
        """Release the workspace, deleting it if configured. Safe to call twice."""
        with self._lock:
            if self._released:
                return
            self._released = True

        if not self.delete_on_release:
            logger.debug(f"{WORKSPACE} Retained {self._root}")
            return

        try:
            shutil.rmtree(self._root)
            logger.debug(f"{WORKSPACE} Deleted {self._root}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"{WORKSPACE} Failed to delete {self._root}: {e}")

    async def arelease(self) -> None:
        """Asynchronous release; runs the deletion off the event loop."""
        await asyncio.to_thread(self.release)

    def __enter__(self) -> "ArtifactWorkspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> "ArtifactWorkspace":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.arelease()

    def __repr__(self) -> str:
        state = "released" if self._released else "active"
        return f"ArtifactWorkspace({str(self._root)!r}, {state})"


def create_workspace(
    descriptor: "InputDescriptor",
    storage: "StorageOptions",
) -> ArtifactWorkspace:
    """
    Create the workspace for one conversion call.

    Layout: <artifact_root>/<sanitized-stem>-<random hex>/
    """
    root = Path(storage.artifact_directory) if storage.artifact_directory else default_artifact_root()
    name = f"{sanitize_name(descriptor.stem, fallback='document')}-{secrets.token_hex(4)}"
    return ArtifactWorkspace.create(root / name, delete_on_release=storage.delete_on_release)


__all__ = [
    "ArtifactWorkspace",
    "create_workspace",
    "default_artifact_root",
    "sanitize_name",
]
