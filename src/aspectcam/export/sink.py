"""Export sink for finished artifacts.

Tries a native save target first (e.g. a camera roll directory) and falls
back to a plain download copy. Export never raises to the caller.
"""

import asyncio
import logging
import os
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol

from aspectcam.artifacts.manager import ArtifactSet
from aspectcam.artifacts.models import Artifact
from aspectcam.errors import ExportUnsupported

logger = logging.getLogger(__name__)


class ExportResult(str, Enum):
    """How an artifact left the application."""

    SAVED = "saved"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class NativeSaveTarget(Protocol):
    """Protocol for platform save targets."""

    def can_save(self, artifact: Artifact) -> bool:
        ...

    def save(self, artifact: Artifact) -> Path:
        """Persist the artifact.

        Raises:
            ExportUnsupported: If the target cannot take this artifact
        """
        ...


def _unique_path(directory: Path, filename: str) -> Path:
    """Timestamped destination that does not collide with existing files."""
    stem, suffix = os.path.splitext(filename)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    candidate = directory / f"{stem}-{stamp}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}-{stamp}-{counter}{suffix}"
        counter += 1
    return candidate


def _write_artifact(artifact: Artifact, destination: Path) -> None:
    """Copy the handle's backing file, or write the payload if there is none."""
    if artifact.handle is not None and artifact.handle.is_live and artifact.handle.path.exists():
        shutil.copyfile(artifact.handle.path, destination)
    else:
        destination.write_bytes(artifact.payload)


class CameraRollTarget:
    """Native save target writing into a camera roll directory."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = directory

    def can_save(self, artifact: Artifact) -> bool:
        if self.directory is None:
            return False
        return self.directory.is_dir() and os.access(self.directory, os.W_OK)

    def save(self, artifact: Artifact) -> Path:
        if not self.can_save(artifact):
            raise ExportUnsupported(f"Camera roll unavailable for {artifact.filename}")

        destination = _unique_path(self.directory, artifact.filename)
        try:
            _write_artifact(artifact, destination)
        except OSError as e:
            raise ExportUnsupported(f"Camera roll write failed: {e}") from e
        return destination


class DownloadTarget:
    """Fallback target copying artifacts into a downloads directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def save(self, artifact: Artifact) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        destination = _unique_path(self.directory, artifact.filename)
        _write_artifact(artifact, destination)
        return destination


class ExportSink:
    """Saves artifacts out of the session store.

    Example:
        >>> sink = ExportSink(downloads_dir=Path("~/Downloads").expanduser())
        >>> result = await sink.export(artifact)
        >>> print(result.value)
    """

    def __init__(
        self,
        downloads_dir: Path,
        native: Optional[NativeSaveTarget] = None,
    ) -> None:
        """Initialize export sink.

        Args:
            downloads_dir: Fallback download directory
            native: Native save target tried first
        """
        self.native = native
        self.downloads = DownloadTarget(downloads_dir)
        self.exported: List[Path] = []

    async def export(self, artifact: Artifact) -> ExportResult:
        """Export one artifact, preferring the native target."""
        loop = asyncio.get_event_loop()

        if self.native is not None:
            try:
                path = await loop.run_in_executor(None, self.native.save, artifact)
                self.exported.append(path)
                logger.info(f"Saved {artifact.caption} to {path}")
                return ExportResult.SAVED
            except ExportUnsupported as e:
                logger.info(f"Native save unavailable, downloading instead: {e}")
            except Exception as e:
                logger.warning(f"Native save failed, downloading instead: {e}")

        try:
            path = await loop.run_in_executor(None, self.downloads.save, artifact)
        except Exception as e:
            logger.error(f"Could not export {artifact.filename}: {e}")
            return ExportResult.FAILED

        self.exported.append(path)
        logger.info(f"Downloaded {artifact.caption} to {path}")
        return ExportResult.DOWNLOADED

    async def export_all(self, artifact_set: ArtifactSet) -> List[ExportResult]:
        """Export every artifact in a set, then release the set."""
        with artifact_set:
            results = []
            for artifact in artifact_set:
                results.append(await self.export(artifact))
        return results
