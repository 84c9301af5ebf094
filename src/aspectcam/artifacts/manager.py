"""Artifact lifecycle management.

The manager owns at most one session's artifact set at a time. Opening a new
set releases the previous one before any new storage handle is created, so
the number of live handles never exceeds one session's worth.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, List, Optional

from aspectcam.artifacts.models import Artifact, StorageHandle
from aspectcam.video.types import CaptureSession

logger = logging.getLogger(__name__)

MAX_ARTIFACTS_PER_SESSION = 3


class ArtifactSet:
    """The artifacts of one capture session and their storage handles.

    Usable as a context manager: the set is released on every exit path.

    Example:
        >>> with manager.open_set(session) as artifacts:
        ...     artifacts.add(artifact)
        ...     await sink.export(artifact)
    """

    def __init__(self, session: CaptureSession, session_dir: Path, manager: "ArtifactManager") -> None:
        self.session = session
        self.session_dir = session_dir
        self._manager = manager
        self._artifacts: List[Artifact] = []
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def artifacts(self) -> List[Artifact]:
        return list(self._artifacts)

    def add(self, artifact: Artifact) -> Artifact:
        """Adopt an artifact, backing its payload with a storage handle.

        Raises:
            RuntimeError: If the set was released or is already full
        """
        if self._released:
            raise RuntimeError("Cannot add to a released artifact set")
        if len(self._artifacts) >= MAX_ARTIFACTS_PER_SESSION:
            raise RuntimeError(
                f"A session holds at most {MAX_ARTIFACTS_PER_SESSION} artifacts"
            )

        self.session_dir.mkdir(parents=True, exist_ok=True)
        path = self.session_dir / artifact.filename
        path.write_bytes(artifact.payload)

        artifact.handle = StorageHandle(path, on_revoke=self._manager._handle_revoked)
        self._manager._handle_created(artifact.handle)
        self._artifacts.append(artifact)

        logger.info(f"Adopted {artifact.caption} as {artifact.filename}")
        return artifact

    def release(self) -> None:
        """Revoke every storage handle in the set.

        Only the first call has an effect.
        """
        if self._released:
            logger.debug(f"Artifact set {self.session.session_id} already released")
            return

        self._released = True
        for artifact in self._artifacts:
            if artifact.handle is not None:
                artifact.handle.revoke()

        shutil.rmtree(self.session_dir, ignore_errors=True)
        logger.info(
            f"Released artifact set {self.session.session_id} "
            f"({len(self._artifacts)} artifacts)"
        )

    def __iter__(self) -> Iterator[Artifact]:
        return iter(list(self._artifacts))

    def __len__(self) -> int:
        return len(self._artifacts)

    def __getitem__(self, index: int) -> Artifact:
        return self._artifacts[index]

    def __enter__(self) -> "ArtifactSet":
        return self

    def __exit__(self, *_: object) -> None:
        self.release()


class ArtifactManager:
    """Owns the current session's artifact set and its backing storage."""

    def __init__(self, storage_dir: Optional[Path] = None) -> None:
        """Initialize artifact manager.

        Args:
            storage_dir: Directory for backing files (a temp dir if None)
        """
        self._owns_storage_dir = storage_dir is None
        self.storage_dir = storage_dir or Path(tempfile.mkdtemp(prefix="aspectcam-"))
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._current: Optional[ArtifactSet] = None
        self._live_handles = 0

    @property
    def current(self) -> Optional[ArtifactSet]:
        """The current, unreleased artifact set, if any."""
        if self._current is not None and self._current.released:
            return None
        return self._current

    @property
    def live_handle_count(self) -> int:
        return self._live_handles

    def open_set(self, session: CaptureSession) -> ArtifactSet:
        """Release the previous set and open a new one for ``session``."""
        self.release_current()
        self._current = ArtifactSet(
            session=session,
            session_dir=self.storage_dir / session.session_id,
            manager=self,
        )
        return self._current

    def release_current(self) -> None:
        """Release the current set (closing the results view)."""
        if self._current is not None:
            self._current.release()
            self._current = None

    def close(self) -> None:
        """Release everything and remove the storage directory if we created it."""
        self.release_current()
        if self._owns_storage_dir:
            shutil.rmtree(self.storage_dir, ignore_errors=True)

    def _handle_created(self, handle: StorageHandle) -> None:
        self._live_handles += 1

    def _handle_revoked(self, handle: StorageHandle) -> None:
        self._live_handles -= 1
