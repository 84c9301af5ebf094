"""Artifact and storage handle types."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from aspectcam.video.types import Aspect

logger = logging.getLogger(__name__)

PNG_MIME = "image/png"


class StorageHandle:
    """Session-scoped backing file for one artifact payload.

    The handle is live until :meth:`revoke` deletes the file.
    """

    def __init__(self, path: Path, on_revoke: Optional[Callable[["StorageHandle"], None]] = None) -> None:
        self.path = path
        self._on_revoke = on_revoke
        self._live = True

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def uri(self) -> str:
        return self.path.resolve().as_uri()

    def revoke(self) -> None:
        """Free the backing file. Revoking twice is a no-op."""
        if not self._live:
            return

        self._live = False
        self.path.unlink(missing_ok=True)
        if self._on_revoke is not None:
            self._on_revoke(self)

    def __repr__(self) -> str:
        state = "live" if self._live else "revoked"
        return f"StorageHandle({self.path.name}, {state})"


@dataclass
class Artifact:
    """One finished output of a capture session."""

    payload: bytes
    aspect: Aspect
    mime_type: str
    filename: str
    width: int
    height: int
    handle: Optional[StorageHandle] = None

    @property
    def caption(self) -> str:
        """Display caption, e.g. ``Horizontal (1920x1080)``."""
        return f"{self.aspect.label} ({self.width}x{self.height})"

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")

    @property
    def size_bytes(self) -> int:
        return len(self.payload)

    def __repr__(self) -> str:
        return (
            f"Artifact({self.filename}, {self.mime_type}, "
            f"{self.width}x{self.height}, {self.size_bytes} bytes)"
        )


def photo_artifact(payload: bytes, aspect: Aspect, width: int, height: int) -> Artifact:
    """Build a PNG still artifact."""
    return Artifact(
        payload=payload,
        aspect=aspect,
        mime_type=PNG_MIME,
        filename=f"capture-{aspect.value}.png",
        width=width,
        height=height,
    )


def video_artifact(
    payload: bytes,
    aspect: Aspect,
    width: int,
    height: int,
    mime_type: str,
    extension: str,
) -> Artifact:
    """Build a video artifact."""
    return Artifact(
        payload=payload,
        aspect=aspect,
        mime_type=mime_type,
        filename=f"video-{aspect.value}.{extension}",
        width=width,
        height=height,
    )
