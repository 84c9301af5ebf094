"""Artifact lifecycle package.

Example:
    >>> from aspectcam.artifacts import ArtifactManager
    >>> manager = ArtifactManager()
    >>> artifacts = manager.open_set(session)
    >>> artifacts.add(artifact)
    >>> manager.release_current()
"""

from aspectcam.artifacts.models import (
    Artifact,
    StorageHandle,
    photo_artifact,
    video_artifact,
)
from aspectcam.artifacts.manager import (
    ArtifactManager,
    ArtifactSet,
    MAX_ARTIFACTS_PER_SESSION,
)

__all__ = [
    "Artifact",
    "StorageHandle",
    "photo_artifact",
    "video_artifact",
    "ArtifactManager",
    "ArtifactSet",
    "MAX_ARTIFACTS_PER_SESSION",
]
