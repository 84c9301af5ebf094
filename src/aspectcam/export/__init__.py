"""Artifact export."""

from aspectcam.export.sink import (
    CameraRollTarget,
    DownloadTarget,
    ExportResult,
    ExportSink,
    NativeSaveTarget,
)

__all__ = [
    "CameraRollTarget",
    "DownloadTarget",
    "ExportResult",
    "ExportSink",
    "NativeSaveTarget",
]
