"""Frame sources, preview outputs and encoders."""

from aspectcam.video.audio import AudioRecorder, ffmpeg_available, mux_audio
from aspectcam.video.playback import PlaybackSource
from aspectcam.video.preview import MockPreviewOutput, PreviewWindow
from aspectcam.video.recorder import (
    DEFAULT_ENCODERS,
    EncoderSpec,
    RecordedTake,
    Recorder,
    RecorderState,
    select_encoder,
)
from aspectcam.video.source import CameraSource, MockFrameSource
from aspectcam.video.types import (
    Aspect,
    CaptureMode,
    CaptureSession,
    FacingMode,
    FlashMode,
    Frame,
    FrameMetadata,
    FrameSourceProtocol,
    PreviewOutputProtocol,
    SourceConfig,
    VideoQuality,
)

__all__ = [
    "AudioRecorder",
    "ffmpeg_available",
    "mux_audio",
    "PlaybackSource",
    "MockPreviewOutput",
    "PreviewWindow",
    "DEFAULT_ENCODERS",
    "EncoderSpec",
    "RecordedTake",
    "Recorder",
    "RecorderState",
    "select_encoder",
    "CameraSource",
    "MockFrameSource",
    "Aspect",
    "CaptureMode",
    "CaptureSession",
    "FacingMode",
    "FlashMode",
    "Frame",
    "FrameMetadata",
    "FrameSourceProtocol",
    "PreviewOutputProtocol",
    "SourceConfig",
    "VideoQuality",
]
