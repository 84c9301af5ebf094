"""Capture controller.

Coordinates the frame source, the capture pipelines, the artifact lifecycle
manager and the export sink. A single state machine guards the capture
buttons, so a second photo press or record start while one is in flight is
a no-op rather than a second overlapping session.
"""

import logging
import tempfile
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from aspectcam.artifacts.manager import ArtifactManager, ArtifactSet
from aspectcam.artifacts.models import Artifact
from aspectcam.compositor.overlay import OverlayCompositor
from aspectcam.config.loader import FRAME_RATES, ZOOM_LEVELS, AppConfig
from aspectcam.errors import CaptureError
from aspectcam.export.sink import ExportResult, ExportSink
from aspectcam.video.audio import AudioRecorder
from aspectcam.video.recording import VideoCapturePipeline
from aspectcam.video.still import StillCapturePipeline
from aspectcam.video.types import (
    CaptureMode,
    CaptureSession,
    FacingMode,
    FlashMode,
    FrameSourceProtocol,
    VideoQuality,
)

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    """What the capture controller is doing."""

    IDLE = "idle"
    CAPTURING_PHOTO = "capturing_photo"
    RECORDING = "recording"
    FINALIZING = "finalizing"


class CaptureController:
    """Drives photo and video sessions from user intents.

    Example:
        >>> controller = CaptureController(source, ArtifactManager(), sink)
        >>> artifacts = await controller.capture_photo()
        >>> controller.close_results()
    """

    def __init__(
        self,
        source: FrameSourceProtocol,
        artifacts: ArtifactManager,
        sink: ExportSink,
        config: Optional[AppConfig] = None,
        overlay: Optional[OverlayCompositor] = None,
        audio_recorder: Optional[AudioRecorder] = None,
        flash_callback: Optional[Callable[[], None]] = None,
        on_artifact: Optional[Callable[[Artifact], None]] = None,
    ) -> None:
        """Initialize controller.

        Args:
            source: Initialized live frame source
            artifacts: Artifact lifecycle manager
            sink: Export sink
            config: Application configuration
            overlay: Preview overlay kept in sync with the cinema flag
            audio_recorder: Audio recorder for video sessions
            flash_callback: Called at the capture instant when the flash fires
            on_artifact: Called with each artifact as it becomes available
        """
        self.source = source
        self.artifacts = artifacts
        self.sink = sink
        self.config = config or AppConfig()
        self.overlay = overlay
        self.audio_recorder = audio_recorder
        self.on_artifact = on_artifact

        self.mode = self.config.capture.mode
        self.quality = self.config.camera.quality
        self.frame_rate = self.config.camera.frame_rate
        self.zoom = self.config.camera.zoom
        self.flash = self.config.capture.flash
        self._cinema = self.config.capture.cinema

        self._state = ControllerState.IDLE
        self._still = StillCapturePipeline(source, flash_callback=flash_callback)
        self._video: Optional[VideoCapturePipeline] = None
        self._work_dir = self.config.capture.work_dir or Path(
            tempfile.gettempdir()
        ) / "aspectcam-work"

        self._sync_overlay()

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not ControllerState.IDLE

    @property
    def cinema(self) -> bool:
        """Effective cinema flag; only meaningful in video mode."""
        return self._cinema and self.mode is CaptureMode.VIDEO

    @property
    def facing(self) -> FacingMode:
        return self.source.config.facing

    @property
    def results(self) -> Optional[ArtifactSet]:
        """Artifacts of the last session, until the results view is closed."""
        return self.artifacts.current

    @property
    def settings_summary(self) -> str:
        if self.mode is CaptureMode.VIDEO:
            return f"Recording in {self.quality.value} @ {self.frame_rate}fps"
        return "Photo mode"

    # Capture intents

    async def capture_photo(self) -> List[Artifact]:
        """Capture one photo session.

        Returns:
            The square, horizontal and vertical stills, or an empty list if
            a capture is already in flight or the capture aborted
        """
        if self.is_busy:
            logger.debug(f"Ignoring photo request while {self._state.value}")
            return []

        self._state = ControllerState.CAPTURING_PHOTO
        session = CaptureSession(mode=CaptureMode.PHOTO, resolution=self.quality.resolution)
        try:
            artifact_set = self.artifacts.open_set(session)
            try:
                captured = await self._still.capture_photo(session, flash=self.flash)
            except CaptureError as e:
                logger.warning(f"Photo capture aborted: {e}")
                artifact_set.release()
                return []

            for artifact in captured:
                self._adopt(artifact)
            return captured
        finally:
            self._state = ControllerState.IDLE

    async def start_recording(self) -> bool:
        """Start a video session.

        Returns:
            True if recording started
        """
        if self.is_busy:
            logger.debug(f"Ignoring record request while {self._state.value}")
            return False

        self._state = ControllerState.RECORDING
        session = CaptureSession(
            mode=CaptureMode.VIDEO,
            cinema=self.cinema,
            resolution=self.quality.resolution,
            frame_rate=self.frame_rate,
        )
        artifact_set = self.artifacts.open_set(session)

        pipeline = VideoCapturePipeline(
            self.source,
            self._work_dir,
            encoders=self.config.capture.encoder_specs(),
            derived_frame_rate=self.config.capture.derived_frame_rate,
            realtime_playback=self.config.capture.realtime_playback,
            on_artifact=self._adopt,
            audio_recorder=self.audio_recorder,
        )
        try:
            await pipeline.start(session)
        except CaptureError as e:
            logger.warning(f"Recording aborted: {e}")
            artifact_set.release()
            self._state = ControllerState.IDLE
            return False

        self._video = pipeline
        return True

    async def stop_recording(self) -> List[Artifact]:
        """Stop the video session and finalize its outputs.

        Returns:
            Video artifacts in order square, horizontal, vertical, or an
            empty list if not recording or the master take failed
        """
        if self._state is not ControllerState.RECORDING or self._video is None:
            logger.debug(f"Ignoring stop request while {self._state.value}")
            return []

        self._state = ControllerState.FINALIZING
        try:
            return await self._video.stop()
        except CaptureError as e:
            logger.warning(f"Recording aborted: {e}")
            self.artifacts.release_current()
            return []
        finally:
            self._video = None
            self._state = ControllerState.IDLE

    async def cancel(self) -> None:
        """Abandon an in-flight recording."""
        if self._video is not None and self._state is ControllerState.RECORDING:
            await self._video.cancel()
            self.artifacts.release_current()
            self._video = None
            self._state = ControllerState.IDLE

    def _adopt(self, artifact: Artifact) -> None:
        artifact_set = self.artifacts.current
        if artifact_set is None:
            logger.warning(f"Dropping {artifact.filename}: no open artifact set")
            return

        artifact_set.add(artifact)
        if self.on_artifact is not None:
            self.on_artifact(artifact)

    # Results view

    def close_results(self) -> None:
        """Close the results view and release its artifacts."""
        self.artifacts.release_current()

    async def export(self, artifact: Artifact) -> ExportResult:
        return await self.sink.export(artifact)

    async def download_all(self) -> List[ExportResult]:
        """Export every artifact of the last session, then close the results."""
        artifact_set = self.artifacts.current
        if artifact_set is None:
            return []
        return await self.sink.export_all(artifact_set)

    # Settings

    def _refuse_while_busy(self, setting: str) -> bool:
        if self.is_busy:
            logger.info(f"Cannot change {setting} while {self._state.value}")
            return True
        return False

    def set_mode(self, mode: CaptureMode) -> bool:
        if self._refuse_while_busy("mode"):
            return False
        self.mode = mode
        self._sync_overlay()
        return True

    def set_cinema(self, enabled: bool) -> bool:
        """Toggle cinema bars; only available in video mode."""
        if self.mode is not CaptureMode.VIDEO:
            logger.info("Cinema mode is only available for video")
            return False
        if self._refuse_while_busy("cinema"):
            return False
        self._cinema = enabled
        self._sync_overlay()
        return True

    def cycle_flash(self) -> FlashMode:
        self.flash = self.flash.next()
        return self.flash

    async def toggle_camera(self) -> bool:
        """Switch between the user- and environment-facing cameras."""
        if self._refuse_while_busy("camera"):
            return False
        await self._reconfigure(facing=self.source.config.facing.toggled())
        return True

    async def set_quality(self, quality: VideoQuality) -> bool:
        if self._refuse_while_busy("quality"):
            return False
        self.quality = quality
        await self._reconfigure(resolution=quality.resolution)
        return True

    async def set_frame_rate(self, frame_rate: int) -> bool:
        if frame_rate not in FRAME_RATES:
            raise ValueError(f"Frame rate must be one of {FRAME_RATES}")
        if self._refuse_while_busy("frame rate"):
            return False
        self.frame_rate = frame_rate
        await self._reconfigure(frame_rate=frame_rate)
        return True

    async def set_zoom(self, zoom: float) -> bool:
        if zoom not in ZOOM_LEVELS:
            raise ValueError(f"Zoom must be one of {ZOOM_LEVELS}")
        if self._refuse_while_busy("zoom"):
            return False
        self.zoom = zoom
        await self.source.set_zoom(zoom)
        return True

    async def _reconfigure(self, **changes: object) -> None:
        config = self.source.config.model_copy(update=changes)
        logger.info(f"Reconfiguring source: {changes}")
        await self.source.reconfigure(config)

    def _sync_overlay(self) -> None:
        if self.overlay is not None:
            self.overlay.cinema = self.cinema
