"""Video capture pipeline.

Records a square master take from the live source (with cinema bars baked in
when requested), then replays that take twice, once per derived aspect,
painting the centred crop window onto a scratch surface and re-encoding it.

State machine per session::

    idle -> recording -> stopped -> finalizing -> done
      \\________\\___________\\___________\\--> failed
"""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import cv2
import numpy as np

from aspectcam.artifacts.models import Artifact, video_artifact
from aspectcam.compositor.geometry import (
    DERIVED_FRAME_RATE,
    allocate_surface,
    bake_letterbox,
    crop,
    crop_window,
)
from aspectcam.errors import CaptureError, EncodeFailure, SourceUnavailable, SurfaceUnavailable
from aspectcam.video.audio import AudioRecorder
from aspectcam.video.playback import PlaybackSource
from aspectcam.video.recorder import (
    DEFAULT_ENCODERS,
    EncoderSpec,
    RecordedTake,
    Recorder,
    select_encoder,
)
from aspectcam.video.types import Aspect, CaptureSession, FrameSourceProtocol

logger = logging.getLogger(__name__)

DERIVED_ASPECTS = (Aspect.HORIZONTAL, Aspect.VERTICAL)


class VideoSessionState(str, Enum):
    """Video session states."""

    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


class VideoCapturePipeline:
    """Record one square take and derive horizontal and vertical variants.

    One pipeline instance serves one session.

    Example:
        >>> pipeline = VideoCapturePipeline(source, work_dir)
        >>> await pipeline.start(session)
        >>> await asyncio.sleep(5)
        >>> artifacts = await pipeline.stop()
    """

    def __init__(
        self,
        source: FrameSourceProtocol,
        work_dir: Path,
        encoders: Sequence[EncoderSpec] = DEFAULT_ENCODERS,
        derived_frame_rate: int = DERIVED_FRAME_RATE,
        realtime_playback: bool = False,
        on_artifact: Optional[Callable[[Artifact], None]] = None,
        audio_recorder: Optional[AudioRecorder] = None,
    ) -> None:
        """Initialize video pipeline.

        Args:
            source: Live frame source
            work_dir: Directory for intermediate encodes
            encoders: Encoder preference list
            derived_frame_rate: Sampling clock for the derived passes
            realtime_playback: Pace derived passes against the wall clock
            on_artifact: Called with each artifact as soon as it is produced
            audio_recorder: Audio recorder used when the source has audio
        """
        self.source = source
        self.work_dir = work_dir
        self.encoders = tuple(encoders)
        self.derived_frame_rate = derived_frame_rate
        self.realtime_playback = realtime_playback
        self.on_artifact = on_artifact
        self.audio_recorder = audio_recorder

        self._state = VideoSessionState.IDLE
        self.session: Optional[CaptureSession] = None
        self._session_dir: Optional[Path] = None
        self._recorder: Optional[Recorder] = None
        self._surface: Optional[np.ndarray] = None
        self._draw_task: Optional[asyncio.Task] = None
        self._draw_error: Optional[BaseException] = None
        self._stopping = False
        self._recording_audio = False
        self._source_misses = 0

    @property
    def state(self) -> VideoSessionState:
        return self._state

    @property
    def frames_recorded(self) -> int:
        return self._recorder.frames_written if self._recorder else 0

    async def start(self, session: CaptureSession) -> None:
        """Open the master recorder and start the draw loop.

        Raises:
            RuntimeError: If this pipeline already ran
            SourceUnavailable: If the source is not active
            SurfaceUnavailable: If the master surface cannot be allocated
            EncodeFailure: If no encoder can be opened
        """
        if self._state is not VideoSessionState.IDLE:
            raise RuntimeError(f"Pipeline is {self._state.value}, cannot start")

        self.session = session
        self._session_dir = self.work_dir / session.session_id
        self._session_dir.mkdir(parents=True, exist_ok=True)

        try:
            loop = asyncio.get_event_loop()
            encoder = await loop.run_in_executor(
                None, select_encoder, self.encoders, self.work_dir
            )

            side = session.resolution
            self._surface = allocate_surface(side, side)
            self._recorder = Recorder(
                self._session_dir / f"square.{encoder.extension}",
                encoder,
                (side, side),
                session.frame_rate,
            )
            await self._recorder.start()

            # First frame is drawn before returning so a take is never empty
            await self._draw_master_frame()
        except CaptureError:
            await self._fail()
            self._cleanup_work_files()
            raise

        if self.source.has_audio and self.audio_recorder is not None:
            self._recording_audio = self.audio_recorder.start()

        self._state = VideoSessionState.RECORDING
        self._draw_task = asyncio.create_task(self._draw_loop())
        logger.info(
            f"Recording {session.session_id}: {side}x{side} @ {session.frame_rate}fps"
            f"{' cinema' if session.cinema else ''}"
            f"{' with audio' if self._recording_audio else ''}"
        )

    async def _draw_loop(self) -> None:
        """Re-composite the live frame onto the master surface every tick."""
        loop = asyncio.get_event_loop()
        interval = 1.0 / self.session.frame_rate
        next_tick = loop.time()

        while not self._stopping:
            next_tick += interval
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            elif delay < -interval * 2:
                # Fell behind; resynchronise instead of bursting
                next_tick = loop.time()

            if self._stopping:
                break

            try:
                await self._draw_master_frame()
            except SourceUnavailable as e:
                self._source_misses += 1
                if self._source_misses % 30 == 1:
                    logger.warning(f"Skipping frame: {e}")
            except Exception as e:
                logger.error(f"Draw loop stopped: {e}")
                self._draw_error = e
                return

    async def _draw_master_frame(self) -> None:
        frame = await self.source.current_frame()
        side = self._surface.shape[0]

        if frame.data.shape[:2] == (side, side):
            self._surface[:] = frame.data
        else:
            self._surface[:] = cv2.resize(frame.data, (side, side), interpolation=cv2.INTER_AREA)

        if self.session.cinema:
            bake_letterbox(self._surface)

        await self._recorder.write(self._surface)

    async def stop(self) -> List[Artifact]:
        """Stop recording, finalize the master and derive the crops.

        Returns:
            Artifacts in order square, horizontal, vertical; derived passes
            that fail are skipped

        Raises:
            RuntimeError: If not recording
            EncodeFailure: If the master take cannot be finalized
        """
        if self._state is not VideoSessionState.RECORDING:
            raise RuntimeError(f"Pipeline is {self._state.value}, cannot stop")

        await self._cancel_draw_loop()
        self._state = VideoSessionState.STOPPED
        logger.info(
            f"Recording {self.session.session_id} stopped after "
            f"{self._recorder.frames_written} frames"
        )

        try:
            audio_path = await self._stop_audio()

            try:
                if self._draw_error is not None:
                    raise EncodeFailure(f"Master encode failed: {self._draw_error}")
                take = await self._recorder.stop(audio_path)
            except CaptureError:
                await self._fail()
                raise

            artifacts = [await self._take_artifact(take, Aspect.SQUARE)]
            self._emit(artifacts[0])

            self._state = VideoSessionState.FINALIZING
            for aspect in DERIVED_ASPECTS:
                try:
                    artifact = await self._derive(take, aspect, audio_path if take.has_audio else None)
                except (SurfaceUnavailable, EncodeFailure) as e:
                    logger.warning(f"Skipping {aspect.value} variant: {e}")
                    continue
                artifacts.append(artifact)
                self._emit(artifact)

            self._state = VideoSessionState.DONE
            logger.info(
                f"Session {self.session.session_id} done: "
                f"{', '.join(a.caption for a in artifacts)}"
            )
            return artifacts
        finally:
            self._cleanup_work_files()

    async def _derive(
        self, take: RecordedTake, aspect: Aspect, audio_path: Optional[Path]
    ) -> Artifact:
        """Replay the take and re-encode one centred crop.

        Raises:
            SurfaceUnavailable: If the scratch surface or playback is unavailable
            EncodeFailure: If the derived encode fails
        """
        window = crop_window(aspect, take.width, take.height)
        scratch = allocate_surface(window.width, window.height)

        playback = PlaybackSource(
            take.path,
            sample_rate=self.derived_frame_rate,
            fallback_fps=take.fps,
            realtime=self.realtime_playback,
        )
        await playback.initialize()

        recorder = Recorder(
            self._session_dir / f"{aspect.value}.{take.encoder.extension}",
            take.encoder,
            window.size,
            self.derived_frame_rate,
        )

        try:
            await recorder.start()
            async for frame in playback.frames():
                data = frame.data
                if data.shape[:2] != (take.height, take.width):
                    data = cv2.resize(data, (take.width, take.height))
                scratch[:] = crop(data, window)
                await recorder.write(scratch)

            derived = await recorder.stop(audio_path)
        except Exception:
            await recorder.abort()
            raise
        finally:
            await playback.close()

        return await self._take_artifact(derived, aspect)

    @staticmethod
    async def _take_artifact(take: RecordedTake, aspect: Aspect) -> Artifact:
        loop = asyncio.get_event_loop()
        payload = await loop.run_in_executor(None, take.read_bytes)
        return video_artifact(
            payload,
            aspect,
            take.width,
            take.height,
            mime_type=take.encoder.mime_type,
            extension=take.encoder.extension,
        )

    def _emit(self, artifact: Artifact) -> None:
        if self.on_artifact is not None:
            self.on_artifact(artifact)

    async def _cancel_draw_loop(self) -> None:
        if self._draw_task is None:
            return

        # Let an in-flight write finish; the writer must not be released under it
        self._stopping = True
        await self._draw_task
        self._draw_task = None

    async def _stop_audio(self) -> Optional[Path]:
        if not self._recording_audio or self.audio_recorder is None:
            return None

        self._recording_audio = False
        return await self.audio_recorder.stop(self._session_dir / "audio.wav")

    async def cancel(self) -> None:
        """Abandon the session without producing artifacts."""
        if self._state in (VideoSessionState.DONE, VideoSessionState.FAILED):
            return

        await self._cancel_draw_loop()
        await self._stop_audio()
        await self._fail()
        self._cleanup_work_files()
        logger.info("Recording cancelled")

    async def _fail(self) -> None:
        self._state = VideoSessionState.FAILED
        if self._recorder is not None:
            await self._recorder.abort()

    def _cleanup_work_files(self) -> None:
        if self._session_dir is not None:
            shutil.rmtree(self._session_dir, ignore_errors=True)
