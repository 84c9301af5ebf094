"""Video recorder built on OpenCV's VideoWriter.

A :class:`Recorder` governs exactly one encode and moves through
``inactive -> recording -> finalizing -> inactive``. It is never restarted;
each pass of the video pipeline creates its own instance.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import cv2
import numpy as np

from aspectcam.errors import EncodeFailure
from aspectcam.video.audio import mux_audio

logger = logging.getLogger(__name__)


class RecorderState(str, Enum):
    """Recorder lifecycle states."""

    INACTIVE = "inactive"
    RECORDING = "recording"
    FINALIZING = "finalizing"


@dataclass(frozen=True)
class EncoderSpec:
    """A candidate video encoder: fourcc, container extension and MIME type."""

    fourcc: str
    extension: str
    mime_type: str

    @property
    def name(self) -> str:
        return f"{self.fourcc}/{self.extension}"


# Preference order; the first one the local OpenCV build can open wins.
DEFAULT_ENCODERS: Tuple[EncoderSpec, ...] = (
    EncoderSpec("avc1", "mp4", "video/mp4"),
    EncoderSpec("VP90", "webm", "video/webm"),
    EncoderSpec("mp4v", "mp4", "video/mp4"),
    EncoderSpec("MJPG", "avi", "video/x-msvideo"),
)

_probe_cache: Dict[EncoderSpec, bool] = {}


def probe_encoder(spec: EncoderSpec, work_dir: Path) -> bool:
    """Check whether OpenCV can open a writer for an encoder (blocking).

    Results are cached per process.
    """
    if spec in _probe_cache:
        return _probe_cache[spec]

    probe_path = work_dir / f".probe-{spec.fourcc}.{spec.extension}"
    writer = cv2.VideoWriter(
        str(probe_path), cv2.VideoWriter_fourcc(*spec.fourcc), 30.0, (64, 64)
    )
    available = writer.isOpened()
    if available:
        writer.write(np.zeros((64, 64, 3), dtype=np.uint8))
    writer.release()
    probe_path.unlink(missing_ok=True)

    _probe_cache[spec] = available
    logger.debug(f"Encoder {spec.name}: {'available' if available else 'unavailable'}")
    return available


def select_encoder(candidates: Iterable[EncoderSpec], work_dir: Path) -> EncoderSpec:
    """Pick the first available encoder.

    Raises:
        EncodeFailure: If no candidate can be opened
    """
    work_dir.mkdir(parents=True, exist_ok=True)
    for spec in candidates:
        if probe_encoder(spec, work_dir):
            logger.info(f"Selected video encoder {spec.name}")
            return spec
    raise EncodeFailure("No usable video encoder found")


@dataclass
class RecordedTake:
    """A finished encode on disk."""

    path: Path
    encoder: EncoderSpec
    width: int
    height: int
    fps: float
    frames: int
    has_audio: bool = False

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


class Recorder:
    """Single-use video encoder bound to one surface size.

    Example:
        >>> recorder = Recorder(path, encoder, (1920, 1080), fps=30)
        >>> await recorder.start()
        >>> await recorder.write(surface)
        >>> take = await recorder.stop()
    """

    def __init__(
        self,
        path: Path,
        encoder: EncoderSpec,
        size: Tuple[int, int],
        fps: float,
    ) -> None:
        """Initialize recorder.

        Args:
            path: Output file path
            encoder: Encoder to use
            size: Surface (width, height)
            fps: Output frame rate
        """
        self.path = path
        self.encoder = encoder
        self.size = size
        self.fps = fps

        self._state = RecorderState.INACTIVE
        self._writer: Optional[cv2.VideoWriter] = None
        self._frames_written = 0
        self._used = False

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def frames_written(self) -> int:
        return self._frames_written

    async def start(self) -> None:
        """Open the encoder.

        Raises:
            EncodeFailure: If the writer cannot be opened
            RuntimeError: If this recorder was already used
        """
        if self._used:
            raise RuntimeError("Recorder instances are single-use")
        self._used = True

        loop = asyncio.get_event_loop()
        self._writer = await loop.run_in_executor(None, self._open_writer)

        if self._writer is None:
            raise EncodeFailure(
                f"Cannot open {self.encoder.name} writer for {self.path.name}"
            )

        self._state = RecorderState.RECORDING
        logger.info(
            f"Recorder started: {self.path.name} "
            f"{self.size[0]}x{self.size[1]} @ {self.fps}fps"
        )

    def _open_writer(self) -> Optional[cv2.VideoWriter]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        writer = cv2.VideoWriter(
            str(self.path),
            cv2.VideoWriter_fourcc(*self.encoder.fourcc),
            float(self.fps),
            self.size,
        )
        if not writer.isOpened():
            writer.release()
            return None
        return writer

    async def write(self, surface: np.ndarray) -> None:
        """Encode one surface snapshot.

        Raises:
            RuntimeError: If the recorder is not recording
            ValueError: If the surface size does not match the recorder
        """
        if self._state is not RecorderState.RECORDING or self._writer is None:
            raise RuntimeError(f"Recorder is {self._state.value}, cannot write")

        height, width = surface.shape[:2]
        if (width, height) != self.size:
            raise ValueError(
                f"Surface {width}x{height} does not match recorder "
                f"{self.size[0]}x{self.size[1]}"
            )

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._writer.write, surface)
        self._frames_written += 1

    async def stop(self, audio_path: Optional[Path] = None) -> RecordedTake:
        """Flush and finalize the encode, attaching audio if given.

        Args:
            audio_path: Optional WAV track to mux into the output

        Returns:
            The finished take

        Raises:
            EncodeFailure: If nothing was encoded or the file is empty
        """
        if self._state is not RecorderState.RECORDING:
            raise RuntimeError(f"Recorder is {self._state.value}, cannot stop")

        self._state = RecorderState.FINALIZING
        loop = asyncio.get_event_loop()

        try:
            if self._writer is not None:
                await loop.run_in_executor(None, self._writer.release)
                self._writer = None

            if self._frames_written == 0:
                raise EncodeFailure(f"No frames encoded into {self.path.name}")

            if not self.path.exists() or self.path.stat().st_size == 0:
                raise EncodeFailure(f"Encoder produced zero bytes: {self.path.name}")

            has_audio = False
            if audio_path is not None:
                has_audio = await self._attach_audio(audio_path)

            logger.info(
                f"Recorder finalized: {self.path.name} "
                f"({self._frames_written} frames, {self.path.stat().st_size} bytes)"
            )
            return RecordedTake(
                path=self.path,
                encoder=self.encoder,
                width=self.size[0],
                height=self.size[1],
                fps=self.fps,
                frames=self._frames_written,
                has_audio=has_audio,
            )
        finally:
            self._state = RecorderState.INACTIVE

    async def _attach_audio(self, audio_path: Path) -> bool:
        muxed = self.path.with_name(f"{self.path.stem}-av{self.path.suffix}")
        if not await mux_audio(self.path, audio_path, muxed):
            muxed.unlink(missing_ok=True)
            return False

        muxed.replace(self.path)
        return True

    async def abort(self) -> None:
        """Release the writer without producing a take."""
        if self._writer is not None:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._writer.release)
            self._writer = None
        self._state = RecorderState.INACTIVE
