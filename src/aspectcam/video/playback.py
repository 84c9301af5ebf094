"""Playback of a finished take for re-sampling.

The derived video passes replay the square master and sample it on their own
fixed clock, the same way a display-refresh loop would sample a playing video
element: each tick takes whatever source frame is current at that media time.
"""

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Optional

import cv2
import numpy as np

from aspectcam.errors import PlaybackUnavailable
from aspectcam.video.types import Frame, FrameMetadata

logger = logging.getLogger(__name__)


class PlaybackSource:
    """Replay a recorded video file once, from the start.

    Example:
        >>> playback = PlaybackSource(take.path, sample_rate=30)
        >>> await playback.initialize()
        >>> async for frame in playback.frames():
        ...     draw(frame)
        >>> await playback.close()
    """

    def __init__(
        self,
        video_path: Path,
        sample_rate: float = 30.0,
        fallback_fps: Optional[float] = None,
        realtime: bool = False,
    ) -> None:
        """Initialize playback source.

        Args:
            video_path: Path to the recorded take
            sample_rate: Sampling clock in ticks per second of media time
            fallback_fps: Frame rate to assume if the container reports none
            realtime: If True, pace ticks against the wall clock
        """
        self.video_path = video_path
        self.sample_rate = sample_rate
        self.fallback_fps = fallback_fps
        self.realtime = realtime

        self._cap: Optional[cv2.VideoCapture] = None
        self._initialized = False
        self.fps = 0.0
        self.width = 0
        self.height = 0
        self.frames_read = 0

    async def initialize(self) -> None:
        """Open the take and wait for its metadata.

        Raises:
            PlaybackUnavailable: If the file cannot be opened or reports no
                usable size or frame rate
        """
        logger.info(f"Opening take for playback: {self.video_path.name}")

        loop = asyncio.get_event_loop()
        success = await loop.run_in_executor(None, self._open_video)

        if not success:
            await self.close()
            raise PlaybackUnavailable(f"No playback metadata for {self.video_path.name}")

        self._initialized = True
        logger.info(
            f"Playback ready: {self.width}x{self.height} @ {self.fps:.1f}fps"
        )

    def _open_video(self) -> bool:
        """Open video file and read metadata (blocking).

        Returns:
            True if the metadata is usable
        """
        if not self.video_path.exists():
            return False

        self._cap = cv2.VideoCapture(str(self.video_path))
        if not self._cap.isOpened():
            return False

        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = self._cap.get(cv2.CAP_PROP_FPS)
        self.fps = fps if fps and fps > 0 else (self.fallback_fps or 0.0)

        return self.width > 0 and self.height > 0 and self.fps > 0

    async def _read(self) -> Optional[np.ndarray]:
        loop = asyncio.get_event_loop()
        ret, frame_data = await loop.run_in_executor(None, self._cap.read)
        if not ret or frame_data is None:
            return None
        self.frames_read += 1
        return frame_data

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield one frame per sampling tick until the end of media.

        Raises:
            RuntimeError: If not initialized
        """
        if not self._initialized or self._cap is None:
            raise RuntimeError("Playback not initialized")

        current = await self._read()
        if current is None:
            return

        current_index = 0
        pending = await self._read()
        tick = 0

        while True:
            media_time = tick / self.sample_rate

            # Advance to the source frame showing at this media time
            while pending is not None and (current_index + 1) / self.fps <= media_time:
                current = pending
                current_index += 1
                pending = await self._read()

            if pending is None and media_time >= (current_index + 1) / self.fps:
                break

            tick += 1
            yield Frame(
                data=current,
                metadata=FrameMetadata(
                    frame_number=tick,
                    width=current.shape[1],
                    height=current.shape[0],
                    source=f"playback:{self.video_path.name}",
                ),
            )

            if self.realtime:
                await asyncio.sleep(1.0 / self.sample_rate)

        logger.debug(f"Playback ended after {tick} ticks ({self.frames_read} source frames)")

    async def close(self) -> None:
        """Release the video file."""
        if self._cap is not None:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._cap.release)
            self._cap = None

        self._initialized = False
