"""Still capture pipeline.

Samples a single frame and derives the square, horizontal and vertical PNG
outputs from it, so all three share the same instant.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np

from aspectcam.artifacts.models import Artifact, photo_artifact
from aspectcam.compositor.geometry import allocate_surface, crop, crop_window
from aspectcam.errors import EncodeFailure
from aspectcam.video.types import (
    Aspect,
    CaptureSession,
    FlashMode,
    FrameSourceProtocol,
)

logger = logging.getLogger(__name__)

DERIVED_ASPECTS = (Aspect.HORIZONTAL, Aspect.VERTICAL)


def encode_png(surface: np.ndarray) -> bytes:
    """Encode a surface as PNG.

    Raises:
        EncodeFailure: If OpenCV cannot encode the surface
    """
    ok, buffer = cv2.imencode(".png", surface)
    if not ok or buffer is None or buffer.size == 0:
        raise EncodeFailure("PNG encoding produced no data")
    return buffer.tobytes()


def render_master(frame_data: np.ndarray, side: int) -> np.ndarray:
    """Draw a frame into a square master surface of the given side."""
    surface = allocate_surface(side, side)
    height, width = frame_data.shape[:2]
    if (width, height) == (side, side):
        surface[:] = frame_data
    else:
        surface[:] = cv2.resize(frame_data, (side, side), interpolation=cv2.INTER_AREA)
    return surface


def derive_stills(master: np.ndarray) -> List[Tuple[Aspect, np.ndarray]]:
    """Derive the square, horizontal and vertical surfaces from a master."""
    height, width = master.shape[:2]
    surfaces = [(Aspect.SQUARE, master)]
    for aspect in DERIVED_ASPECTS:
        window = crop_window(aspect, width, height)
        scratch = allocate_surface(window.width, window.height)
        scratch[:] = crop(master, window)
        surfaces.append((aspect, scratch))
    return surfaces


class StillCapturePipeline:
    """Capture one frame and derive three still artifacts.

    Example:
        >>> pipeline = StillCapturePipeline(source)
        >>> artifacts = await pipeline.capture_photo(session)
        >>> [a.caption for a in artifacts]
        ['Square (1920x1920)', 'Horizontal (1920x1080)', 'Vertical (1080x1920)']
    """

    def __init__(
        self,
        source: FrameSourceProtocol,
        flash_callback: Optional[Callable[[], None]] = None,
    ) -> None:
        """Initialize still pipeline.

        Args:
            source: Live frame source
            flash_callback: Called at the capture instant when the flash fires
        """
        self.source = source
        self.flash_callback = flash_callback

    async def capture_photo(
        self, session: CaptureSession, flash: FlashMode = FlashMode.OFF
    ) -> List[Artifact]:
        """Sample one frame and produce square, horizontal and vertical PNGs.

        Args:
            session: The photo session
            flash: Flash mode; fires the flash callback if not off

        Returns:
            Three artifacts in order square, horizontal, vertical

        Raises:
            SourceUnavailable: If the source is not active
            SurfaceUnavailable: If a surface cannot be allocated
            EncodeFailure: If PNG encoding fails
        """
        if flash.fires and self.flash_callback is not None:
            self.flash_callback()

        frame = await self.source.current_frame()
        logger.info(
            f"Photo {session.session_id}: sampled frame {frame.metadata.frame_number} "
            f"({frame.width}x{frame.height})"
        )

        loop = asyncio.get_event_loop()
        encoded = await loop.run_in_executor(
            None, self._render_and_encode, frame.data, session.resolution
        )

        return [
            photo_artifact(payload, aspect, width, height)
            for aspect, payload, width, height in encoded
        ]

    @staticmethod
    def _render_and_encode(
        frame_data: np.ndarray, side: int
    ) -> List[Tuple[Aspect, bytes, int, int]]:
        """Render the master, derive crops and encode all three (blocking)."""
        master = render_master(frame_data, side)
        return [
            (aspect, encode_png(surface), surface.shape[1], surface.shape[0])
            for aspect, surface in derive_stills(master)
        ]
