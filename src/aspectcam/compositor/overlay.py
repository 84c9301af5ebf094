"""Preview guide overlay.

Draws translucent cinema bars and the horizontal/vertical safe-area outlines
over the live preview on a fixed timer. The overlay only touches preview
frames; captured pixels come straight from the source.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from aspectcam.compositor.geometry import safe_area_rects
from aspectcam.compositor.types import OverlayConfig
from aspectcam.errors import SourceUnavailable
from aspectcam.video.types import (
    Frame,
    FrameMetadata,
    FrameSourceProtocol,
    PreviewOutputProtocol,
)

logger = logging.getLogger(__name__)


def render_guides(
    width: int, height: int, cinema: bool, config: Optional[OverlayConfig] = None
) -> np.ndarray:
    """Render the guide layer for a preview surface.

    Args:
        width: Preview width
        height: Preview height
        cinema: Draw letterbox bars outside the horizontal safe area
        config: Overlay configuration

    Returns:
        BGRA layer (H, W, 4); alpha 0 where nothing is drawn
    """
    config = config or OverlayConfig()
    layer = np.zeros((height, width, 4), dtype=np.uint8)
    horizontal, vertical = safe_area_rects(width, height)

    if cinema:
        bar_alpha = int(round(config.bar_opacity * 255))
        top = int(round(horizontal[1]))
        bottom = int(round(horizontal[1] + horizontal[3]))
        layer[:top] = (*config.bar_color, bar_alpha)
        layer[bottom:] = (*config.bar_color, bar_alpha)

    if config.show_guides:
        guide_alpha = int(round(config.guide_opacity * 255))
        color = (*config.guide_color, guide_alpha)
        for x, y, w, h in (horizontal, vertical):
            x0, y0 = int(round(x)), int(round(y))
            x1 = min(int(round(x + w)), width) - 1
            y1 = min(int(round(y + h)), height) - 1
            cv2.rectangle(layer, (x0, y0), (x1, y1), color, config.guide_width)

    return layer


def composite(frame_data: np.ndarray, layer: np.ndarray) -> np.ndarray:
    """Alpha-composite a BGRA layer over a BGR frame."""
    alpha = layer[:, :, 3:4].astype(np.float32) / 255.0
    blended = frame_data.astype(np.float32) * (1.0 - alpha) + layer[:, :, :3] * alpha
    return np.clip(blended + 0.5, 0, 255).astype(np.uint8)


class OverlayCompositor:
    """Composites the guide layer onto preview frames on a fixed timer.

    The timer runs independently of frame arrival: each tick samples the
    source's current frame.

    Example:
        >>> overlay = OverlayCompositor(source, preview)
        >>> await overlay.start()
        >>> overlay.cinema = True
        >>> await overlay.stop()
    """

    def __init__(
        self,
        source: FrameSourceProtocol,
        preview: PreviewOutputProtocol,
        config: Optional[OverlayConfig] = None,
        cinema: bool = False,
    ) -> None:
        """Initialize overlay compositor.

        Args:
            source: Live frame source
            preview: Preview output receiving composited frames
            config: Overlay configuration
            cinema: Initial cinema flag
        """
        self.source = source
        self.preview = preview
        self.config = config or OverlayConfig()
        self.cinema = cinema

        self._layers: Dict[Tuple[int, int, bool], np.ndarray] = {}
        self._task: Optional[asyncio.Task] = None
        self._ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        """Number of frames composited and pushed to the preview."""
        return self._ticks

    def layer_for(self, width: int, height: int) -> np.ndarray:
        """Get the guide layer for a surface size and the current cinema flag."""
        key = (width, height, self.cinema)
        layer = self._layers.get(key)
        if layer is None:
            # Sizes only change on reconfigure; keep the cache small
            if len(self._layers) > 8:
                self._layers.clear()
            layer = render_guides(width, height, self.cinema, self.config)
            self._layers[key] = layer
        return layer

    def apply(self, frame: Frame) -> Frame:
        """Composite the guides over a frame, returning a new frame."""
        layer = self.layer_for(frame.width, frame.height)
        data = composite(frame.data, layer)
        metadata = FrameMetadata(
            timestamp=frame.metadata.timestamp,
            frame_number=frame.metadata.frame_number,
            width=frame.width,
            height=frame.height,
            source="overlay",
        )
        return Frame(data=data, metadata=metadata)

    async def tick(self) -> bool:
        """Composite and display one frame.

        Returns:
            True if a frame was displayed
        """
        try:
            frame = await self.source.current_frame()
        except SourceUnavailable as e:
            logger.debug(f"Overlay tick skipped: {e}")
            return False

        await self.preview.display_frame(self.apply(frame))
        self._ticks += 1
        return True

    async def start(self) -> None:
        """Start the redraw timer."""
        if self.is_running:
            return

        self._task = asyncio.create_task(self._run())
        logger.info(f"Overlay started ({self.config.interval_ms}ms period)")

    async def stop(self) -> None:
        """Stop the redraw timer."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Overlay stopped after {self._ticks} frames")

    async def _run(self) -> None:
        loop = asyncio.get_event_loop()
        interval = self.config.interval_ms / 1000.0
        next_tick = loop.time()

        while True:
            await self.tick()
            next_tick += interval
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
