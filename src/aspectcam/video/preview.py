"""Preview presentation outputs.

This module provides an OpenCV window preview and a mock preview for testing.
"""

import asyncio
import logging
from typing import Optional

import cv2

from aspectcam.video.types import Frame

logger = logging.getLogger(__name__)


class MockPreviewOutput:
    """Mock preview output for testing without a display.

    Keeps the last displayed frame so tests can inspect the composited guides.
    """

    def __init__(self) -> None:
        self._initialized = False
        self._frames_displayed = 0
        self.last_frame: Optional[Frame] = None

    async def initialize(self) -> None:
        """Initialize the mock preview."""
        logger.info("Initializing mock preview")
        self._initialized = True
        self._frames_displayed = 0

    async def display_frame(self, frame: Frame) -> None:
        """Display a frame (simulated).

        Raises:
            RuntimeError: If not initialized
        """
        if not self._initialized:
            raise RuntimeError("Preview not initialized")

        self.last_frame = frame
        self._frames_displayed += 1

    async def close(self) -> None:
        """Close the mock preview."""
        logger.info(f"Closing mock preview (displayed {self._frames_displayed} frames)")
        self._initialized = False

    @property
    def frames_displayed(self) -> int:
        """Get number of frames displayed."""
        return self._frames_displayed


class PreviewWindow:
    """Preview output using an OpenCV window.

    Example:
        >>> preview = PreviewWindow("aspectcam")
        >>> await preview.initialize()
        >>> await preview.display_frame(frame)
        >>> await preview.close()
    """

    def __init__(self, window_name: str = "aspectcam - press q to stop", size: int = 720) -> None:
        """Initialize preview window.

        Args:
            window_name: Window title
            size: Initial window side length in pixels
        """
        self._window_name = window_name
        self._size = size
        self._initialized = False
        self._frames_displayed = 0
        self.quit_requested = False

    async def initialize(self) -> None:
        """Create the preview window."""
        logger.info(f"Initializing preview window: {self._window_name}")

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._init_window)
        self._initialized = True

    def _init_window(self) -> None:
        cv2.namedWindow(self._window_name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self._window_name, self._size, self._size)

    async def display_frame(self, frame: Frame) -> None:
        """Show a frame in the preview window.

        Raises:
            RuntimeError: If not initialized
        """
        if not self._initialized:
            raise RuntimeError("Preview not initialized")

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._show, frame)
        self._frames_displayed += 1

    def _show(self, frame: Frame) -> None:
        cv2.imshow(self._window_name, frame.data)
        if cv2.waitKey(1) & 0xFF == ord("q"):
            self.quit_requested = True

    async def close(self) -> None:
        """Destroy the preview window."""
        logger.info(f"Closing preview window (displayed {self._frames_displayed} frames)")

        if self._initialized:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, cv2.destroyWindow, self._window_name)

        self._initialized = False

    @property
    def frames_displayed(self) -> int:
        return self._frames_displayed
