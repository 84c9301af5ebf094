"""Live frame sources.

This module provides both a real OpenCV camera source and a mock source for
testing. Both expose a pull-based ``current_frame()`` suitable for repeated
sampling by the preview overlay and the capture pipelines.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Union

import cv2
import numpy as np

from aspectcam.errors import SourceUnavailable
from aspectcam.video.types import Frame, FrameMetadata, SourceConfig

logger = logging.getLogger(__name__)


class MockFrameSource:
    """Mock frame source for testing without a camera.

    Generates synthetic square test pattern frames matching the configured
    resolution. The frame number is drawn into every frame so consecutive
    samples differ.

    Example:
        >>> source = MockFrameSource(SourceConfig(resolution=320))
        >>> await source.initialize()
        >>> frame = await source.current_frame()
        >>> print(f"Sampled {frame.width}x{frame.height} frame")
    """

    def __init__(self, config: Optional[SourceConfig] = None, has_audio: bool = False) -> None:
        """Initialize mock source.

        Args:
            config: Source configuration
            has_audio: Whether the source reports an audio track
        """
        self._config = config or SourceConfig()
        self._has_audio = has_audio
        self._initialized = False
        self._frame_count = 0
        self.reconfigure_count = 0

    async def initialize(self) -> None:
        """Initialize the mock source."""
        logger.info(
            f"Initializing mock source: {self._config.resolution}px "
            f"@ {self._config.frame_rate}fps ({self._config.facing.value})"
        )
        self._initialized = True
        self._frame_count = 0

    async def current_frame(self) -> Frame:
        """Sample a synthetic test pattern frame.

        Raises:
            SourceUnavailable: If not initialized
        """
        if not self._initialized:
            raise SourceUnavailable("Frame source not initialized")

        self._frame_count += 1
        side = self._config.resolution
        metadata = FrameMetadata(
            timestamp=datetime.utcnow(),
            frame_number=self._frame_count,
            width=side,
            height=side,
            source="mock_source",
        )
        return Frame(data=self._generate_test_pattern(), metadata=metadata)

    def _generate_test_pattern(self) -> np.ndarray:
        """Generate a colour bar test pattern.

        Returns:
            Test pattern frame as numpy array
        """
        side = self._config.resolution
        frame = np.zeros((side, side, 3), dtype=np.uint8)

        colors = [
            (255, 255, 255),  # White
            (0, 255, 255),    # Yellow
            (255, 255, 0),    # Cyan
            (0, 255, 0),      # Green
            (255, 0, 255),    # Magenta
            (0, 0, 255),      # Red
            (255, 0, 0),      # Blue
            (128, 128, 128),  # Gray
        ]

        bar_width = max(1, side // len(colors))
        for i, color in enumerate(colors):
            x_start = i * bar_width
            x_end = (i + 1) * bar_width if i < len(colors) - 1 else side
            frame[:, x_start:x_end] = color

        cv2.putText(
            frame,
            f"{self._frame_count}",
            (side // 10, side // 2),
            cv2.FONT_HERSHEY_SIMPLEX,
            max(side / 480.0, 0.4),
            (0, 0, 0),
            2,
            cv2.LINE_AA,
        )
        return frame

    async def is_available(self) -> bool:
        """Check if the source is active."""
        return self._initialized

    async def set_zoom(self, zoom: float) -> None:
        self._config = self._config.model_copy(update={"zoom": zoom})

    async def reconfigure(self, config: SourceConfig) -> None:
        """Tear down and re-establish with a new configuration."""
        await self.close()
        self._config = config
        self.reconfigure_count += 1
        await self.initialize()

    async def close(self) -> None:
        """Tear down the mock source."""
        logger.info("Closing mock source")
        self._initialized = False

    @property
    def has_audio(self) -> bool:
        return self._has_audio

    @property
    def config(self) -> SourceConfig:
        return self._config


class CameraSource:
    """Live camera source using OpenCV.

    Opens the device selected by the configured facing direction, requests a
    square resolution and frame rate, and centre-crops whatever the device
    actually delivers to a square.

    Example:
        >>> source = CameraSource(SourceConfig(environment_device="0"))
        >>> await source.initialize()
        >>> frame = await source.current_frame()
        >>> await source.close()
    """

    def __init__(self, config: SourceConfig) -> None:
        """Initialize camera source.

        Args:
            config: Source configuration
        """
        self._config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._initialized = False
        self._frame_count = 0

    async def initialize(self) -> None:
        """Open the camera device.

        Raises:
            SourceUnavailable: If the device cannot be opened
        """
        logger.info(
            f"Initializing camera: {self._config.device} ({self._config.facing.value}) "
            f"at {self._config.resolution}px @ {self._config.frame_rate}fps"
        )

        loop = asyncio.get_event_loop()
        success = await loop.run_in_executor(None, self._open_device)

        if not success:
            raise SourceUnavailable(f"Failed to open camera: {self._config.device}")

        self._initialized = True
        self._frame_count = 0
        logger.info("Camera initialized successfully")

    @staticmethod
    def _device_ref(device: str) -> Union[int, str]:
        return int(device) if device.isdigit() else device

    def _open_device(self) -> bool:
        """Open and configure the OpenCV capture (blocking operation).

        Returns:
            True if successful
        """
        self._cap = cv2.VideoCapture(self._device_ref(self._config.device))

        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.resolution)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.resolution)
        self._cap.set(cv2.CAP_PROP_FPS, self._config.frame_rate)
        self._apply_zoom()
        return True

    def _apply_zoom(self) -> None:
        """Apply zoom if the device supports it."""
        if self._cap is None:
            return
        if not self._cap.set(cv2.CAP_PROP_ZOOM, self._config.zoom):
            logger.debug("Zoom not supported on this device")

    async def current_frame(self) -> Frame:
        """Sample the latest frame from the camera.

        Raises:
            SourceUnavailable: If not initialized, the read times out or fails
        """
        if not self._initialized or self._cap is None:
            raise SourceUnavailable("Frame source not initialized")

        loop = asyncio.get_event_loop()
        try:
            ret, frame_data = await asyncio.wait_for(
                loop.run_in_executor(None, self._cap.read),
                timeout=self._config.timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError as e:
            raise SourceUnavailable(
                f"Frame read timed out after {self._config.timeout_ms}ms"
            ) from e

        if not ret or frame_data is None:
            raise SourceUnavailable("Failed to read frame from camera")

        frame_data = self._square(frame_data)
        self._frame_count += 1
        metadata = FrameMetadata(
            timestamp=datetime.utcnow(),
            frame_number=self._frame_count,
            width=frame_data.shape[1],
            height=frame_data.shape[0],
            source=self._config.device,
        )
        return Frame(data=frame_data, metadata=metadata)

    @staticmethod
    def _square(frame_data: np.ndarray) -> np.ndarray:
        """Centre-crop a device frame to a square (object-fit: cover)."""
        height, width = frame_data.shape[:2]
        side = min(width, height)
        x = (width - side) // 2
        y = (height - side) // 2
        return frame_data[y : y + side, x : x + side]

    async def is_available(self) -> bool:
        """Check if the camera is open and ready."""
        return self._initialized and self._cap is not None and self._cap.isOpened()

    async def set_zoom(self, zoom: float) -> None:
        """Apply a new zoom factor without re-establishing the stream."""
        self._config = self._config.model_copy(update={"zoom": zoom})
        if self._cap is not None:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._apply_zoom)

    async def reconfigure(self, config: SourceConfig) -> None:
        """Tear down and re-open the camera with a new configuration."""
        logger.info("Reconfiguring camera")
        await self.close()
        self._config = config
        await self.initialize()

    async def close(self) -> None:
        """Release the camera device."""
        logger.info("Closing camera")

        if self._cap is not None:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self._cap.release)
            self._cap = None

        self._initialized = False

    @property
    def has_audio(self) -> bool:
        return self._config.audio

    @property
    def config(self) -> SourceConfig:
        return self._config
