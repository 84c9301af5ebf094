"""Common types and protocols for the capture pipelines.

This module defines the frame, session and configuration structures and the
protocol interfaces shared by the frame source, the preview output and the
capture pipelines.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Tuple

import numpy as np
from pydantic import BaseModel, Field


class CaptureMode(str, Enum):
    """Capture modes."""

    PHOTO = "photo"
    VIDEO = "video"


class FacingMode(str, Enum):
    """Camera facing direction."""

    USER = "user"
    ENVIRONMENT = "environment"

    def toggled(self) -> "FacingMode":
        """Get the opposite facing direction."""
        if self is FacingMode.USER:
            return FacingMode.ENVIRONMENT
        return FacingMode.USER


class VideoQuality(str, Enum):
    """Square master resolution presets."""

    HD = "HD"
    UHD_4K = "4K"

    @property
    def resolution(self) -> int:
        """Get the square side length in pixels."""
        return 3840 if self is VideoQuality.UHD_4K else 1920


class FlashMode(str, Enum):
    """Simulated flash modes."""

    OFF = "off"
    ON = "on"
    AUTO = "auto"

    def next(self) -> "FlashMode":
        """Cycle off -> on -> auto -> off."""
        order = [FlashMode.OFF, FlashMode.ON, FlashMode.AUTO]
        return order[(order.index(self) + 1) % len(order)]

    @property
    def fires(self) -> bool:
        """Whether a flash effect accompanies the capture instant."""
        return self is not FlashMode.OFF


class Aspect(str, Enum):
    """Aspect label of a derived output."""

    SQUARE = "square"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @property
    def label(self) -> str:
        """Human-readable aspect name used in captions."""
        return self.value.capitalize()


@dataclass
class FrameMetadata:
    """Metadata associated with a video frame."""

    timestamp: datetime = field(default_factory=datetime.utcnow)
    frame_number: int = 0
    width: int = 1920
    height: int = 1920
    source: str = "unknown"

    def __post_init__(self) -> None:
        """Validate metadata after initialization."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid dimensions: {self.width}x{self.height}")


@dataclass
class Frame:
    """A video frame with metadata.

    Attributes:
        data: The frame data as a BGR numpy array (H, W, 3)
        metadata: Frame metadata
    """

    data: np.ndarray
    metadata: FrameMetadata

    def __post_init__(self) -> None:
        """Validate frame after initialization."""
        if self.data.ndim not in (2, 3):
            raise ValueError(f"Frame must be 2D or 3D array, got {self.data.ndim}D")

        height, width = self.data.shape[:2]
        if height != self.metadata.height or width != self.metadata.width:
            raise ValueError(
                f"Frame dimensions {width}x{height} don't match "
                f"metadata {self.metadata.width}x{self.metadata.height}"
            )

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get frame shape."""
        return self.data.shape

    @property
    def width(self) -> int:
        """Get frame width."""
        return self.metadata.width

    @property
    def height(self) -> int:
        """Get frame height."""
        return self.metadata.height


@dataclass
class CaptureSession:
    """One user-initiated capture: a photo press or a record start/stop cycle."""

    mode: CaptureMode
    cinema: bool = False
    resolution: int = 1920
    frame_rate: int = 30
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self) -> None:
        if self.resolution <= 0:
            raise ValueError(f"Invalid square resolution: {self.resolution}")
        if self.frame_rate <= 0:
            raise ValueError(f"Invalid frame rate: {self.frame_rate}")


class SourceConfig(BaseModel):
    """Configuration for the live frame source."""

    facing: FacingMode = Field(FacingMode.ENVIRONMENT, description="Facing direction")
    user_device: str = Field("1", description="Device index or path for the user-facing camera")
    environment_device: str = Field(
        "0", description="Device index or path for the environment-facing camera"
    )
    resolution: int = Field(1920, ge=64, le=7680, description="Requested square side")
    frame_rate: int = Field(30, ge=1, le=120, description="Requested frame rate")
    zoom: float = Field(1.0, ge=0.5, le=10.0, description="Zoom factor if supported")
    audio: bool = Field(False, description="Capture audio alongside video")
    audio_device: Optional[str] = Field(None, description="sounddevice input device")
    audio_sample_rate: int = Field(48000, ge=8000, le=192000, description="Audio sample rate")
    timeout_ms: int = Field(5000, ge=100, description="Frame read timeout in ms")

    @property
    def device(self) -> str:
        """Device selected by the current facing direction."""
        if self.facing is FacingMode.USER:
            return self.user_device
        return self.environment_device


# Protocol definitions for dependency injection and testing


class FrameSourceProtocol(Protocol):
    """Protocol for live frame sources."""

    async def initialize(self) -> None:
        """Establish the underlying device stream.

        Raises:
            SourceUnavailable: If the device cannot be opened
        """
        ...

    async def current_frame(self) -> Frame:
        """Sample the latest frame.

        Raises:
            SourceUnavailable: If the source is not active
        """
        ...

    async def is_available(self) -> bool:
        """Check if the source can deliver frames."""
        ...

    async def set_zoom(self, zoom: float) -> None:
        """Apply a zoom level where the device supports it."""
        ...

    async def reconfigure(self, config: SourceConfig) -> None:
        """Tear down and re-establish the source with a new configuration."""
        ...

    async def close(self) -> None:
        """Tear down the source and release resources."""
        ...

    @property
    def has_audio(self) -> bool:
        """Whether the source carries an audio track."""
        ...

    @property
    def config(self) -> SourceConfig:
        """Get source configuration."""
        ...


class PreviewOutputProtocol(Protocol):
    """Protocol for preview presentation surfaces."""

    async def initialize(self) -> None:
        ...

    async def display_frame(self, frame: Frame) -> None:
        ...

    async def close(self) -> None:
        ...
