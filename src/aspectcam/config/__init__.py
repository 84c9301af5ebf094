from aspectcam.config.loader import (
    AppConfig,
    CameraConfig,
    CaptureConfig,
    ConfigLoader,
    ExportConfig,
    FRAME_RATES,
    LoggingConfig,
    ZOOM_LEVELS,
)
from aspectcam.compositor.types import OverlayConfig

__all__ = [
    "AppConfig",
    "CameraConfig",
    "CaptureConfig",
    "ConfigLoader",
    "ExportConfig",
    "FRAME_RATES",
    "LoggingConfig",
    "OverlayConfig",
    "ZOOM_LEVELS",
]
