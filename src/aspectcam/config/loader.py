"""Configuration loader and models."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator

from aspectcam.compositor.types import OverlayConfig
from aspectcam.video.recorder import DEFAULT_ENCODERS, EncoderSpec
from aspectcam.video.types import (
    CaptureMode,
    FacingMode,
    FlashMode,
    SourceConfig,
    VideoQuality,
)

logger = logging.getLogger(__name__)

ZOOM_LEVELS = (0.5, 1.0, 2.0, 3.0)
FRAME_RATES = (30, 60)


class CameraConfig(BaseModel):
    """Camera device settings."""

    facing: FacingMode = Field(FacingMode.ENVIRONMENT, description="Initial facing direction")
    user_device: str = Field("1", description="Device index or path for the user-facing camera")
    environment_device: str = Field(
        "0", description="Device index or path for the environment-facing camera"
    )
    quality: VideoQuality = Field(VideoQuality.HD, description="Square master quality")
    frame_rate: int = Field(30, description="Master frame rate (30 or 60)")
    zoom: float = Field(1.0, description="Initial zoom level")
    audio: bool = Field(True, description="Record audio with video")
    audio_device: Optional[str] = Field(None, description="sounddevice input device")
    audio_sample_rate: int = Field(48000, ge=8000, le=192000, description="Audio sample rate")
    timeout_ms: int = Field(5000, ge=100, description="Frame read timeout in ms")

    @field_validator("frame_rate")
    @classmethod
    def _check_frame_rate(cls, value: int) -> int:
        if value not in FRAME_RATES:
            raise ValueError(f"frame_rate must be one of {FRAME_RATES}")
        return value

    @field_validator("zoom")
    @classmethod
    def _check_zoom(cls, value: float) -> float:
        if value not in ZOOM_LEVELS:
            raise ValueError(f"zoom must be one of {ZOOM_LEVELS}")
        return value

    def to_source_config(self) -> SourceConfig:
        """Build the frame source configuration."""
        return SourceConfig(
            facing=self.facing,
            user_device=self.user_device,
            environment_device=self.environment_device,
            resolution=self.quality.resolution,
            frame_rate=self.frame_rate,
            zoom=self.zoom,
            audio=self.audio,
            audio_device=self.audio_device,
            audio_sample_rate=self.audio_sample_rate,
            timeout_ms=self.timeout_ms,
        )


class CaptureConfig(BaseModel):
    """Capture pipeline settings."""

    mode: CaptureMode = Field(CaptureMode.PHOTO, description="Initial capture mode")
    cinema: bool = Field(False, description="Bake cinema bars into video")
    flash: FlashMode = Field(FlashMode.OFF, description="Initial flash mode")
    derived_frame_rate: int = Field(
        30, ge=1, le=120, description="Sampling clock for derived video passes"
    )
    realtime_playback: bool = Field(
        False, description="Pace derived passes against the wall clock"
    )
    encoders: List[str] = Field(
        default_factory=lambda: [spec.name for spec in DEFAULT_ENCODERS],
        description="Encoder preference list as fourcc/extension",
    )
    work_dir: Optional[Path] = Field(None, description="Directory for intermediate encodes")

    @field_validator("encoders")
    @classmethod
    def _check_encoders(cls, value: List[str]) -> List[str]:
        known = {spec.name for spec in DEFAULT_ENCODERS}
        unknown = [name for name in value if name not in known]
        if unknown:
            raise ValueError(f"Unknown encoders {unknown}; choose from {sorted(known)}")
        if not value:
            raise ValueError("At least one encoder is required")
        return value

    def encoder_specs(self) -> Tuple[EncoderSpec, ...]:
        """Resolve the preference list to encoder specs."""
        by_name = {spec.name: spec for spec in DEFAULT_ENCODERS}
        return tuple(by_name[name] for name in self.encoders)


class ExportConfig(BaseModel):
    """Artifact storage and export settings."""

    storage_dir: Optional[Path] = Field(
        None, description="Session artifact store (a temp dir if unset)"
    )
    camera_roll_dir: Optional[Path] = Field(
        None, description="Native save directory; exports download if unset"
    )
    downloads_dir: Path = Field(
        Path("~/Downloads"), description="Fallback download directory"
    )


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field("INFO", description="Root log level")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return value


class AppConfig(BaseModel):
    """Complete application configuration."""

    camera: CameraConfig = Field(default_factory=CameraConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    overlay: OverlayConfig = Field(default_factory=OverlayConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigLoader:
    """Loads application configuration from YAML."""

    DEFAULT_CONFIG_PATHS = [
        "/etc/aspectcam/config.yaml",
        "./config/aspectcam.yaml",
        "~/.config/aspectcam/config.yaml",
    ]

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to configuration file (optional)
        """
        self.config_path = config_path
        self.loaded_from: Optional[Path] = None
        self.config = AppConfig()
        self.load_config()

    def load_config(self) -> AppConfig:
        """Load configuration from the first file found.

        Returns:
            Validated configuration

        Raises:
            pydantic.ValidationError: If the file holds invalid values
        """
        if self.config_path:
            paths = [self.config_path]
        else:
            paths = self.DEFAULT_CONFIG_PATHS

        for path in paths:
            expanded_path = Path(path).expanduser()
            if not expanded_path.exists():
                continue

            try:
                with open(expanded_path, "r") as f:
                    raw = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading config from {expanded_path}: {e}")
                continue

            self.config = AppConfig.model_validate(raw)
            self.loaded_from = expanded_path
            logger.info(f"Loaded configuration from {expanded_path}")
            return self.config

        logger.warning("No configuration file found, using defaults")
        self.config = AppConfig()
        return self.config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key.

        Args:
            key: Configuration key (e.g., 'camera.quality')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value: Any = self.config
        for k in key.split("."):
            if isinstance(value, BaseModel) and k in type(value).model_fields:
                value = getattr(value, k)
            else:
                return default
        return value

    def save_config(self, path: Optional[str] = None) -> bool:
        """Save configuration to file.

        Args:
            path: Path to save configuration (uses loaded path if None)

        Returns:
            True if successful, False otherwise
        """
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[1]
        save_path = Path(save_path).expanduser()

        data: Dict[str, Any] = self.config.model_dump(mode="json")
        try:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, "w") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Error saving configuration to {save_path}: {e}")
            return False

        logger.info(f"Configuration saved to {save_path}")
        return True
