"""Types for the preview overlay."""

from typing import Tuple

from pydantic import BaseModel, Field


class OverlayConfig(BaseModel):
    """Configuration for the preview guide overlay."""

    interval_ms: int = Field(
        100, ge=10, le=1000, description="Redraw period in milliseconds"
    )
    bar_color: Tuple[int, int, int] = Field(
        (0, 0, 0), description="Letterbox bar color (B, G, R)"
    )
    bar_opacity: float = Field(0.3, ge=0.0, le=1.0, description="Letterbox bar opacity")
    guide_color: Tuple[int, int, int] = Field(
        (255, 255, 255), description="Safe-area outline color (B, G, R)"
    )
    guide_opacity: float = Field(
        0.3, ge=0.0, le=1.0, description="Safe-area outline opacity"
    )
    guide_width: int = Field(1, ge=1, le=10, description="Outline width in pixels")
    show_guides: bool = Field(True, description="Draw safe-area outlines")
