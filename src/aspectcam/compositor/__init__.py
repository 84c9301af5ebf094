"""Geometry and preview overlay for the multi-aspect outputs."""

from aspectcam.compositor.geometry import (
    SAFE_RATIO,
    CropWindow,
    allocate_surface,
    bake_letterbox,
    crop,
    crop_window,
    letterbox_bar_height,
    safe_area_rects,
    target_size,
)
from aspectcam.compositor.overlay import OverlayCompositor, composite, render_guides
from aspectcam.compositor.types import OverlayConfig

__all__ = [
    "SAFE_RATIO",
    "CropWindow",
    "allocate_surface",
    "bake_letterbox",
    "crop",
    "crop_window",
    "letterbox_bar_height",
    "safe_area_rects",
    "target_size",
    "OverlayCompositor",
    "composite",
    "render_guides",
    "OverlayConfig",
]
