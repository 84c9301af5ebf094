"""Crop and letterbox geometry for the multi-aspect outputs.

All three outputs are derived from a square master. The horizontal variant
keeps the full width and a centred 9:16-of-width band; the vertical variant
keeps the full height and a centred 9:16-of-height column.
"""

from typing import NamedTuple, Tuple

import numpy as np

from aspectcam.errors import SurfaceUnavailable
from aspectcam.video.types import Aspect

# 1080 / 1920
SAFE_RATIO = 9 / 16

DERIVED_FRAME_RATE = 30


class CropWindow(NamedTuple):
    """Source-space rectangle copied into a derived surface."""

    x: int
    y: int
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)


def centered_offset(source: int, target: int) -> int:
    """Offset that centres ``target`` inside ``source``."""
    if target > source:
        return 0
    return (source - target) // 2


def target_size(aspect: Aspect, width: int, height: int) -> Tuple[int, int]:
    """Get (width, height) of an aspect variant cut from a width x height master."""
    if aspect is Aspect.HORIZONTAL:
        return (width, int(round(width * SAFE_RATIO)))
    if aspect is Aspect.VERTICAL:
        return (int(round(height * SAFE_RATIO)), height)
    return (width, height)


def crop_window(aspect: Aspect, width: int, height: int) -> CropWindow:
    """Get the centred crop window for an aspect variant.

    Args:
        aspect: Target aspect
        width: Master surface width
        height: Master surface height

    Returns:
        Crop window in master coordinates
    """
    target_w, target_h = target_size(aspect, width, height)
    return CropWindow(
        x=centered_offset(width, target_w),
        y=centered_offset(height, target_h),
        width=min(target_w, width),
        height=min(target_h, height),
    )


def letterbox_bar_height(height: float) -> float:
    """Height of each cinema bar: (H - H * 1080/1920) / 2."""
    return (height - SAFE_RATIO * height) / 2


def safe_area_rects(width: float, height: float) -> Tuple[Tuple[float, float, float, float], ...]:
    """Get the horizontal and vertical safe-area guides as (x, y, w, h).

    Computed from the current surface size so the guides stay proportional at
    any preview resolution.
    """
    horizontal_h = SAFE_RATIO * height
    horizontal_y = (height - horizontal_h) / 2
    vertical_w = SAFE_RATIO * width
    vertical_x = (width - vertical_w) / 2
    return (
        (0.0, horizontal_y, float(width), horizontal_h),
        (vertical_x, 0.0, vertical_w, float(height)),
    )


def allocate_surface(width: int, height: int, channels: int = 3) -> np.ndarray:
    """Allocate a blank drawing surface.

    Raises:
        SurfaceUnavailable: If the dimensions are invalid or memory is exhausted
    """
    if width <= 0 or height <= 0:
        raise SurfaceUnavailable(f"Invalid surface size: {width}x{height}")

    try:
        return np.zeros((height, width, channels), dtype=np.uint8)
    except MemoryError as e:
        raise SurfaceUnavailable(
            f"Cannot allocate {width}x{height} surface"
        ) from e


def crop(surface: np.ndarray, window: CropWindow) -> np.ndarray:
    """Copy the crop window out of a surface."""
    return surface[
        window.y : window.y + window.height, window.x : window.x + window.width
    ].copy()


def bake_letterbox(surface: np.ndarray) -> np.ndarray:
    """Paint opaque black cinema bars onto a surface in place."""
    height = surface.shape[0]
    bar = int(round(letterbox_bar_height(height)))
    if bar > 0:
        surface[:bar] = 0
        surface[height - bar :] = 0
    return surface
