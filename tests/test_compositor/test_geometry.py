"""Tests for crop and letterbox geometry."""

import numpy as np
import pytest

from aspectcam.compositor.geometry import (
    SAFE_RATIO,
    CropWindow,
    allocate_surface,
    bake_letterbox,
    centered_offset,
    crop,
    crop_window,
    letterbox_bar_height,
    safe_area_rects,
    target_size,
)
from aspectcam.errors import SurfaceUnavailable
from aspectcam.video.types import Aspect


class TestTargetSize:
    """Test derived output sizes."""

    def test_hd_master(self):
        """Test the 1920 square master yields 1920x1080 and 1080x1920."""
        assert target_size(Aspect.SQUARE, 1920, 1920) == (1920, 1920)
        assert target_size(Aspect.HORIZONTAL, 1920, 1920) == (1920, 1080)
        assert target_size(Aspect.VERTICAL, 1920, 1920) == (1080, 1920)

    def test_4k_master(self):
        """Test the 3840 square master yields 3840x2160 and 2160x3840."""
        assert target_size(Aspect.HORIZONTAL, 3840, 3840) == (3840, 2160)
        assert target_size(Aspect.VERTICAL, 3840, 3840) == (2160, 3840)

    def test_rounding(self):
        """Test odd sizes round to the nearest pixel."""
        # 100 * 9/16 = 56.25
        assert target_size(Aspect.HORIZONTAL, 100, 100) == (100, 56)
        assert target_size(Aspect.VERTICAL, 100, 100) == (56, 100)


class TestCropWindow:
    """Test centred crop windows."""

    def test_horizontal_window_is_vertically_centred(self):
        """Test horizontal crop keeps full width at offset (1920-1080)/2."""
        window = crop_window(Aspect.HORIZONTAL, 1920, 1920)

        assert window == CropWindow(x=0, y=420, width=1920, height=1080)
        assert window.size == (1920, 1080)

    def test_vertical_window_is_horizontally_centred(self):
        """Test vertical crop keeps full height at offset (1920-1080)/2."""
        window = crop_window(Aspect.VERTICAL, 1920, 1920)

        assert window == CropWindow(x=420, y=0, width=1080, height=1920)

    def test_square_window_is_identity(self):
        """Test square crop covers the whole master."""
        assert crop_window(Aspect.SQUARE, 640, 640) == CropWindow(0, 0, 640, 640)

    def test_offset_uses_floor_division(self):
        """Test offsets are floored when the margin is odd."""
        assert centered_offset(101, 56) == 22
        assert centered_offset(10, 20) == 0

    def test_crop_copies_centre_pixels(self, gradient_surface):
        """Test the cropped pixels are the centred pixels of the master."""
        window = crop_window(Aspect.HORIZONTAL, 1920, 1920)
        cropped = crop(gradient_surface, window)

        assert cropped.shape == (1080, 1920, 3)
        np.testing.assert_array_equal(cropped, gradient_surface[420:1500, :])

        # Crops are copies, not views
        cropped[:] = 0
        assert gradient_surface[420:1500].any()

    def test_vertical_crop_pixels(self, gradient_surface):
        """Test vertical crop takes columns 420..1500."""
        cropped = crop(gradient_surface, crop_window(Aspect.VERTICAL, 1920, 1920))

        assert cropped.shape == (1920, 1080, 3)
        np.testing.assert_array_equal(cropped, gradient_surface[:, 420:1500])


class TestLetterbox:
    """Test cinema bar geometry."""

    def test_bar_height_at_1920(self):
        """Test each bar is (1920 - 1080) / 2 = 420 px."""
        assert letterbox_bar_height(1920) == pytest.approx(420.0)

    def test_bar_height_proportional(self):
        """Test bar height scales with the surface."""
        assert letterbox_bar_height(3840) == pytest.approx(840.0)
        assert letterbox_bar_height(720) == pytest.approx(157.5)

    def test_bake_letterbox(self):
        """Test bars are opaque black and the band between is untouched."""
        surface = np.full((1920, 1920, 3), 200, dtype=np.uint8)

        bake_letterbox(surface)

        assert not surface[:420].any()
        assert not surface[1500:].any()
        assert (surface[420:1500] == 200).all()

    def test_baked_bars_fall_outside_horizontal_crop(self):
        """Test the horizontal crop of a letterboxed master has no bars."""
        surface = np.full((1920, 1920, 3), 200, dtype=np.uint8)
        bake_letterbox(surface)

        cropped = crop(surface, crop_window(Aspect.HORIZONTAL, 1920, 1920))

        assert (cropped == 200).all()


class TestSafeArea:
    """Test preview guide rectangles."""

    def test_rects_at_1920(self):
        """Test safe areas match the crop windows at master size."""
        horizontal, vertical = safe_area_rects(1920, 1920)

        assert horizontal == pytest.approx((0, 420, 1920, 1080))
        assert vertical == pytest.approx((420, 0, 1080, 1920))

    def test_rects_follow_preview_size(self):
        """Test guides are recomputed for a smaller preview."""
        horizontal, vertical = safe_area_rects(720, 720)

        assert horizontal[3] == pytest.approx(720 * SAFE_RATIO)
        assert vertical[2] == pytest.approx(720 * SAFE_RATIO)


class TestAllocateSurface:
    """Test surface allocation."""

    def test_allocates_blank_surface(self):
        """Test surface shape and contents."""
        surface = allocate_surface(64, 32)

        assert surface.shape == (32, 64, 3)
        assert surface.dtype == np.uint8
        assert not surface.any()

    def test_invalid_size_raises(self):
        """Test zero or negative sizes raise SurfaceUnavailable."""
        with pytest.raises(SurfaceUnavailable):
            allocate_surface(0, 100)

        with pytest.raises(SurfaceUnavailable):
            allocate_surface(100, -1)
