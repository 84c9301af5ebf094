"""Tests for the preview guide overlay."""

import asyncio

import numpy as np
import pytest

from aspectcam.compositor.overlay import OverlayCompositor, composite, render_guides
from aspectcam.compositor.types import OverlayConfig
from aspectcam.video.preview import MockPreviewOutput
from aspectcam.video.source import MockFrameSource
from aspectcam.video.types import Frame, FrameMetadata, SourceConfig


def _flat_frame(side: int, value: int = 200) -> Frame:
    data = np.full((side, side, 3), value, dtype=np.uint8)
    return Frame(data=data, metadata=FrameMetadata(width=side, height=side, source="test"))


class TestOverlayConfig:
    """Test overlay configuration."""

    def test_default_config(self):
        """Test default overlay configuration."""
        config = OverlayConfig()

        assert config.interval_ms == 100
        assert config.bar_opacity == 0.3
        assert config.guide_opacity == 0.3
        assert config.guide_width == 1

    def test_opacity_validation(self):
        """Test opacity must be within 0-1."""
        with pytest.raises(Exception):  # Pydantic ValidationError
            OverlayConfig(bar_opacity=1.5)


class TestRenderGuides:
    """Test guide layer rendering."""

    def test_layer_matches_surface_size(self):
        """Test the layer is BGRA at the requested size."""
        layer = render_guides(640, 640, cinema=False)

        assert layer.shape == (640, 640, 4)

    def test_no_bars_without_cinema(self):
        """Test the bar band is transparent when cinema is off."""
        layer = render_guides(640, 640, cinema=False)

        # 640 * 9/16 = 360, bars would be rows 0..140
        assert layer[10:130, 10:130, 3].max() == 0

    def test_bars_with_cinema(self):
        """Test translucent black bars cover the band outside the safe area."""
        layer = render_guides(640, 640, cinema=True)

        alpha = int(round(0.3 * 255))
        assert (layer[:140, :, 3] == alpha).all()
        assert (layer[500:, :, 3] == alpha).all()
        assert (layer[:140, :130, :3] == 0).all()

    def test_guides_outline_safe_areas(self):
        """Test the safe-area outlines are one pixel wide and white."""
        layer = render_guides(640, 640, cinema=False)

        # Horizontal safe area top edge at y=140; vertical left edge at x=140
        assert (layer[140, 300, :3] == 255).all()
        assert layer[140, 300, 3] > 0
        assert (layer[300, 140, :3] == 255).all()
        # Inside both areas stays clear
        assert layer[300, 300, 3] == 0

    def test_guides_can_be_disabled(self):
        """Test show_guides=False leaves the layer empty without cinema."""
        layer = render_guides(640, 640, cinema=False, config=OverlayConfig(show_guides=False))

        assert not layer.any()


class TestComposite:
    """Test alpha compositing."""

    def test_transparent_layer_is_noop(self):
        """Test compositing a transparent layer keeps the frame."""
        frame = np.full((8, 8, 3), 120, dtype=np.uint8)
        layer = np.zeros((8, 8, 4), dtype=np.uint8)

        np.testing.assert_array_equal(composite(frame, layer), frame)

    def test_translucent_black_darkens(self):
        """Test a 30% black layer darkens the frame to 70%."""
        frame = np.full((8, 8, 3), 200, dtype=np.uint8)
        layer = np.zeros((8, 8, 4), dtype=np.uint8)
        layer[:, :, 3] = 255

        assert (composite(frame, layer) == 0).all()

        layer[:, :, 3] = int(round(0.3 * 255))
        result = composite(frame, layer)
        assert abs(int(result[0, 0, 0]) - 140) <= 1


class TestOverlayCompositor:
    """Test the overlay timer and preview push."""

    @pytest.mark.asyncio
    async def test_apply_does_not_touch_source_frame(self):
        """Test apply returns a new frame and leaves the input pixels alone."""
        overlay = OverlayCompositor(MockFrameSource(), MockPreviewOutput(), cinema=True)
        frame = _flat_frame(320)

        composited = overlay.apply(frame)

        assert composited is not frame
        assert (frame.data == 200).all()
        assert composited.data[5, 160, 0] < 200
        assert composited.metadata.source == "overlay"

    @pytest.mark.asyncio
    async def test_layer_follows_cinema_flag(self):
        """Test toggling cinema changes the layer used."""
        overlay = OverlayCompositor(MockFrameSource(), MockPreviewOutput())
        frame = _flat_frame(320)

        assert overlay.apply(frame).data[5, 160, 0] == 200
        overlay.cinema = True
        assert overlay.apply(frame).data[5, 160, 0] < 200

    @pytest.mark.asyncio
    async def test_tick_pushes_to_preview(self):
        """Test a tick samples the source and displays a composited frame."""
        source = MockFrameSource(SourceConfig(resolution=160))
        preview = MockPreviewOutput()
        await source.initialize()
        await preview.initialize()
        overlay = OverlayCompositor(source, preview)

        assert await overlay.tick()

        assert preview.frames_displayed == 1
        assert preview.last_frame.width == 160
        assert preview.last_frame.metadata.source == "overlay"

    @pytest.mark.asyncio
    async def test_tick_skips_when_source_unavailable(self):
        """Test a tick with no active source displays nothing."""
        preview = MockPreviewOutput()
        await preview.initialize()
        overlay = OverlayCompositor(MockFrameSource(), preview)

        assert not await overlay.tick()
        assert preview.frames_displayed == 0

    @pytest.mark.asyncio
    async def test_timer_runs_until_stopped(self):
        """Test the timer redraws periodically until stopped."""
        source = MockFrameSource(SourceConfig(resolution=160))
        preview = MockPreviewOutput()
        await source.initialize()
        await preview.initialize()
        overlay = OverlayCompositor(source, preview, OverlayConfig(interval_ms=10))

        await overlay.start()
        assert overlay.is_running
        await asyncio.sleep(0.1)
        await overlay.stop()

        assert not overlay.is_running
        displayed = preview.frames_displayed
        assert displayed >= 2

        await asyncio.sleep(0.05)
        assert preview.frames_displayed == displayed
