"""Tests for the still capture pipeline."""

from unittest.mock import AsyncMock, MagicMock, patch

import cv2
import numpy as np
import pytest

from aspectcam.errors import EncodeFailure, SourceUnavailable
from aspectcam.video import still as still_module
from aspectcam.video.source import MockFrameSource
from aspectcam.video.still import StillCapturePipeline, derive_stills, encode_png, render_master
from aspectcam.video.types import (
    Aspect,
    CaptureMode,
    CaptureSession,
    FlashMode,
    Frame,
    FrameMetadata,
)


def _decode(payload: bytes) -> np.ndarray:
    return cv2.imdecode(np.frombuffer(payload, dtype=np.uint8), cv2.IMREAD_COLOR)


class TestDeriveStills:
    """Test still derivation from a master surface."""

    def test_hd_scenario_sizes(self, gradient_surface):
        """Test a 1920 master yields 1920x1920, 1920x1080 and 1080x1920."""
        surfaces = derive_stills(gradient_surface)

        assert [aspect for aspect, _ in surfaces] == [
            Aspect.SQUARE,
            Aspect.HORIZONTAL,
            Aspect.VERTICAL,
        ]
        assert [s.shape[:2] for _, s in surfaces] == [(1920, 1920), (1080, 1920), (1920, 1080)]

    def test_crops_are_centred(self, gradient_surface):
        """Test each derived still is the centred window of the master."""
        _, horizontal = derive_stills(gradient_surface)[1]
        _, vertical = derive_stills(gradient_surface)[2]

        np.testing.assert_array_equal(horizontal, gradient_surface[420:1500, :])
        np.testing.assert_array_equal(vertical, gradient_surface[:, 420:1500])

    def test_render_master_scales_to_session_size(self):
        """Test the sampled frame is scaled into the square master."""
        master = render_master(np.full((320, 320, 3), 90, dtype=np.uint8), 640)

        assert master.shape == (640, 640, 3)
        assert (master == 90).all()

    def test_encode_png_roundtrip_shape(self):
        """Test PNG output decodes to the same size."""
        payload = encode_png(np.zeros((10, 20, 3), dtype=np.uint8))

        assert payload[:8] == b"\x89PNG\r\n\x1a\n"
        assert _decode(payload).shape == (10, 20, 3)

    def test_encode_failure(self):
        """Test a failed encode raises EncodeFailure."""
        with patch.object(still_module.cv2, "imencode", return_value=(False, None)):
            with pytest.raises(EncodeFailure):
                encode_png(np.zeros((4, 4, 3), dtype=np.uint8))


class TestStillCapturePipeline:
    """Test photo capture end to end with the mock source."""

    @pytest.mark.asyncio
    async def test_capture_produces_three_pngs(self, mock_source, photo_session):
        """Test a photo yields square, horizontal and vertical PNG artifacts."""
        pipeline = StillCapturePipeline(mock_source)

        artifacts = await pipeline.capture_photo(photo_session)

        assert [a.aspect for a in artifacts] == [Aspect.SQUARE, Aspect.HORIZONTAL, Aspect.VERTICAL]
        assert [a.caption for a in artifacts] == [
            "Square (320x320)",
            "Horizontal (320x180)",
            "Vertical (180x320)",
        ]
        assert [a.filename for a in artifacts] == [
            "capture-square.png",
            "capture-horizontal.png",
            "capture-vertical.png",
        ]
        assert all(a.mime_type == "image/png" for a in artifacts)
        assert _decode(artifacts[1].payload).shape == (180, 320, 3)

    @pytest.mark.asyncio
    async def test_all_outputs_share_one_frame(self, photo_session):
        """Test all three stills come from a single sampled frame."""
        data = np.zeros((320, 320, 3), dtype=np.uint8)
        data[:, :, 0] = np.arange(320, dtype=np.uint16)[None, :] % 256
        frame = Frame(data=data, metadata=FrameMetadata(width=320, height=320))

        source = MagicMock()
        source.current_frame = AsyncMock(return_value=frame)
        artifacts = await StillCapturePipeline(source).capture_photo(photo_session)

        source.current_frame.assert_awaited_once()
        square = _decode(artifacts[0].payload)
        vertical = _decode(artifacts[2].payload)
        np.testing.assert_array_equal(vertical, square[:, 70:250])

    @pytest.mark.asyncio
    async def test_4k_session_resolution(self, mock_source):
        """Test the master follows the session resolution, not the source."""
        session = CaptureSession(mode=CaptureMode.PHOTO, resolution=640)

        artifacts = await StillCapturePipeline(mock_source).capture_photo(session)

        assert (artifacts[0].width, artifacts[0].height) == (640, 640)
        assert (artifacts[1].width, artifacts[1].height) == (640, 360)
        assert (artifacts[2].width, artifacts[2].height) == (360, 640)

    @pytest.mark.asyncio
    async def test_inactive_source_aborts(self, photo_session):
        """Test an inactive source aborts with no artifacts."""
        pipeline = StillCapturePipeline(MockFrameSource())

        with pytest.raises(SourceUnavailable):
            await pipeline.capture_photo(photo_session)

    @pytest.mark.asyncio
    async def test_flash_fires_when_enabled(self, mock_source, photo_session):
        """Test the flash callback fires for on and auto but not off."""
        flash = MagicMock()
        pipeline = StillCapturePipeline(mock_source, flash_callback=flash)

        await pipeline.capture_photo(photo_session, flash=FlashMode.OFF)
        flash.assert_not_called()

        await pipeline.capture_photo(photo_session, flash=FlashMode.AUTO)
        flash.assert_called_once()
