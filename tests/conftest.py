"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to Python path
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))

from aspectcam.artifacts.manager import ArtifactManager  # noqa: E402
from aspectcam.video.recorder import EncoderSpec  # noqa: E402
from aspectcam.video.source import MockFrameSource  # noqa: E402
from aspectcam.video.types import CaptureMode, CaptureSession, SourceConfig  # noqa: E402

# Motion-JPEG in AVI ships with every OpenCV build
MJPG = EncoderSpec("MJPG", "avi", "video/x-msvideo")
TEST_ENCODERS = (MJPG,)

TEST_RESOLUTION = 320


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def work_dir(temp_dir):
    """Provide a working directory for intermediate encodes."""
    path = temp_dir / "work"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def source_config():
    """Provide a small square source configuration."""
    return SourceConfig(resolution=TEST_RESOLUTION, frame_rate=30)


@pytest.fixture
async def mock_source(source_config):
    """Provide an initialized mock frame source."""
    source = MockFrameSource(source_config)
    await source.initialize()
    yield source
    await source.close()


@pytest.fixture
def photo_session():
    """Provide a photo session at the test resolution."""
    return CaptureSession(mode=CaptureMode.PHOTO, resolution=TEST_RESOLUTION)


@pytest.fixture
def video_session():
    """Provide a video session at the test resolution."""
    return CaptureSession(mode=CaptureMode.VIDEO, resolution=TEST_RESOLUTION, frame_rate=30)


@pytest.fixture
def artifact_manager(temp_dir):
    """Provide an artifact manager backed by a temp directory."""
    manager = ArtifactManager(temp_dir / "store")
    yield manager
    manager.close()


@pytest.fixture
def gradient_surface():
    """Provide a 1920x1920 surface where each pixel encodes its own column and row."""
    side = 1920
    surface = np.zeros((side, side, 3), dtype=np.uint8)
    surface[:, :, 0] = (np.arange(side) % 256)[None, :]
    surface[:, :, 1] = (np.arange(side) % 256)[:, None]
    surface[:, :, 2] = 128
    return surface


@pytest.fixture
def encoders():
    """Provide an encoder preference list that needs no system codecs."""
    return TEST_ENCODERS
