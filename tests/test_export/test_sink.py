"""Tests for the export sink."""

from unittest.mock import MagicMock

import pytest

from aspectcam.artifacts.models import photo_artifact
from aspectcam.errors import ExportUnsupported
from aspectcam.export.sink import CameraRollTarget, DownloadTarget, ExportResult, ExportSink
from aspectcam.video.types import Aspect


@pytest.fixture
def adopted(artifact_manager, photo_session):
    """Provide a set holding three adopted stills."""
    artifacts = artifact_manager.open_set(photo_session)
    for aspect, size in (
        (Aspect.SQUARE, (320, 320)),
        (Aspect.HORIZONTAL, (320, 180)),
        (Aspect.VERTICAL, (180, 320)),
    ):
        artifacts.add(photo_artifact(aspect.value.encode(), aspect, *size))
    return artifacts


class TestCameraRollTarget:
    """Test the native camera roll target."""

    def test_unconfigured_is_unsupported(self, adopted):
        """Test a target without a directory cannot save."""
        target = CameraRollTarget()

        assert not target.can_save(adopted[0])
        with pytest.raises(ExportUnsupported):
            target.save(adopted[0])

    def test_saves_copy(self, adopted, temp_dir):
        """Test the handle's file is copied into the camera roll."""
        roll = temp_dir / "roll"
        roll.mkdir()

        path = CameraRollTarget(roll).save(adopted[1])

        assert path.parent == roll
        assert path.name.startswith("capture-horizontal-")
        assert path.read_bytes() == b"horizontal"


class TestDownloadTarget:
    """Test the download fallback."""

    def test_unique_names(self, adopted, temp_dir):
        """Test repeated downloads never overwrite each other."""
        target = DownloadTarget(temp_dir / "downloads")

        first = target.save(adopted[0])
        second = target.save(adopted[0])

        assert first != second
        assert first.read_bytes() == second.read_bytes() == b"square"

    def test_falls_back_to_payload(self, adopted, temp_dir):
        """Test a revoked handle falls back to the in-memory payload."""
        artifact = adopted[2]
        artifact.handle.revoke()

        path = DownloadTarget(temp_dir / "downloads").save(artifact)

        assert path.read_bytes() == b"vertical"


class TestExportSink:
    """Test export with fallback."""

    @pytest.mark.asyncio
    async def test_native_save(self, adopted, temp_dir):
        """Test a usable native target saves."""
        roll = temp_dir / "roll"
        roll.mkdir()
        sink = ExportSink(temp_dir / "downloads", native=CameraRollTarget(roll))

        assert await sink.export(adopted[0]) == ExportResult.SAVED
        assert len(list(roll.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_unsupported_falls_back_to_download(self, adopted, temp_dir):
        """Test an unusable native target falls back without raising."""
        sink = ExportSink(temp_dir / "downloads", native=CameraRollTarget(temp_dir / "missing"))

        assert await sink.export(adopted[0]) == ExportResult.DOWNLOADED
        assert len(list((temp_dir / "downloads").iterdir())) == 1

    @pytest.mark.asyncio
    async def test_native_error_falls_back_to_download(self, adopted, temp_dir):
        """Test an unexpected native error still downloads."""
        native = MagicMock()
        native.save.side_effect = OSError("share sheet dismissed")
        sink = ExportSink(temp_dir / "downloads", native=native)

        assert await sink.export(adopted[0]) == ExportResult.DOWNLOADED

    @pytest.mark.asyncio
    async def test_no_native_target_downloads(self, adopted, temp_dir):
        """Test exports download when no native target exists."""
        sink = ExportSink(temp_dir / "downloads")

        assert await sink.export(adopted[1]) == ExportResult.DOWNLOADED
        assert sink.exported[0].read_bytes() == b"horizontal"

    @pytest.mark.asyncio
    async def test_export_never_raises(self, adopted, temp_dir):
        """Test a failing download reports failure instead of raising."""
        blocker = temp_dir / "downloads"
        blocker.write_bytes(b"a file, not a directory")
        sink = ExportSink(blocker)

        assert await sink.export(adopted[0]) == ExportResult.FAILED

    @pytest.mark.asyncio
    async def test_export_all_releases_set(self, adopted, artifact_manager, temp_dir):
        """Test download-all exports every artifact then releases the set."""
        sink = ExportSink(temp_dir / "downloads")

        results = await sink.export_all(adopted)

        assert results == [ExportResult.DOWNLOADED] * 3
        assert adopted.released
        assert artifact_manager.live_handle_count == 0
        assert len(list((temp_dir / "downloads").iterdir())) == 3
