"""CLI for aspectcam.

Captures photo and video sessions from a camera and exports the square,
horizontal and vertical outputs.
"""

import asyncio
import logging
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional

import click

from aspectcam.artifacts.manager import ArtifactManager
from aspectcam.compositor.overlay import OverlayCompositor
from aspectcam.config.loader import FRAME_RATES, AppConfig, ConfigLoader
from aspectcam.controller import CaptureController
from aspectcam.errors import CaptureError
from aspectcam.export.sink import CameraRollTarget, ExportSink
from aspectcam.video.audio import AudioRecorder, ffmpeg_available
from aspectcam.video.preview import PreviewWindow
from aspectcam.video.recorder import DEFAULT_ENCODERS, probe_encoder
from aspectcam.video.source import CameraSource, MockFrameSource
from aspectcam.video.types import CaptureMode, FlashMode, VideoQuality

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _build_controller(config: AppConfig, mock: bool, audio: bool):
    source_config = config.camera.to_source_config()
    if mock:
        source = MockFrameSource(source_config.model_copy(update={"audio": False}))
    else:
        source = CameraSource(source_config.model_copy(update={"audio": audio}))

    manager = ArtifactManager(config.export.storage_dir)
    camera_roll = None
    if config.export.camera_roll_dir is not None:
        camera_roll = CameraRollTarget(config.export.camera_roll_dir.expanduser())
    sink = ExportSink(config.export.downloads_dir.expanduser(), native=camera_roll)

    audio_recorder = None
    if audio and not mock:
        audio_recorder = AudioRecorder(
            sample_rate=config.camera.audio_sample_rate,
            device=config.camera.audio_device,
        )

    controller = CaptureController(
        source,
        manager,
        sink,
        config=config,
        audio_recorder=audio_recorder,
        flash_callback=lambda: click.echo("*flash*"),
        on_artifact=lambda a: click.echo(f"  {a.caption} -> {a.filename}"),
    )
    return source, manager, controller


def _apply_overrides(
    config: AppConfig,
    quality: Optional[str],
    fps: Optional[int],
    downloads: Optional[str],
) -> AppConfig:
    camera = config.camera
    if quality:
        camera = camera.model_copy(update={"quality": VideoQuality(quality)})
    if fps:
        camera = camera.model_copy(update={"frame_rate": fps})
    export = config.export
    if downloads:
        export = export.model_copy(update={"downloads_dir": Path(downloads)})
    return config.model_copy(update={"camera": camera, "export": export})


@click.group()
@click.option("--config", "config_path", type=click.Path(), help="Configuration file")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option("--mock", is_flag=True, help="Use a synthetic test pattern instead of a camera")
@click.pass_context
def cli(ctx, config_path, log_level, mock):
    """Multi-aspect camera capture."""
    loader = ConfigLoader(config_path)
    _configure_logging(log_level or loader.config.logging.level)
    ctx.obj = {"config": loader.config, "mock": mock}


@cli.command()
@click.option("--quality", type=click.Choice([q.value for q in VideoQuality]), help="Square quality")
@click.option("--flash", type=click.Choice([f.value for f in FlashMode]), help="Flash mode")
@click.option("--downloads", type=click.Path(), help="Download directory")
@click.pass_context
def photo(ctx, quality, flash, downloads):
    """Capture one photo as square, horizontal and vertical PNGs."""
    config = _apply_overrides(ctx.obj["config"], quality, None, downloads)

    async def _photo():
        source, manager, controller = _build_controller(config, ctx.obj["mock"], audio=False)
        try:
            await source.initialize()
            if flash:
                controller.flash = FlashMode(flash)

            click.echo(controller.settings_summary)
            artifacts = await controller.capture_photo()
            if not artifacts:
                click.echo("✗ Capture failed")
                return 1

            results = await controller.download_all()
            click.echo(f"✓ Exported {len(results)} files ({', '.join(r.value for r in results)})")
            return 0

        except CaptureError as e:
            logger.error(f"Photo failed: {e}")
            return 1

        finally:
            manager.close()
            await source.close()

    exit_code = asyncio.run(_photo())
    sys.exit(exit_code)


@cli.command()
@click.option("--duration", type=float, default=5.0, show_default=True, help="Seconds to record")
@click.option("--quality", type=click.Choice([q.value for q in VideoQuality]), help="Square quality")
@click.option("--fps", type=click.Choice([str(f) for f in FRAME_RATES]), help="Master frame rate")
@click.option("--cinema", is_flag=True, help="Bake cinema bars into the take")
@click.option("--no-audio", is_flag=True, help="Record without audio")
@click.option("--preview", is_flag=True, help="Show a preview window with guides")
@click.option("--downloads", type=click.Path(), help="Download directory")
@click.pass_context
def record(ctx, duration, quality, fps, cinema, no_audio, preview, downloads):
    """Record a video and derive horizontal and vertical versions."""
    config = _apply_overrides(ctx.obj["config"], quality, int(fps) if fps else None, downloads)
    audio = config.camera.audio and not no_audio

    if audio and not ffmpeg_available():
        logger.warning("ffmpeg not found; videos will be recorded without audio")

    async def _record():
        source, manager, controller = _build_controller(config, ctx.obj["mock"], audio=audio)
        overlay = None
        window = None
        try:
            await source.initialize()
            controller.set_mode(CaptureMode.VIDEO)
            if cinema:
                controller.set_cinema(True)

            if preview:
                window = PreviewWindow()
                await window.initialize()
                overlay = OverlayCompositor(source, window, config.overlay, cinema=controller.cinema)
                controller.overlay = overlay
                await overlay.start()

            click.echo(controller.settings_summary)
            if not await controller.start_recording():
                click.echo("✗ Recording failed to start")
                return 1

            loop = asyncio.get_event_loop()
            deadline = loop.time() + duration
            while loop.time() < deadline:
                if window is not None and window.quit_requested:
                    break
                await asyncio.sleep(0.1)

            click.echo("Finalizing...")
            artifacts = await controller.stop_recording()
            if not artifacts:
                click.echo("✗ Recording failed")
                return 1

            results = await controller.download_all()
            click.echo(f"✓ Exported {len(results)} files ({', '.join(r.value for r in results)})")
            return 0

        except CaptureError as e:
            logger.error(f"Recording failed: {e}", exc_info=True)
            return 1

        finally:
            await controller.cancel()
            if overlay is not None:
                await overlay.stop()
            if window is not None:
                await window.close()
            manager.close()
            await source.close()

    exit_code = asyncio.run(_record())
    sys.exit(exit_code)


@cli.command()
def encoders():
    """List video encoders usable by the local OpenCV build."""
    work_dir = Path(tempfile.mkdtemp(prefix="aspectcam-probe-"))
    found = False
    try:
        for spec in DEFAULT_ENCODERS:
            ok = probe_encoder(spec, work_dir)
            found = found or ok
            click.echo(f"{'✓' if ok else '✗'} {spec.name} ({spec.mime_type})")
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    click.echo(f"{'✓' if ffmpeg_available() else '✗'} ffmpeg (audio muxing)")
    sys.exit(0 if found else 1)


if __name__ == "__main__":
    cli()
