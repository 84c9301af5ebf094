"""Audio track capture and muxing.

The live microphone is recorded to a WAV file for the duration of the master
take. The same WAV track is later muxed into the master and every derived
variant with ``ffmpeg``.
"""

import asyncio
import logging
import shutil
import wave
from pathlib import Path
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)

AUDIO_CHANNELS = 1
AUDIO_DTYPE = "int16"
AUDIO_BLOCKSIZE = 1024


class AudioRecorder:
    """Record the microphone into a WAV file while a take is running."""

    def __init__(self, sample_rate: int = 48000, device: Optional[str] = None) -> None:
        """Initialize audio recorder.

        Args:
            sample_rate: Sample rate in Hz
            device: sounddevice input device name or index (default device if None)
        """
        self.sample_rate = sample_rate
        self.device = device
        self.recording = False
        self._stream = None
        self._chunks: List[np.ndarray] = []

    def _callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if not self.recording:
            return
        if status:
            logger.debug(f"Audio stream status: {status}")
        self._chunks.append(indata.copy())

    def start(self) -> bool:
        """Open the input stream and start buffering.

        Returns:
            True if the stream started
        """
        if self.recording:
            logger.warning("Audio already recording")
            return False

        import sounddevice as sd

        device = int(self.device) if self.device and self.device.isdigit() else self.device

        try:
            self._stream = sd.InputStream(
                device=device,
                callback=self._callback,
                channels=AUDIO_CHANNELS,
                samplerate=self.sample_rate,
                dtype=AUDIO_DTYPE,
                blocksize=AUDIO_BLOCKSIZE,
            )
            self._stream.start()
        except Exception as e:
            logger.error(f"Failed to start audio stream: {e}")
            self._stream = None
            return False

        self._chunks = []
        self.recording = True
        logger.info("Audio recording started")
        return True

    async def stop(self, output_path: Path) -> Optional[Path]:
        """Stop recording and write the buffered audio.

        Args:
            output_path: WAV file to write

        Returns:
            Path to the WAV file, or None if nothing was recorded
        """
        if not self.recording:
            return None

        self.recording = False
        loop = asyncio.get_event_loop()

        if self._stream is not None:
            stream = self._stream
            self._stream = None
            await loop.run_in_executor(None, self._close_stream, stream)

        if not self._chunks:
            logger.warning("No audio captured")
            return None

        await loop.run_in_executor(None, self._write_wav, output_path)
        self._chunks = []
        logger.info(f"Audio track written to {output_path}")
        return output_path

    @staticmethod
    def _close_stream(stream) -> None:
        stream.stop()
        stream.close()

    def _write_wav(self, output_path: Path) -> None:
        data = np.concatenate(self._chunks, axis=0)
        with wave.open(str(output_path), "wb") as wf:
            wf.setnchannels(AUDIO_CHANNELS)
            wf.setsampwidth(2)
            wf.setframerate(self.sample_rate)
            wf.writeframes(data.astype(np.int16).tobytes())


def ffmpeg_available() -> bool:
    """Check whether the ffmpeg binary is on PATH."""
    return shutil.which("ffmpeg") is not None


async def mux_audio(video_path: Path, audio_path: Path, output_path: Path) -> bool:
    """Attach an audio track to a silent video file.

    The video stream is copied, the audio is re-encoded to a codec the
    container accepts, and the result is cut to the shorter of the two.

    Args:
        video_path: Silent video
        audio_path: WAV track
        output_path: Muxed output file

    Returns:
        True if ffmpeg produced a non-empty output
    """
    if not ffmpeg_available():
        logger.warning("ffmpeg not found, keeping video without audio")
        return False

    audio_codec = "libopus" if output_path.suffix == ".webm" else "aac"
    if output_path.suffix == ".avi":
        audio_codec = "pcm_s16le"

    cmd = [
        "ffmpeg", "-y",
        "-i", str(video_path),
        "-i", str(audio_path),
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-c:v", "copy",
        "-c:a", audio_codec,
        "-shortest",
        str(output_path),
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
    except OSError as e:
        logger.error(f"Failed to run ffmpeg: {e}")
        return False

    if process.returncode != 0:
        logger.error(
            f"ffmpeg mux failed ({process.returncode}): "
            f"{stderr.decode(errors='replace')[-500:]}"
        )
        return False

    return output_path.exists() and output_path.stat().st_size > 0
