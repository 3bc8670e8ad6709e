"""Converts arbitrary audio files to the canonical upload profile using ffmpeg."""

import contextlib
import ffmpeg
import os
import logging
import tempfile
from typing import Iterator, Optional

from .exceptions import AudioNormalizationError, NoAudioTrackError
from .models import AudioProbe

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1
TARGET_CODEC = "aac"
TARGET_BITRATE = "32k"
TARGET_SUFFIX = ".m4a"


class AudioNormalizer:
    """
    Re-encodes audio to mono, 16 kHz, low-bitrate AAC before upload.

    Providers stretch timestamps when the declared sample rate differs from
    what their model expects; a single known input profile keeps that drift
    small and uniform enough for correct_drift to fix afterwards.
    """

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        ffprobe_path: Optional[str] = None,
        temp_dir: Optional[str] = None,
        sample_rate: int = TARGET_SAMPLE_RATE,
        channels: int = TARGET_CHANNELS,
        codec: str = TARGET_CODEC,
        bitrate: str = TARGET_BITRATE
    ):
        """
        Initializes the AudioNormalizer.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            ffprobe_path: Optional path to the ffprobe executable.
            temp_dir: Directory for normalized files. Defaults to the system temp dir.
            sample_rate: Output sample rate in Hz.
            channels: Output channel count.
            codec: Output audio codec passed to ffmpeg.
            bitrate: Output bitrate passed to ffmpeg (e.g. "32k").
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'
        self.temp_dir = temp_dir
        self.sample_rate = sample_rate
        self.channels = channels
        self.codec = codec
        self.bitrate = bitrate
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}, ffprobe command: {self.ffprobe_cmd}")

    def probe(self, audio_path: str) -> AudioProbe:
        """
        Reads duration and first audio stream properties via ffprobe.

        Raises:
            FileNotFoundError: If the file does not exist.
            NoAudioTrackError: If the file has no audio stream.
            AudioNormalizationError: If ffprobe cannot be run or cannot read the file.
        """
        if not os.path.exists(audio_path):
            raise FileNotFoundError(f"Input audio file not found: {audio_path}")
        try:
            data = ffmpeg.probe(audio_path, cmd=self.ffprobe_cmd)
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffprobe failed for {audio_path}: {stderr_output}")
            raise AudioNormalizationError(f"ffprobe failed: {stderr_output}") from e
        except OSError as e:
            logger.error(f"Could not run ffprobe ({self.ffprobe_cmd}): {e}")
            raise AudioNormalizationError(f"Could not run ffprobe ({self.ffprobe_cmd}): {e}") from e

        audio_stream = next(
            (s for s in data.get("streams", []) if s.get("codec_type") == "audio"), None
        )
        if audio_stream is None:
            raise NoAudioTrackError(f"No audio stream found in {audio_path}")

        duration = data.get("format", {}).get("duration") or audio_stream.get("duration") or 0.0
        return AudioProbe(
            duration=float(duration),
            sample_rate=int(audio_stream.get("sample_rate", 0)),
            channels=int(audio_stream.get("channels", 0)),
            codec=audio_stream.get("codec_name", ""),
        )

    def normalize(self, input_path: str) -> str:
        """
        Writes a temporary mono 16 kHz copy of the input and returns its path.

        The caller owns the returned file and must delete it; prefer the
        ``normalized`` context manager, which does so.

        Args:
            input_path: Path to any audio (or audio-bearing video) file.

        Returns:
            The full path to the normalized temporary file.

        Raises:
            FileNotFoundError: If the input file does not exist.
            NoAudioTrackError: If the input has no decodable audio track.
            AudioNormalizationError: If ffmpeg fails or produces no output.
        """
        logger.info(f"Normalizing audio for transcription: {input_path}")
        source = self.probe(input_path)
        logger.debug(
            f"Source audio: codec={source.codec}, rate={source.sample_rate}Hz, "
            f"channels={source.channels}, duration={source.duration:.2f}s"
        )

        try:
            fd, output_path = tempfile.mkstemp(suffix=TARGET_SUFFIX, prefix="echoflow_", dir=self.temp_dir)
            os.close(fd)
        except OSError as e:
            raise AudioNormalizationError(f"Could not create temporary output file: {e}") from e

        try:
            (
                ffmpeg
                .input(input_path)
                .output(
                    output_path,
                    vn=None,
                    acodec=self.codec,
                    ar=self.sample_rate,
                    ac=self.channels,
                    audio_bitrate=self.bitrate
                )
                .overwrite_output()
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            stderr_output = e.stderr.decode('utf-8', errors='replace') if e.stderr else "No stderr output"
            logger.error(f"ffmpeg error during normalization of {input_path}")
            logger.error(f"ffmpeg stderr: {stderr_output}")
            self._discard(output_path)
            raise AudioNormalizationError(f"ffmpeg failed: {stderr_output}") from e
        except OSError as e:
            self._discard(output_path)
            raise AudioNormalizationError(f"Could not run ffmpeg ({self.ffmpeg_cmd}): {e}") from e

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            self._discard(output_path)
            raise AudioNormalizationError(f"ffmpeg did not produce any audio for {input_path}")

        logger.info(f"Normalized audio written to: {output_path}")
        return output_path

    @contextlib.contextmanager
    def normalized(self, input_path: str) -> Iterator[str]:
        """Yields a normalized temporary copy and deletes it on exit."""
        output_path = self.normalize(input_path)
        try:
            yield output_path
        finally:
            self._discard(output_path)

    @staticmethod
    def _discard(path: str) -> None:
        if path and os.path.exists(path):
            try:
                os.remove(path)
                logger.debug(f"Removed temporary audio file: {path}")
            except OSError:
                logger.warning(f"Could not clean up temporary audio file: {path}")
