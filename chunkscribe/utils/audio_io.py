"""Audio transcoding helpers built on the FFmpeg command-line tools.

The pipeline hands audio around as bytes. :class:`FFmpegTranscoder`
materialises those bytes into a scratch directory (once per distinct
payload) and runs ``ffmpeg``/``ffprobe`` against the file, so that seeking
works for every container. Duration probing falls back to *pydub* when
``ffprobe`` is missing or slow, and finally to "unknown".
"""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from pydub import AudioSegment  # type: ignore  # fallback only

from chunkscribe.errors import InputError, TranscoderError
from chunkscribe.timestamps.models import SilenceInterval
from chunkscribe.utils.constant import (
    FFMPEG_BINARY,
    FFPROBE_BINARY,
    NORMALIZED_BITRATE,
    NORMALIZED_MIME_TYPE,
    NORMALIZED_SAMPLE_RATE,
    PROBE_TIMEOUT_SEC,
    SUPPORTED_AUDIO_MIME_TYPES,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AUDIO_MIME_BY_EXTENSION",
    "FFmpegTranscoder",
    "NormalizedAudio",
    "guess_audio_mime_type",
    "parse_silencedetect_output",
]

# Extension → MIME type for audio the engine accepts without re-encoding
AUDIO_MIME_BY_EXTENSION: dict[str, str] = {
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".aiff": "audio/aiff",
    ".aif": "audio/aiff",
    ".aac": "audio/aac",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
}

_SILENCE_START_RE = re.compile(r"silence_start:\s*(-?[\d.]+)")
_SILENCE_END_RE = re.compile(r"silence_end:\s*(-?[\d.]+)\s*\|\s*silence_duration:\s*([\d.]+)")


@dataclass(frozen=True)
class NormalizedAudio:
    """Audio ready for segmentation.

    Attributes:
        data: Encoded audio bytes.
        name: File name matching the encoding (for example ``talk.mp3``).
        mime_type: MIME type of ``data``.

    """

    data: bytes
    name: str
    mime_type: str


def guess_audio_mime_type(path: Path | str) -> str | None:
    """Return the engine MIME type for ``path`` or ``None`` if it needs encoding."""
    mime = AUDIO_MIME_BY_EXTENSION.get(Path(path).suffix.lower())
    return mime if mime in SUPPORTED_AUDIO_MIME_TYPES else None


def parse_silencedetect_output(stderr: str, window_length: float) -> list[SilenceInterval]:
    """Parse ``silencedetect`` log lines into window-local intervals.

    A silence still open when the window ends is closed at ``window_length``.

    Args:
        stderr: FFmpeg stderr output.
        window_length: Length of the analysed window in seconds.

    Returns:
        Silence intervals in the order FFmpeg reported them.
    """
    intervals: list[SilenceInterval] = []
    open_start: float | None = None
    for line in stderr.splitlines():
        start_match = _SILENCE_START_RE.search(line)
        if start_match:
            open_start = max(0.0, float(start_match.group(1)))
            continue
        end_match = _SILENCE_END_RE.search(line)
        if end_match and open_start is not None:
            end = float(end_match.group(1))
            intervals.append(
                SilenceInterval(start=open_start, end=end, duration=float(end_match.group(2)))
            )
            open_start = None
    if open_start is not None and window_length > open_start:
        intervals.append(
            SilenceInterval(
                start=open_start, end=window_length, duration=window_length - open_start
            )
        )
    return intervals


class FFmpegTranscoder:
    """Normalize, probe, analyse and cut audio with FFmpeg.

    Args:
        ffmpeg: FFmpeg executable name or path.
        ffprobe: FFprobe executable name or path.
        probe_timeout: Seconds before duration probing gives up on ffprobe.

    The transcoder owns a scratch directory; call :meth:`close` (or use it as
    a context manager) to remove it.
    """

    def __init__(
        self,
        ffmpeg: str = FFMPEG_BINARY,
        ffprobe: str = FFPROBE_BINARY,
        probe_timeout: float = PROBE_TIMEOUT_SEC,
    ) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.probe_timeout = probe_timeout
        self._scratch = tempfile.TemporaryDirectory(prefix="chunkscribe-")
        self._formats: dict[str, str] = {}

    def __enter__(self) -> FFmpegTranscoder:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Remove the scratch directory."""
        self._scratch.cleanup()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _require_ffmpeg(self) -> None:
        if shutil.which(self.ffmpeg) is None:
            raise TranscoderError(f"FFmpeg is not installed or not in PATH ({self.ffmpeg}).")

    def _materialize(self, data: bytes) -> Path:
        digest = hashlib.sha1(data).hexdigest()
        path = Path(self._scratch.name) / f"in-{digest}"
        if not path.exists():
            path.write_bytes(data)
        return path

    def _run_ffmpeg(self, args: list[str]) -> subprocess.CompletedProcess[bytes]:
        self._require_ffmpeg()
        cmd = [self.ffmpeg, "-nostdin", "-hide_banner", *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            return subprocess.run(cmd, capture_output=True, check=True)
        except subprocess.CalledProcessError as exc:
            raise TranscoderError(
                f"FFmpeg failed: {exc.stderr.decode(errors='ignore').strip()[-500:]}"
            ) from exc

    def _container_format(self, path: Path) -> str:
        """Return the FFmpeg muxer name matching the file at ``path``."""
        cached = self._formats.get(path.name)
        if cached:
            return cached
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=format_name",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            out = subprocess.run(
                cmd, capture_output=True, check=True, timeout=self.probe_timeout
            ).stdout
        except (OSError, subprocess.SubprocessError) as exc:
            raise TranscoderError(f"Could not determine container format: {exc}") from exc
        fmt = out.decode(errors="ignore").strip().split(",")[0]
        if not fmt:
            raise TranscoderError("Could not determine container format")
        self._formats[path.name] = fmt
        return fmt

    # ------------------------------------------------------------------
    # Transcoder protocol
    # ------------------------------------------------------------------
    def normalize(self, path: Path | str) -> NormalizedAudio:
        """Prepare a source file for the engine.

        Audio the engine already accepts is passed through untouched. Anything
        else (video containers, m4a, opus, ...) is encoded to mono 16 kHz
        16 kbps MP3, which keeps uploads small without hurting recognition.

        Raises:
            InputError: If ``path`` does not exist.
            TranscoderError: If FFmpeg is missing or fails.
        """
        source = Path(path)
        if not source.is_file():
            raise InputError(f"Input file not found: {source}")

        mime = guess_audio_mime_type(source)
        if mime is not None:
            logger.debug(f"{source.name} is already {mime}; skipping re-encode")
            return NormalizedAudio(data=source.read_bytes(), name=source.name, mime_type=mime)

        out_path = Path(self._scratch.name) / f"{source.stem}.mp3"
        logger.info(f"Converting {source.name} to mono {NORMALIZED_SAMPLE_RATE} Hz MP3")
        self._run_ffmpeg([
            "-y",
            "-i",
            str(source),
            "-vn",
            "-c:a",
            "libmp3lame",
            "-ac",
            "1",
            "-ar",
            str(NORMALIZED_SAMPLE_RATE),
            "-b:a",
            NORMALIZED_BITRATE,
            str(out_path),
        ])
        data = out_path.read_bytes()
        out_path.unlink(missing_ok=True)
        return NormalizedAudio(data=data, name=out_path.name, mime_type=NORMALIZED_MIME_TYPE)

    def probe_duration(self, data: bytes) -> float | None:
        """Return the duration of ``data`` in seconds, or ``None`` if unknown."""
        path = self._materialize(data)
        cmd = [
            self.ffprobe,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            out = subprocess.run(
                cmd, capture_output=True, check=True, timeout=self.probe_timeout
            ).stdout
            return float(out.decode().strip())
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.warning(f"ffprobe could not read the duration ({exc}); trying pydub")

        try:
            return float(AudioSegment.from_file(path).duration_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Duration unknown, audio will be sent as one segment: {exc}")
            return None

    def detect_silence(
        self,
        data: bytes,
        start: float,
        end: float,
        *,
        threshold_db: float,
        min_duration: float,
    ) -> list[SilenceInterval]:
        """Run ``silencedetect`` over ``[start, end]``; results are window-local."""
        path = self._materialize(data)
        length = max(0.0, end - start)
        result = self._run_ffmpeg([
            "-ss",
            f"{start:.3f}",
            "-t",
            f"{length:.3f}",
            "-i",
            str(path),
            "-af",
            f"silencedetect=noise={threshold_db}dB:d={min_duration}",
            "-f",
            "null",
            "-",
        ])
        return parse_silencedetect_output(result.stderr.decode(errors="ignore"), length)

    def extract(self, data: bytes, start: float, end: float | None) -> bytes:
        """Copy ``[start, end)`` of ``data`` without re-encoding (``None`` = to the end)."""
        path = self._materialize(data)
        fmt = self._container_format(path)
        out_path = Path(self._scratch.name) / f"cut-{start:.3f}-{end}.{fmt}"
        args = ["-y", "-ss", f"{start:.3f}"]
        if end is not None:
            args += ["-t", f"{max(0.0, end - start):.3f}"]
        args += ["-i", str(path), "-c", "copy", "-f", fmt, str(out_path)]
        self._run_ffmpeg(args)
        try:
            return out_path.read_bytes()
        finally:
            out_path.unlink(missing_ok=True)
