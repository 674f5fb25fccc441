"""Project-wide constants for convenient reuse."""

# pylint: disable=line-too-long

from __future__ import annotations

import os
import pathlib
import sys
from typing import Final

from chunkscribe.utils.env_loader import load_project_env

# Ensure .env is loaded exactly once at import time for the whole project
if "pytest" not in sys.modules:
    load_project_env()


# Repository root resolved relative to this file (utils/constant.py → package → repo)
REPO_ROOT: Final[pathlib.Path] = pathlib.Path(__file__).resolve().parents[2]

# Default path of the dotenv file containing runtime overrides
ENV_FILE: Final[pathlib.Path] = REPO_ROOT / ".env"

# Speech-to-text engine credentials and model (override via env)
GEMINI_API_KEY: Final[str] = os.getenv("GEMINI_API_KEY", "")
DEFAULT_MODEL_NAME: Final[str] = (
    os.getenv("CHUNKSCRIBE_MODEL", "").strip() or "gemini-flash-latest"
)
# Used when a custom model is requested but left blank
FALLBACK_MODEL_NAME: Final[str] = "gemini-2.5-flash"

# Instruction sent alongside every audio segment. The bracketed timestamp
# shape is what the merge and SRT steps parse.
TRANSCRIBE_PROMPT: Final[str] = (
    "Transcribe the audio. Split at natural phrase boundaries. "
    "Each line should not contain more than 15 words. "
    "Output with start and end timestamps. "
    "For example: [00:00:00:500-00:00:02:000] Hello, this is a test."
)

# Silence-aware segmentation
DEFAULT_SEGMENT_DURATION_SEC: Final[float] = float(os.getenv("SEGMENT_DURATION_SEC", "300"))
DEFAULT_SEARCH_RANGE_SEC: Final[float] = float(os.getenv("SEARCH_RANGE_SEC", "30"))
DEFAULT_SILENCE_THRESHOLD_DB: Final[float] = float(os.getenv("SILENCE_THRESHOLD_DB", "-30"))
DEFAULT_MIN_SILENCE_DURATION_SEC: Final[float] = float(
    os.getenv("MIN_SILENCE_DURATION_SEC", "0.5")
)

# Upload/transcribe retry policy: 1 attempt + N retries, delay = base * 2**attempt
DEFAULT_MAX_RETRIES: Final[int] = int(os.getenv("UPLOAD_MAX_RETRIES", "4"))
DEFAULT_RETRY_BASE_DELAY_SEC: Final[float] = float(os.getenv("RETRY_BASE_DELAY_SEC", "2.0"))

# Jobs still `processing` after this many hours are presumed abandoned
JOB_EXPIRY_HOURS: Final[float] = float(os.getenv("JOB_EXPIRY_HOURS", "24"))

# Single-writer lease held by a running pipeline (seconds)
JOB_LEASE_TTL_SEC: Final[int] = int(os.getenv("JOB_LEASE_TTL_SEC", "900"))

# Job cache location
CACHE_DIR: Final[pathlib.Path] = pathlib.Path(
    os.getenv("CACHE_DIR", str(pathlib.Path.home() / ".cache" / "chunkscribe"))
).expanduser()

# External media tooling
FFMPEG_BINARY: Final[str] = os.getenv("FFMPEG_BINARY", "ffmpeg")
FFPROBE_BINARY: Final[str] = os.getenv("FFPROBE_BINARY", "ffprobe")
# Duration probing degrades to "unknown" after this many seconds
PROBE_TIMEOUT_SEC: Final[float] = float(os.getenv("PROBE_TIMEOUT_SEC", "3"))

# Canonical encoding produced by the transcoder
NORMALIZED_SAMPLE_RATE: Final[int] = 16000
NORMALIZED_BITRATE: Final[str] = "16k"
NORMALIZED_MIME_TYPE: Final[str] = "audio/mpeg"

# Audio MIME types the engine accepts as-is (no re-encoding needed)
SUPPORTED_AUDIO_MIME_TYPES: Final[frozenset[str]] = frozenset({
    "audio/wav",
    "audio/mp3",
    "audio/mpeg",
    "audio/aiff",
    "audio/aac",
    "audio/ogg",
    "audio/flac",
})

# Supported audio/video file formats for transcription
SUPPORTED_AUDIO_EXTENSIONS: Final[frozenset[str]] = frozenset({
    ".wav",
    ".mp3",
    ".flac",
    ".ogg",
    ".m4a",
    ".aac",
    ".aiff",
    ".wma",
    ".opus",
})

SUPPORTED_VIDEO_EXTENSIONS: Final[frozenset[str]] = frozenset({
    ".mp4",
    ".mkv",
    ".avi",
    ".mov",
    ".webm",
    ".flv",
    ".wmv",
})

SUPPORTED_EXTENSIONS: Final[frozenset[str]] = (
    SUPPORTED_AUDIO_EXTENSIONS | SUPPORTED_VIDEO_EXTENSIONS
)
