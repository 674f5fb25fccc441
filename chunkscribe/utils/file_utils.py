"""Utilities for job identity, output naming and human-readable sizes.

The module exposes:
• `generate_job_id` – deterministic cache key for a (file, model) pair
• `get_unique_filename` – overwrite protection for output files
• `is_supported_media` – extension filter for CLI input
• `format_bytes` / `format_duration` – display helpers for the CLI
"""

from __future__ import annotations

import math
import pathlib
from urllib.parse import quote

from chunkscribe.utils.constant import SUPPORTED_EXTENSIONS

PathLike = str | pathlib.Path

__all__ = [
    "format_bytes",
    "format_duration",
    "generate_job_id",
    "get_unique_filename",
    "is_supported_media",
]

# Characters left unescaped in job id components, besides letters, digits and "_.-~"
_ID_SAFE_CHARS = "!*'()"


def generate_job_id(path: PathLike, model: str) -> str:
    """Build the cache key for transcribing ``path`` with ``model``.

    The id combines the escaped file name, its size, its modification time in
    milliseconds and the escaped model name. Re-running the same file with the
    same model lands on the same id, which is what makes resume implicit.

    Args:
        path: Existing source file.
        model: Model identifier.

    Returns:
        ``"{name}_{size}_{mtime_ms}_{model}"``.

    Raises:
        ValueError: If ``model`` is empty.
        FileNotFoundError: If ``path`` does not exist.

    Examples:
        >>> generate_job_id("talk.mp3", "gemini-flash-latest")  # doctest: +SKIP
        'talk.mp3_1048576_1718000000000_gemini-flash-latest'
    """
    if not model:
        raise ValueError("model must not be empty")
    source = pathlib.Path(path)
    stat = source.stat()
    mtime_ms = stat.st_mtime_ns // 1_000_000
    safe_name = quote(source.name, safe=_ID_SAFE_CHARS)
    safe_model = quote(model, safe=_ID_SAFE_CHARS)
    return f"{safe_name}_{stat.st_size}_{mtime_ms}_{safe_model}"


def get_unique_filename(
    base_path: PathLike,
    overwrite: bool = False,
    separator: str = "-",
) -> pathlib.Path:
    """Generate a unique filename to avoid overwriting existing files.

    If the file does not exist or overwrite is True, returns the original path.
    Otherwise, appends a numbered suffix like "-1", "-2", etc.

    Args:
        base_path: The desired file path.
        overwrite: If True, return the original path even if it exists.
        separator: The separator to use before the number suffix.

    Returns:
        A pathlib.Path that is guaranteed not to exist (unless overwrite=True).

    Raises:
        RuntimeError: If a unique filename cannot be found after 9,999 attempts.

    """
    path = pathlib.Path(base_path)

    if overwrite or not path.exists():
        return path

    for counter in range(1, 10000):
        new_path = path.parent / f"{path.stem}{separator}{counter}{path.suffix}"
        if not new_path.exists():
            return new_path
    raise RuntimeError(f"Cannot find unique filename for {base_path}")


def is_supported_media(path: PathLike) -> bool:
    """Return *True* if *path* has an audio or video extension FFmpeg can read."""
    return pathlib.Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def format_bytes(size: int) -> str:
    """Format a byte count with binary units, e.g. ``1536`` → ``"1.5 KB"``."""
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    exponent = min(int(math.log(size, 1024)), len(units) - 1)
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {units[exponent]}"


def format_duration(seconds: float | None) -> str:
    """Format seconds as ``M:SS`` or ``H:MM:SS``; ``None`` becomes ``"unknown"``."""
    if seconds is None:
        return "unknown"
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
