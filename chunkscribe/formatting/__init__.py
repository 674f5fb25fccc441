"""Registry of output formatters for merged transcripts.

Allows easy extension with new formats by adding a formatter function and
registering it in the ``FORMATTERS`` dictionary.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ._srt import is_valid_subtitle_format, to_srt
from ._txt import to_txt
from .srt_quality import SubtitleStats, get_subtitle_stats


@dataclass
class FormatterSpec:
    """Metadata and function for a specific output format.

    Attributes:
        format_func: Converts merged raw engine text to the output string.
        file_extension: The file extension for this format (including the dot).

    """

    format_func: Callable[[str], str]
    file_extension: str


# A registry mapping format names to their respective formatter specifications.
FORMATTERS: dict[str, FormatterSpec] = {
    "srt": FormatterSpec(format_func=to_srt, file_extension=".srt"),
    "txt": FormatterSpec(format_func=to_txt, file_extension=".txt"),
}


def get_formatter_spec(format_name: str) -> FormatterSpec:
    """Retrieve the FormatterSpec metadata for the given output format name.

    Parameters:
        format_name (str): Case-insensitive format identifier (e.g., "srt", "txt").

    Returns:
        FormatterSpec: The metadata and formatter function for the requested format.

    Raises:
        ValueError: If the specified format_name is not supported.
    """
    spec = FORMATTERS.get(format_name.lower())
    if not spec:
        supported = list(FORMATTERS.keys())
        raise ValueError(f"Unsupported format: '{format_name}'. Supported formats are: {supported}")
    return spec


__all__ = [
    "FORMATTERS",
    "FormatterSpec",
    "SubtitleStats",
    "get_formatter_spec",
    "get_subtitle_stats",
    "is_valid_subtitle_format",
    "to_srt",
    "to_txt",
]
