"""Compute basic statistics for SRT subtitle output."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

_CUE_TIMING_RE = re.compile(
    r"(\d{2}):(\d{2}):(\d{2}),(\d{3})\s*-->\s*(\d{2}):(\d{2}):(\d{2}),(\d{3})"
)


class SubtitleStats(BaseModel):
    """Summary of a rendered SRT document."""

    line_count: int = Field(0, description="Number of non-blank lines.")
    duration: float = Field(0.0, description="Latest cue end time in seconds.")
    segment_count: int = Field(0, description="Number of cues with a timing line.")


def get_subtitle_stats(srt_text: str) -> SubtitleStats:
    """Compute cue count, coverage and line count for SRT output.

    Args:
        srt_text: Rendered SRT contents.

    Returns:
        SubtitleStats: Zeroed statistics for empty input.
    """
    if not srt_text:
        return SubtitleStats()

    lines = [line for line in srt_text.split("\n") if line.strip()]
    segment_count = 0
    max_end = 0.0
    for line in lines:
        match = _CUE_TIMING_RE.search(line)
        if not match:
            continue
        segment_count += 1
        hours, minutes, seconds, millis = (int(g) for g in match.groups()[4:])
        end = hours * 3600 + minutes * 60 + seconds + millis / 1000.0
        max_end = max(max_end, end)

    return SubtitleStats(
        line_count=len(lines),
        duration=max_end,
        segment_count=segment_count,
    )
